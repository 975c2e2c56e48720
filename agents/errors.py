"""
Exception hierarchy for the research pipeline.

Only `InvalidQueryError` (before the run starts) and `AggregationError`
(after it ends) are allowed to reach a caller of `run_pipeline`; everything
else is caught at the step boundary by `Agent.execute`.
"""

from typing import List, Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class InvalidQueryError(PipelineError):
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid query: " + "; ".join(self.errors))


class InferenceError(PipelineError):
    """The inference port was unreachable or returned an unusable response."""


class OutputContractError(InferenceError):
    """The inference output parsed but failed its contract."""

    def __init__(self, contract_name: str, errors: List[str]):
        self.contract_name = contract_name
        self.errors = list(errors)
        super().__init__(f"{contract_name} contract violated: " + "; ".join(self.errors))


class FetchError(PipelineError):
    def __init__(self, message: str, status_code: Optional[int] = None, content: Optional[str] = None):
        self.status_code = status_code
        self.content = content
        super().__init__(message)


class StepSkipped(PipelineError):
    """Raised by a step when its input leaves nothing to do."""


class AggregationError(PipelineError):
    """The final report could not be persisted."""
