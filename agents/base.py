"""
Base Agent class and fan-out helper
Market Research Synthesis Pipeline
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar, Union
from dataclasses import dataclass, field
from datetime import datetime
import asyncio
import logging
import traceback

from agents.errors import StepSkipped

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class AgentResult:
    """Standardized result envelope returned by every step."""
    agent_name: str
    success: bool
    data: Any = None
    error: Optional[str] = None
    skipped: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def __repr__(self):
        status = "⏭" if self.skipped else ("✅" if self.success else "❌")
        dur = f" ({self.duration_seconds:.1f}s)" if self.duration_seconds else ""
        return f"{status} {self.agent_name}{dur}"


class Agent(ABC):
    """
    Abstract base class for all pipeline steps.
    Subclasses implement `run(data, thread_id)` as a coroutine.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"agent.{name}")

    @abstractmethod
    async def run(self, data: Any, thread_id: str = "-") -> Any:
        raise NotImplementedError

    async def execute(self, data: Any, thread_id: str = "-") -> AgentResult:
        """
        Wraps `run()` with timing, structured logging, and error handling.
        No exception escapes: failures become an unsuccessful AgentResult.
        """
        started_at = datetime.utcnow()
        self.logger.info(f"[{thread_id}] [{self.name}] Starting...")
        try:
            result = await self.run(data, thread_id)
        except StepSkipped as e:
            finished_at = datetime.utcnow()
            self.logger.info(f"[{thread_id}] [{self.name}] Skipped: {e}")
            return AgentResult(
                agent_name=self.name,
                success=True,
                skipped=True,
                error=str(e),
                started_at=started_at,
                finished_at=finished_at,
            )
        except Exception as e:
            finished_at = datetime.utcnow()
            self.logger.error(
                f"[{thread_id}] [{self.name}] Failed: {e}\n{traceback.format_exc()}"
            )
            return AgentResult(
                agent_name=self.name,
                success=False,
                error=str(e) or e.__class__.__name__,
                started_at=started_at,
                finished_at=finished_at,
            )
        finished_at = datetime.utcnow()
        duration = (finished_at - started_at).total_seconds()
        self.logger.info(f"[{thread_id}] [{self.name}] Completed in {duration:.2f}s")
        return AgentResult(
            agent_name=self.name,
            success=True,
            data=result,
            started_at=started_at,
            finished_at=finished_at,
        )

    def __repr__(self):
        return f"<Agent: {self.name}>"


async def fan_out(
    func: Callable[[T], Awaitable[R]],
    items: Sequence[T],
) -> List[Union[R, BaseException]]:
    """
    Run `func` over `items` concurrently.
    Results come back in input order; a failing item yields its exception
    in place instead of cancelling its siblings.
    """
    if not items:
        return []
    return await asyncio.gather(*(func(item) for item in items), return_exceptions=True)
