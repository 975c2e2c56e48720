"""
Synthesis Agents
-----------------
Both agents consume the gathered reviews, trends and page insights, share one
deterministic input block (`prompts.market_data_prompt`) and run concurrently.

  ChartDataAgent          -> ChartDataset (empty dataset + error on any failure)
  NarrativeSummaryAgent   -> non-empty narrative text (empty output fails the step)
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from agents.base import Agent
from agents.errors import InferenceError, OutputContractError
from agents.ports import InferencePort
from agents.prompts import CHART_SYSTEM_PROMPT, SUMMARY_SYSTEM_PROMPT, market_data_prompt
from models.schemas import (
    ChartDataset,
    NarrativeText,
    PageInsight,
    ReviewBundle,
    TrendSnapshot,
)
from models.validation import Invalid, validate

CHART_METRICS = ("review_count", "rating", "market_share")


@dataclass(frozen=True)
class MarketData:
    """Everything the synthesis steps read. Missing sources arrive as empty defaults."""
    query: str
    trends: TrendSnapshot
    competitor_names: Tuple[str, ...] = ()
    bundles: Tuple[ReviewBundle, ...] = ()
    insights: Tuple[PageInsight, ...] = ()

    def prompt(self) -> str:
        return market_data_prompt(self.query, self.bundles, self.trends, self.insights)


def chart_prompt(data: MarketData) -> str:
    names = ", ".join(data.competitor_names) or "none identified"
    return f"Competitors to chart: {names}\n\n{data.prompt()}"


class ChartDataAgent(Agent):
    """
    Input:  MarketData
    Output: ChartDataset
    """

    def __init__(self, inference: InferencePort):
        super().__init__(name="ChartData")
        self.inference = inference

    async def run(self, data: MarketData, thread_id: str = "-") -> ChartDataset:
        try:
            dataset = await self.inference.generate_structured(
                CHART_SYSTEM_PROMPT, chart_prompt(data), ChartDataset,
            )
        except OutputContractError as e:
            self.logger.warning(f"[{thread_id}] Chart data failed validation: {e}")
            return ChartDataset.empty(f"Validation failed: {'; '.join(e.errors)}")
        except InferenceError as e:
            self.logger.warning(f"[{thread_id}] Chart data generation failed: {e}")
            return ChartDataset.empty(f"Chart data generation failed: {e}")

        metric = dataset.suggested_bar_chart_metric
        if metric not in CHART_METRICS:
            metric = "review_count" if any(r.review_count for r in dataset.bar_chart_data) else "rating"
            dataset = dataset.model_copy(update={"suggested_bar_chart_metric": metric})
        self.logger.info(
            f"[{thread_id}] Chart data: {len(dataset.bar_chart_data)} bar rows, "
            f"{len(dataset.gap_matrix_data)} gap rows"
        )
        return dataset


class NarrativeSummaryAgent(Agent):
    """
    Input:  MarketData
    Output: str (non-empty). Raises on empty output.
    """

    def __init__(self, inference: InferencePort, max_tokens: Optional[int] = None):
        super().__init__(name="NarrativeSummary")
        self.inference = inference
        self.max_tokens = max_tokens

    async def run(self, data: MarketData, thread_id: str = "-") -> str:
        text = await self.inference.generate_text(
            SUMMARY_SYSTEM_PROMPT, data.prompt(), max_tokens=self.max_tokens,
        )
        outcome = validate(text, NarrativeText)
        if isinstance(outcome, Invalid):
            raise OutputContractError("NarrativeText", ["summary text is empty"])
        self.logger.info(f"[{thread_id}] Summary generated ({len(outcome.value)} chars)")
        return outcome.value
