"""
Result Aggregator
------------------
Fan-in stage. Assembles every step's output (or its documented default) into
one immutable MarketReport and hands it to the persistence sink exactly once.

A failure here is the only error a pipeline run lets escape: it is wrapped in
AggregationError so the caller knows the report was not stored.
"""

import asyncio
import logging
from typing import Sequence, Tuple

from agents.errors import AggregationError
from agents.ports import ReportSink
from models.schemas import (
    ChartDataset,
    CompetitorSet,
    InsightCollection,
    MarketReport,
    Query,
    ReviewCollection,
    StepRecord,
    TrendSnapshot,
)

logger = logging.getLogger("aggregator")


class ReportAggregator:

    def __init__(self, sink: ReportSink):
        self.sink = sink

    def build(
        self,
        query: Query,
        competitors: CompetitorSet,
        reviews: ReviewCollection,
        trends: TrendSnapshot,
        urls: Sequence[str],
        insights: InsightCollection,
        chart_data: ChartDataset,
        summary: str,
        steps: Sequence[StepRecord],
    ) -> MarketReport:
        return MarketReport(
            query=query,
            competitors=competitors,
            reviews=reviews.bundles,
            trends=trends,
            discovered_urls=tuple(urls),
            page_insights=insights.insights,
            chart_data=chart_data,
            summary=summary or "",
            steps=tuple(steps),
        )

    async def aggregate(self, thread_id: str = "-", **outputs) -> Tuple[MarketReport, str]:
        """Build and persist the report. Returns (report, record_id)."""
        try:
            report = self.build(**outputs)
        except Exception as e:
            logger.error(f"[{thread_id}] Could not assemble the market report: {e}")
            raise AggregationError(f"Report assembly failed: {e}") from e

        try:
            record_id = await asyncio.to_thread(self.sink.persist, report)
        except Exception as e:
            logger.error(f"[{thread_id}] Persisting report {report.report_id} failed: {e}")
            raise AggregationError(f"Persisting report failed: {e}") from e

        logger.info(f"[{thread_id}] Report {report.report_id} persisted as record {record_id}")
        return report, record_id
