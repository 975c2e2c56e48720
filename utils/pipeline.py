"""
Pipeline runner: wires capability ports into the orchestrator and exposes
`run_pipeline(query, thread_id, user_id)`.

Architecture:
  {CompetitorDiscovery | TrendDiscovery | UrlDiscovery}
      → {ReviewSynthesis | WebpageInsights}
      → {ChartData | NarrativeSummary}
      → ReportAggregator → ReportSink
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from agents.mock import mock_ports
from agents.orchestrator import PipelineOrchestrator, PipelineRun, parse_query
from agents.ports import CapabilityPorts
from config.settings import Settings, settings as default_settings
from models.schemas import MarketReport

logger = logging.getLogger(__name__)


def build_ports(settings: Settings = default_settings, mock: bool = False, sink=None) -> CapabilityPorts:
    """
    Live adapters (OpenAI-compatible inference, requests/Scrapfly retrieval,
    search-page scraping, storefront lookups, SQL sink) or the offline stubs.
    """
    if mock:
        return mock_ports(**({"sink": sink} if sink is not None else {}))

    from agents.llm_client import OpenAIInference
    from agents.stores import StorefrontLookup
    from agents.web import RequestsPageFetcher, SearchEngineSearcher

    if sink is None:
        from db import SqlReportSink, init_db
        init_db()
        sink = SqlReportSink()

    fetcher = RequestsPageFetcher(
        scrapfly_key=settings.SCRAPFLY_API_KEY,
        timeout=settings.REQUEST_TIMEOUT,
        max_retries=settings.MAX_RETRIES,
        max_concurrency=settings.MAX_CONCURRENT_REQUESTS,
    )
    return CapabilityPorts(
        inference=OpenAIInference(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            model=settings.OPENAI_MODEL,
            max_tokens=settings.LLM_MAX_TOKENS,
            temperature=settings.LLM_TEMPERATURE,
        ),
        fetcher=fetcher,
        searcher=SearchEngineSearcher(fetcher, max_results=settings.SEARCH_MAX_RESULTS),
        store_lookup=StorefrontLookup(fetcher, timeout=settings.REQUEST_TIMEOUT),
        sink=sink,
    )


async def execute_pipeline(
    query: str,
    thread_id: Optional[str] = None,
    user_id: Optional[str] = None,
    ports: Optional[CapabilityPorts] = None,
) -> PipelineRun:
    """
    Validates the query (InvalidQueryError before any external call), runs
    every step and persists the report. Only AggregationError propagates
    once the run has started.
    """
    parsed = parse_query(query, thread_id=thread_id, user_id=user_id)
    orchestrator = PipelineOrchestrator(ports or build_ports())
    run = await orchestrator.run(parsed)
    logger.info(orchestrator.summary(run))
    return run


async def run_pipeline(
    query: str,
    thread_id: Optional[str] = None,
    user_id: Optional[str] = None,
    ports: Optional[CapabilityPorts] = None,
) -> MarketReport:
    run = await execute_pipeline(query, thread_id=thread_id, user_id=user_id, ports=ports)
    return run.report


def run_pipeline_sync(
    query: str,
    thread_id: Optional[str] = None,
    user_id: Optional[str] = None,
    ports: Optional[CapabilityPorts] = None,
) -> MarketReport:
    """Blocking wrapper for scripts and the CLI."""
    return asyncio.run(run_pipeline(query, thread_id=thread_id, user_id=user_id, ports=ports))
