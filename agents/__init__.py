from .base import Agent, AgentResult, fan_out
from .errors import (
    PipelineError, InvalidQueryError, InferenceError, OutputContractError,
    FetchError, StepSkipped, AggregationError,
)
from .ports import CapabilityPorts, InferencePort, PageFetcher, WebSearcher, StoreLookup, ReportSink
from .competitors import CompetitorDiscoveryAgent
from .reviews import ReviewSynthesisAgent
from .trends import TrendDiscoveryAgent
from .webpages import UrlDiscoveryAgent, WebpageInsightAgent
from .synthesis import ChartDataAgent, NarrativeSummaryAgent
from .aggregator import ReportAggregator
from .orchestrator import PipelineOrchestrator, RunPhase, StepNode, build_default_graph, parse_query

__all__ = [
    "Agent", "AgentResult", "fan_out",
    "PipelineError", "InvalidQueryError", "InferenceError", "OutputContractError",
    "FetchError", "StepSkipped", "AggregationError",
    "CapabilityPorts", "InferencePort", "PageFetcher", "WebSearcher", "StoreLookup", "ReportSink",
    "CompetitorDiscoveryAgent", "ReviewSynthesisAgent", "TrendDiscoveryAgent",
    "UrlDiscoveryAgent", "WebpageInsightAgent", "ChartDataAgent", "NarrativeSummaryAgent",
    "ReportAggregator", "PipelineOrchestrator", "RunPhase", "StepNode",
    "build_default_graph", "parse_query",
]
