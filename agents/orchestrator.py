"""
Pipeline Orchestrator
----------------------
Declares the step graph and drives one run through its phases:

  STARTED
    -> GATHERING_PRIMARY   competitor_discovery | trend_discovery | url_discovery
    -> GATHERING_DERIVED   review_synthesis | webpage_insights
    -> SYNTHESIZING        chart_data | narrative_summary
    -> AGGREGATING         build + persist MarketReport
    -> COMPLETED  (or FAILED when aggregation raises)

Phase is the scheduling key: steps in one phase run concurrently, and a step
only reads the slots it declares in depends_on. A failed step only marks its
own slot; downstream steps read that slot's documented default instead.
Steps are never retried here.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from agents.aggregator import ReportAggregator
from agents.base import Agent, AgentResult
from agents.competitors import CompetitorDiscoveryAgent, strip_query_prefixes
from agents.errors import AggregationError, InvalidQueryError
from agents.ports import CapabilityPorts
from agents.reviews import ReviewSynthesisAgent
from agents.synthesis import ChartDataAgent, MarketData, NarrativeSummaryAgent
from agents.trends import TrendDiscoveryAgent
from agents.webpages import PageBatch, UrlDiscoveryAgent, WebpageInsightAgent
from models.schemas import (
    ChartDataset,
    CompetitorSet,
    InsightCollection,
    MarketReport,
    Query,
    ReviewCollection,
    StepRecord,
    StepStatus,
    TrendSnapshot,
)
from models.validation import Invalid, validate

logger = logging.getLogger("orchestrator")


class RunPhase(str, Enum):
    STARTED = "started"
    GATHERING_PRIMARY = "gathering_primary"
    GATHERING_DERIVED = "gathering_derived"
    SYNTHESIZING = "synthesizing"
    AGGREGATING = "aggregating"
    COMPLETED = "completed"
    FAILED = "failed"


STEP_PHASES = (RunPhase.GATHERING_PRIMARY, RunPhase.GATHERING_DERIVED, RunPhase.SYNTHESIZING)


def parse_query(text: str, thread_id: Optional[str] = None, user_id: Optional[str] = None) -> Query:
    """Validate caller input before anything touches the network."""
    payload: Dict[str, Any] = {"text": text, "user_id": user_id}
    if thread_id is not None:
        payload["thread_id"] = thread_id
    outcome = validate(payload, Query)
    if isinstance(outcome, Invalid):
        raise InvalidQueryError(outcome.errors)
    return outcome.value


# ─── Step Graph ──────────────────────────────────────────────────────────────


@dataclass
class StepNode:
    """
    One schedulable step.

    phase        the scheduling key: steps run phase by phase, concurrently within one
    build_input  builds the agent's input from a StepInputs view
    default      value the slot takes when the step fails or is skipped
                 (SLOT_DEFAULTS entry when not given)
    depends_on   upstream step names; each must sit in an earlier phase, and they
                 are the only slots build_input may read
    """
    name: str
    phase: RunPhase
    agent: Agent
    build_input: Callable[["StepInputs"], Any]
    default: Optional[Callable[[Query, str], Any]] = None
    depends_on: Tuple[str, ...] = ()


@dataclass
class RunContext:
    query: Query
    nodes: Dict[str, StepNode]
    results: Dict[str, AgentResult] = field(default_factory=dict)
    phases: List[RunPhase] = field(default_factory=lambda: [RunPhase.STARTED])

    @property
    def thread_id(self) -> str:
        return self.query.thread_id

    @property
    def phase(self) -> RunPhase:
        return self.phases[-1]

    def enter(self, phase: RunPhase) -> None:
        self.phases.append(phase)
        logger.info(f"[{self.thread_id}] Phase -> {phase.value}")

    def value(self, name: str) -> Any:
        """Output of a finished step, or its default if it failed or was skipped."""
        result = self.results.get(name)
        if result is not None and result.success and not result.skipped:
            return result.data
        reason = (result.error if result is not None else None) or "step did not run"
        node = self.nodes.get(name)
        default = (node.default if node is not None else None) or SLOT_DEFAULTS[name]
        return default(self.query, reason)


@dataclass(frozen=True)
class StepInputs:
    """What one step's input builder can see: the query and its declared upstream slots."""
    ctx: RunContext
    node: StepNode

    @property
    def query(self) -> Query:
        return self.ctx.query

    def value(self, name: str) -> Any:
        if name not in self.node.depends_on:
            raise ValueError(f"{self.node.name} reads undeclared upstream step {name}")
        return self.ctx.value(name)


SLOT_DEFAULTS: Dict[str, Callable[[Query, str], Any]] = {
    "competitor_discovery": lambda q, reason: CompetitorSet.placeholders(q.text, f"Analysis failed: {reason}"),
    "trend_discovery": lambda q, reason: TrendSnapshot(
        keyword=strip_query_prefixes(q.text), errors=(f"Trend discovery failed: {reason}",)
    ),
    "url_discovery": lambda q, reason: (),
    "review_synthesis": lambda q, reason: ReviewCollection(),
    "webpage_insights": lambda q, reason: InsightCollection(),
    "chart_data": lambda q, reason: ChartDataset.empty(reason),
    "narrative_summary": lambda q, reason: "",
}


def _market_data(ctx: StepInputs) -> MarketData:
    competitors: CompetitorSet = ctx.value("competitor_discovery")
    return MarketData(
        query=ctx.query.text,
        trends=ctx.value("trend_discovery"),
        competitor_names=tuple(c.name for c in competitors.competitors),
        bundles=ctx.value("review_synthesis").bundles,
        insights=ctx.value("webpage_insights").insights,
    )


def build_default_graph(ports: CapabilityPorts) -> List[StepNode]:
    """The standard research graph wired to one set of capability ports."""
    return [
        StepNode(
            name="competitor_discovery",
            phase=RunPhase.GATHERING_PRIMARY,
            agent=CompetitorDiscoveryAgent(ports.inference, ports.searcher, ports.store_lookup),
            build_input=lambda ctx: ctx.query.text,
        ),
        StepNode(
            name="trend_discovery",
            phase=RunPhase.GATHERING_PRIMARY,
            agent=TrendDiscoveryAgent(ports.fetcher),
            build_input=lambda ctx: strip_query_prefixes(ctx.query.text),
        ),
        StepNode(
            name="url_discovery",
            phase=RunPhase.GATHERING_PRIMARY,
            agent=UrlDiscoveryAgent(ports.searcher),
            build_input=lambda ctx: ctx.query.text,
        ),
        StepNode(
            name="review_synthesis",
            phase=RunPhase.GATHERING_DERIVED,
            agent=ReviewSynthesisAgent(ports.inference),
            build_input=lambda ctx: ctx.value("competitor_discovery").competitors,
            depends_on=("competitor_discovery",),
        ),
        StepNode(
            name="webpage_insights",
            phase=RunPhase.GATHERING_DERIVED,
            agent=WebpageInsightAgent(ports.fetcher, ports.inference),
            build_input=lambda ctx: PageBatch(urls=ctx.value("url_discovery"), topic=ctx.query.text),
            depends_on=("url_discovery",),
        ),
        StepNode(
            name="chart_data",
            phase=RunPhase.SYNTHESIZING,
            agent=ChartDataAgent(ports.inference),
            build_input=_market_data,
            depends_on=("competitor_discovery", "trend_discovery", "review_synthesis", "webpage_insights"),
        ),
        StepNode(
            name="narrative_summary",
            phase=RunPhase.SYNTHESIZING,
            agent=NarrativeSummaryAgent(ports.inference),
            build_input=_market_data,
            depends_on=("competitor_discovery", "trend_discovery", "review_synthesis", "webpage_insights"),
        ),
    ]


# ─── Ledger ──────────────────────────────────────────────────────────────────


def diagnostic_of(data: Any) -> Optional[str]:
    """Why a successful step still counts as degraded, if it does."""
    diagnostic = getattr(data, "diagnostic", None)
    if diagnostic:
        return diagnostic
    if isinstance(data, (tuple, list)) and not data:
        return "no results"
    return None


def ledger_entry(name: str, result: AgentResult) -> StepRecord:
    if result.skipped:
        status, detail = StepStatus.SKIPPED, result.error
    elif not result.success:
        status, detail = StepStatus.FAILED, result.error
    else:
        detail = diagnostic_of(result.data)
        status = StepStatus.DEGRADED if detail else StepStatus.SUCCEEDED
    duration = result.duration_seconds
    return StepRecord(
        name=name,
        status=status,
        detail=detail,
        duration_seconds=round(duration, 3) if duration is not None else None,
    )


# ─── Orchestrator ────────────────────────────────────────────────────────────


@dataclass
class PipelineRun:
    report: MarketReport
    record_id: str
    phases: List[RunPhase]
    results: Dict[str, AgentResult]


class PipelineOrchestrator:
    """
    Phase-by-phase executor for a step graph.
    One orchestrator can serve many runs; per-run state lives in RunContext.
    """

    def __init__(self, ports: CapabilityPorts, nodes: Optional[Sequence[StepNode]] = None):
        self.ports = ports
        self.nodes: Dict[str, StepNode] = {}
        for node in nodes if nodes is not None else build_default_graph(ports):
            if node.name in self.nodes:
                raise ValueError(f"Duplicate step name: {node.name}")
            self.nodes[node.name] = node
        self._check_graph()
        self.aggregator = ReportAggregator(ports.sink)
        self.history: List[PipelineRun] = []

    def _check_graph(self) -> None:
        order = {phase: i for i, phase in enumerate(STEP_PHASES)}
        for node in self.nodes.values():
            if node.phase not in order:
                raise ValueError(f"Step {node.name} is scheduled in non-step phase {node.phase.value}")
            for dep in node.depends_on:
                upstream = self.nodes.get(dep)
                if upstream is None:
                    raise ValueError(f"Step {node.name} depends on unknown step {dep}")
                if order[upstream.phase] >= order[node.phase]:
                    raise ValueError(f"Step {node.name} must run after {dep}")

    @property
    def last_record_id(self) -> Optional[str]:
        return self.history[-1].record_id if self.history else None

    async def _run_node(self, node: StepNode, ctx: RunContext) -> AgentResult:
        try:
            data = node.build_input(StepInputs(ctx, node))
        except Exception as e:
            logger.error(f"[{ctx.thread_id}] Could not build input for {node.name}: {e}")
            return AgentResult(agent_name=node.agent.name, success=False, error=f"Input error: {e}")
        return await node.agent.execute(data, ctx.thread_id)

    async def run(self, query: Query) -> PipelineRun:
        ctx = RunContext(query=query, nodes=self.nodes)
        start = time.time()
        logger.info(f"[{ctx.thread_id}] 🚀 Pipeline starting for '{query.text}' ({len(self.nodes)} steps)")

        for phase in STEP_PHASES:
            nodes = [n for n in self.nodes.values() if n.phase is phase]
            if not nodes:
                continue
            ctx.enter(phase)
            results = await asyncio.gather(*(self._run_node(n, ctx) for n in nodes))
            for node, result in zip(nodes, results):
                ctx.results[node.name] = result

        steps = [ledger_entry(name, ctx.results[name]) for name in self.nodes]
        ctx.enter(RunPhase.AGGREGATING)
        try:
            report, record_id = await self.aggregator.aggregate(
                thread_id=ctx.thread_id,
                query=query,
                competitors=ctx.value("competitor_discovery"),
                reviews=ctx.value("review_synthesis"),
                trends=ctx.value("trend_discovery"),
                urls=ctx.value("url_discovery"),
                insights=ctx.value("webpage_insights"),
                chart_data=ctx.value("chart_data"),
                summary=ctx.value("narrative_summary"),
                steps=steps,
            )
        except AggregationError:
            ctx.enter(RunPhase.FAILED)
            raise

        ctx.enter(RunPhase.COMPLETED)
        run = PipelineRun(report=report, record_id=record_id, phases=list(ctx.phases), results=dict(ctx.results))
        self.history.append(run)
        degraded = [s for s in steps if s.status is not StepStatus.SUCCEEDED]
        logger.info(
            f"[{ctx.thread_id}] ✅ Pipeline complete in {time.time() - start:.2f}s "
            f"({len(steps) - len(degraded)}/{len(steps)} steps clean)"
        )
        return run

    def summary(self, run: Optional[PipelineRun] = None) -> str:
        run = run or (self.history[-1] if self.history else None)
        if run is None:
            return "Pipeline Summary: no runs yet"
        lines = [f"Pipeline Summary ({run.report.query.thread_id}):"]
        for step in run.report.steps:
            detail = f" - {step.detail}" if step.detail else ""
            lines.append(f"  {step.name}: {step.status.value}{detail}")
        return "\n".join(lines)
