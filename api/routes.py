"""
FastAPI Route Handlers
Market Research Synthesis Pipeline
"""

import asyncio
import logging
from datetime import datetime
from functools import lru_cache

from fastapi import APIRouter, HTTPException, Depends

from api.schemas import RunPipelineRequest, PipelineRunResponse, HealthResponse
from agents.ports import CapabilityPorts
from config.settings import settings
from models.schemas import MarketReport
from utils.pipeline import build_ports, execute_pipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def _live_ports() -> CapabilityPorts:
    return build_ports()


def get_ports() -> CapabilityPorts:
    """Dependency providing the capability ports; overridden in tests. InferenceError maps to 503."""
    return _live_ports()


# ─── Health ──────────────────────────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    return HealthResponse(
        status="ok",
        version=settings.APP_VERSION,
        timestamp=datetime.utcnow(),
    )


# ─── Pipeline ────────────────────────────────────────────────────────────────

@router.post("/pipeline/run", response_model=PipelineRunResponse, tags=["Pipeline"])
async def run_pipeline(request: RunPipelineRequest, ports: CapabilityPorts = Depends(get_ports)):
    """
    Execute the research pipeline for one query:
    Competitors | Trends | URLs → Reviews | Page insights → Charts | Summary → Persist
    """
    run = await execute_pipeline(
        request.query,
        thread_id=request.thread_id,
        user_id=request.user_id,
        ports=ports,
    )
    logger.info(f"[{run.report.query.thread_id}] Served record {run.record_id}")

    return PipelineRunResponse(
        record_id=run.record_id,
        degraded_steps=list(run.report.degraded_steps),
        report=run.report,
    )


# ─── Reports ─────────────────────────────────────────────────────────────────

@router.get("/reports/{report_id}", response_model=MarketReport, tags=["Reports"])
async def get_report(report_id: str, ports: CapabilityPorts = Depends(get_ports)):
    """Read back a persisted report."""
    reader = getattr(ports.sink, "get_report", None)
    if reader is None:
        raise HTTPException(status_code=501, detail="The configured report sink cannot read reports back.")
    report = await asyncio.to_thread(reader, report_id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found.")
    return report
