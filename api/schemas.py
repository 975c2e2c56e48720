"""
Pydantic schemas for API request/response validation.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from models.schemas import MarketReport


# ─── Request Schemas ─────────────────────────────────────────────────────────

class RunPipelineRequest(BaseModel):
    query: str = Field(..., description="Natural-language research question, e.g. 'app for music streaming'")
    thread_id: Optional[str] = Field(None, description="Correlation id; generated when omitted")
    user_id: Optional[str] = None


# ─── Response Schemas ────────────────────────────────────────────────────────

class PipelineRunResponse(BaseModel):
    record_id: str
    degraded_steps: List[str]
    report: MarketReport


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
