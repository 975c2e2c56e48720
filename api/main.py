"""
FastAPI Application Entry Point
Market Research Synthesis Pipeline

Pipeline errors are mapped to HTTP responses here, once, for every route:
  InvalidQueryError  -> 422 (rejected before any external call)
  InferenceError     -> 503 (inference provider not configured / unreachable)
  AggregationError   -> 500 (report could not be persisted)
"""

import logging
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agents.errors import AggregationError, InferenceError, InvalidQueryError
from api.routes import router
from config.settings import settings
from db.database import init_db

logger = logging.getLogger(__name__)

# ─── Logging ─────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# ─── App ─────────────────────────────────────────────────────────────────────

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Multi-source market research pipeline. Discovers competitors, synthesizes "
        "storefront reviews, scrapes search trends, analyzes relevant articles, and "
        "returns a persisted report with a narrative summary and chart-ready data."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ─── Error Mapping ───────────────────────────────────────────────────────────

@app.exception_handler(InvalidQueryError)
async def invalid_query_handler(request: Request, exc: InvalidQueryError):
    return JSONResponse(status_code=422, content={"detail": exc.errors})


@app.exception_handler(InferenceError)
async def inference_unavailable_handler(request: Request, exc: InferenceError):
    logger.error(f"Inference unavailable for {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(AggregationError)
async def aggregation_failed_handler(request: Request, exc: AggregationError):
    logger.error(f"Pipeline aggregation failed: {exc}")
    return JSONResponse(status_code=500, content={"detail": f"Pipeline failed: {exc}"})


# ─── Startup ─────────────────────────────────────────────────────────────────

@app.on_event("startup")
async def startup_event():
    logger.info(
        f"🚀 Starting Market Research API (model={settings.OPENAI_MODEL}, "
        f"scrapfly={'on' if settings.SCRAPFLY_API_KEY else 'off'})"
    )
    init_db()


# ─── Routes ──────────────────────────────────────────────────────────────────

app.include_router(router, prefix="/api/v1")


@app.get("/", tags=["System"])
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "endpoints": ["/api/v1/pipeline/run", "/api/v1/reports/{report_id}", "/api/v1/health"],
        "status": "running",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
