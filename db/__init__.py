from .database import init_db, get_db, build_engine, create_session_factory, engine, SessionLocal
from .models import Base, MarketReportRecord
from .repository import SqlReportSink

__all__ = [
    "init_db", "get_db", "build_engine", "create_session_factory", "engine", "SessionLocal",
    "Base", "MarketReportRecord", "SqlReportSink",
]
