"""
SQLAlchemy ORM Models
Market Research Synthesis Pipeline
"""

from sqlalchemy import Column, String, Text, DateTime, JSON, Index
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


class MarketReportRecord(Base):
    __tablename__ = "market_report"

    report_id = Column(String(36), primary_key=True)
    thread_id = Column(String(64), nullable=False)
    user_id = Column(String(255))
    query = Column(Text, nullable=False)
    summary = Column(Text)
    report_json = Column(JSON, nullable=False)   # full MarketReport
    steps_json = Column(JSON)                    # step ledger only
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_market_report_user", "user_id"),
        Index("ix_market_report_thread", "thread_id"),
    )
