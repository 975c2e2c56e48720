"""
SQL-backed report sink.
One row per pipeline run in `market_report`; the full report is stored as
JSON so it can be read back as a MarketReport without a join.
"""

from typing import List, Optional

from sqlalchemy.orm import sessionmaker

from agents.ports import ReportSink
from db.database import SessionLocal, get_db
from db.models import MarketReportRecord
from models.schemas import MarketReport


class SqlReportSink(ReportSink):

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self.session_factory = session_factory

    def persist(self, report: MarketReport) -> str:
        with get_db(self.session_factory) as db:
            db.add(MarketReportRecord(
                report_id=report.report_id,
                thread_id=report.query.thread_id,
                user_id=report.query.user_id,
                query=report.query.text,
                summary=report.summary,
                report_json=report.model_dump(mode="json"),
                steps_json=[s.model_dump(mode="json") for s in report.steps],
                created_at=report.created_at,
            ))
        return report.report_id

    def get_report(self, report_id: str) -> Optional[MarketReport]:
        with get_db(self.session_factory) as db:
            row = db.get(MarketReportRecord, report_id)
            if row is None:
                return None
            return MarketReport.model_validate(row.report_json)

    def list_reports(self, user_id: Optional[str] = None, limit: int = 20) -> List[MarketReport]:
        with get_db(self.session_factory) as db:
            q = db.query(MarketReportRecord)
            if user_id is not None:
                q = q.filter(MarketReportRecord.user_id == user_id)
            rows = q.order_by(MarketReportRecord.created_at.desc()).limit(limit).all()
            return [MarketReport.model_validate(r.report_json) for r in rows]
