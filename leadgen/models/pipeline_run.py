"""
Pipeline run record — one row per acquisition / qualification / outreach invocation.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, Text, Integer, DateTime, JSON
from sqlalchemy.sql import func

from leadgen.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class PipelineRun(Base):
    __tablename__ = 'pipeline_runs'

    id = Column(Text, primary_key=True)
    kind = Column(Text, nullable=False)            # acquisition | qualification | outreach
    status = Column(Text, nullable=False, default='queued')
    params = Column(JSON, default=dict)
    result = Column(JSON, nullable=True)
    error_count = Column(Integer, default=0)
    errors = Column(JSON, nullable=True)           # last 20 error strings
    summary = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'kind': self.kind,
            'status': self.status,
            'params': self.params or {},
            'result': self.result,
            'error_count': self.error_count or 0,
            'errors': self.errors or [],
            'summary': self.summary or '',
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
        }
