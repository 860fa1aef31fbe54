"""
SyncLog — one row per sync run.

Created as `started` when a run begins and finalised as
success / partial / failed with counts and a bounded error sample.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from membersync.db.models.base import Base, JSONType, generate_uuid, utcnow


class SyncLog(Base):
    """Audit record of one pipeline execution."""

    __tablename__ = "sync_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    data_source_id = Column(String(36), ForeignKey("data_sources.id", ondelete="CASCADE"), nullable=False, index=True)

    # ── Status / counts ──────────────────────
    status = Column(String(20), nullable=False, default="started", index=True)
    records_imported = Column(Integer, nullable=False, default=0)
    records_skipped = Column(Integer, nullable=False, default=0)
    records_failed = Column(Integer, nullable=False, default=0)

    # ── Error ─────────────────────────────────
    error_message = Column(Text, nullable=True)
    errors = Column(JSONType, default=list)     # [{"row": 3, "message": "..."}]

    # ── Timing (UTC) ─────────────────────────
    started_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # ── Relationships ─────────────────────────
    data_source = relationship("DataSource", back_populates="sync_logs")

    def __repr__(self) -> str:
        return f"<SyncLog {self.id} source={self.data_source_id} status={self.status} imported={self.records_imported}>"
