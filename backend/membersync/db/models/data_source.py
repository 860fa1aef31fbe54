"""
DataSource — one configured import.

Holds the cleaning configuration, field mappings and schedule that
persist across recurring sync runs, plus the current sync status.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from membersync.db.models.base import Base, JSONType, generate_uuid, utcnow


class DataSource(Base):
    """One row per configured data source."""

    __tablename__ = "data_sources"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    site_id = Column(String(36), nullable=True, index=True)

    # ── Source / destination ─────────────────
    source_type = Column(String(50), nullable=False, default="csv_upload")
    destination_type = Column(String(50), nullable=False, default="members")
    table_name = Column(String(255), nullable=True)     # custom destination only

    # ── Stored configuration ─────────────────
    # connection settings, e.g. {"url": "...", "delimiter": ","}
    config = Column(JSONType, default=dict)
    column_config = Column(JSONType, default=dict)
    field_mappings = Column(JSONType, default=list)
    schedule = Column(JSONType, default=dict)

    # ── Sync state ───────────────────────────
    sync_status = Column(String(20), nullable=False, default="idle", index=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    next_sync_at = Column(DateTime(timezone=True), nullable=True, index=True)
    retry_attempt = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    # ── Audit timestamps ─────────────────────
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # ── Relationships ─────────────────────────
    sync_logs = relationship("SyncLog", back_populates="data_source", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<DataSource {self.id} name={self.name!r} destination={self.destination_type} status={self.sync_status}>"
