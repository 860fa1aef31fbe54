"""
ImportTable — registry of dynamically created tables for custom imports.

The physical table is created separately; this row links it to its
data source and keeps the column schema and row count.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from membersync.db.models.base import Base, JSONType, generate_uuid, utcnow


class ImportTable(Base):
    __tablename__ = "import_tables"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    data_source_id = Column(String(36), ForeignKey("data_sources.id", ondelete="CASCADE"), nullable=False, unique=True)
    table_name = Column(String(255), nullable=False, unique=True)
    columns = Column(JSONType, default=list)    # [{"name": "...", "type": "text"}]
    row_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ImportTable {self.table_name} source={self.data_source_id} rows={self.row_count}>"
