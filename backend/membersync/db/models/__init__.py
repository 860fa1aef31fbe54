"""
Models package — re-exports Base and all models.

Import models here so Alembic's `target_metadata = Base.metadata`
picks up every table automatically.

When adding a new model:
    1. Create `membersync/db/models/<table_name>.py`
    2. Import it here
"""

from membersync.db.models.base import Base
from membersync.db.models.data_source import DataSource
from membersync.db.models.import_table import ImportTable
from membersync.db.models.member import Member, MemberTransaction, MemberVisit
from membersync.db.models.sync_log import SyncLog

__all__ = [
    "Base",
    "DataSource",
    "ImportTable",
    "Member",
    "MemberTransaction",
    "MemberVisit",
    "SyncLog",
]
