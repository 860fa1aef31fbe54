"""
Alembic migration environment — reads DATABASE_URL_SYNC from settings.

Migrations run on a sync engine (psycopg2) while the app uses asyncpg.
Custom import tables (`import_*`) are created at runtime by the import
table manager and are never part of autogenerate.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from membersync.core.config import settings
from membersync.db.models import Base  # noqa: F401  registers every model

IMPORT_TABLE_PREFIX = "import_"

config = context.config

sync_url = settings.DATABASE_URL_SYNC
config.set_main_option("sqlalchemy.url", sync_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to):
    """Skip runtime-created import tables when comparing against the database."""
    if type_ == "table" and reflected and name.startswith(IMPORT_TABLE_PREFIX) and name != "import_tables":
        return False
    return True


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(sync_url, poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
        )
        with context.begin_transaction():
            context.run_migrations()
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
