"""
Tests for ImportTableManager: naming, schema derivation, batching and
error wrapping.
"""
from unittest.mock import AsyncMock

import pytest

from membersync.core.constants import DetectedType, StorageType
from membersync.pipeline.errors import InfrastructureError
from membersync.processing.types import ColumnConfig, ColumnPreview, QueryPage
from membersync.services.import_tables import (
    ImportTableManager,
    column_specs,
    generate_table_name,
)
from membersync.store.base import ColumnSpec


def _fixed_id():
    return "ABCDEF12-3456-7890-abcd-ef1234567890"


@pytest.fixture
def manager(memory_store):
    return ImportTableManager(memory_store, id_generator=_fixed_id)


class TestTableNames:

    def test_label_is_sanitized_and_suffixed(self):
        assert generate_table_name("Spring Roster 2025!", _fixed_id) == "import_spring_roster_2025_abcdef12"

    def test_empty_label_falls_back(self):
        assert generate_table_name("!!!", _fixed_id) == "import_data_abcdef12"

    def test_default_generator_gives_unique_names(self):
        assert generate_table_name("roster") != generate_table_name("roster")


class TestColumnSpecs:

    def test_from_column_config(self):
        columns = [
            ColumnConfig(source_name="Points", target_name="points", type=StorageType.INTEGER),
            ColumnConfig(source_name="Secret", target_name="secret", included=False),
            ColumnConfig(source_name="Id", target_name="id"),
        ]
        assert column_specs(columns) == [ColumnSpec("points", StorageType.INTEGER)]

    def test_from_previews(self):
        previews = [
            ColumnPreview(name="Joined On", detected_type=DetectedType.DATE),
            ColumnPreview(name="Email", detected_type=DetectedType.EMAIL),
        ]
        assert column_specs(previews) == [
            ColumnSpec("joined_on", StorageType.DATE),
            ColumnSpec("email", StorageType.TEXT),
        ]


class TestLifecycle:

    async def test_create_register_and_lookup(self, manager, memory_store):
        columns = [ColumnConfig(source_name="Name", target_name="name")]

        name = await manager.create_import_table("Roster", columns)
        await manager.register_import_table("ds-1", name, columns)

        assert name == "import_roster_abcdef12"
        assert memory_store.columns[name] == [ColumnSpec("name")]
        entry = await manager.get_import_table("ds-1")
        assert entry["table_name"] == name
        assert entry["columns"] == [{"name": "name", "type": "text", "nullable": True}]
        assert await manager.get_import_table("ds-unknown") is None

    async def test_drop_deregisters_and_drops(self, manager, memory_store):
        name = await manager.create_import_table("Roster", [])
        await manager.register_import_table("ds-1", name, [])

        await manager.drop_import_table(name)

        assert name not in memory_store.tables
        assert await manager.get_import_table("ds-1") is None

    async def test_truncate_resets_row_count(self, manager, memory_store):
        name = await manager.create_import_table("Roster", [ColumnConfig(source_name="n", target_name="n")])
        await manager.register_import_table("ds-1", name, [])
        await manager.insert_rows_batched(name, [{"n": "a"}, {"n": "b"}])
        assert memory_store.registry[name]["row_count"] == 2

        await manager.truncate_import_table(name)

        assert memory_store.tables[name] == []
        assert memory_store.registry[name]["row_count"] == 0

    async def test_schema_changes(self, manager):
        name = await manager.create_import_table("Roster", [ColumnConfig(source_name="n", target_name="n")])
        await manager.add_column(name, ColumnSpec("points", StorageType.NUMBER))

        columns = await manager.get_table_columns(name)

        assert [c.name for c in columns] == ["n", "points"]


class TestBatchedInsert:

    async def test_batches_and_progress(self, manager, memory_store):
        name = await manager.create_import_table("Roster", [ColumnConfig(source_name="n", target_name="n")])
        progress = []

        inserted = await manager.insert_rows_batched(
            name,
            [{"n": str(i)} for i in range(5)],
            batch_size=2,
            on_progress=lambda done, total: progress.append((done, total)),
        )

        assert inserted == 5
        assert progress == [(2, 5), (4, 5), (5, 5)]
        assert [r["_import_row_num"] for r in memory_store.tables[name]] == [1, 2, 3, 4, 5]

    async def test_async_progress_callback(self, manager):
        name = await manager.create_import_table("Roster", [ColumnConfig(source_name="n", target_name="n")])
        seen = []

        async def report(done, total):
            seen.append(done)

        await manager.insert_rows_batched(name, [{"n": "a"}], on_progress=report)

        assert seen == [1]

    async def test_empty_input_never_touches_store(self):
        store = AsyncMock()
        manager = ImportTableManager(store)

        assert await manager.insert_rows_batched("import_x", []) == 0
        assert await manager.insert_rows("import_x", []) == 0
        store.insert_rows.assert_not_called()

    async def test_invalid_batch_size(self, manager):
        with pytest.raises(ValueError):
            await manager.insert_rows_batched("import_x", [{"n": 1}], batch_size=0)

    async def test_row_count_comes_from_the_table(self):
        store = AsyncMock()
        store.insert_rows.return_value = 2
        store.query_table.return_value = QueryPage(rows=[], count=7)
        manager = ImportTableManager(store)

        await manager.insert_rows_batched("import_x", [{"n": 1}, {"n": 2}])

        store.update_import_table_row_count.assert_awaited_once_with("import_x", 7)


class TestErrorWrapping:

    async def test_store_failures_become_infrastructure_errors(self):
        store = AsyncMock()
        store.create_table.side_effect = RuntimeError("connection refused")
        manager = ImportTableManager(store, id_generator=_fixed_id)

        with pytest.raises(InfrastructureError, match="Failed to create import table: connection refused") as exc_info:
            await manager.create_import_table("Roster", [])

        assert exc_info.value.details == {"cause": "RuntimeError"}

    async def test_unknown_columns_fail_the_insert(self, manager):
        name = await manager.create_import_table("Roster", [ColumnConfig(source_name="n", target_name="n")])

        with pytest.raises(InfrastructureError, match="Failed to insert rows"):
            await manager.insert_rows_batched(name, [{"n": "a", "extra": "b"}])

    async def test_query_missing_table(self, manager):
        with pytest.raises(InfrastructureError, match="Failed to query import table"):
            await manager.query_import_table("import_missing")
