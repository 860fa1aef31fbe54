"""
Tests for destination handlers and the router that dispatches to them.
"""
import pytest

from membersync.core.constants import DestinationType
from membersync.pipeline.errors import InfrastructureError, MappingError
from membersync.processing.types import RouteResult, RowError
from membersync.routing import DestinationRouter
from membersync.services.import_tables import ImportTableManager
from membersync.store.base import ColumnSpec


@pytest.fixture
def router(memory_store):
    return DestinationRouter(memory_store)


async def _seed_member(store, email="ann@x.co", site_id="site-1"):
    return await store.insert_row("members", {"first_name": "Ann", "email": email, "site_id": site_id})


class TestMembersHandler:

    async def test_inserts_members_with_defaults(self, router, memory_store):
        rows = [
            {"first_name": "Ann", "email": " Ann@X.co ", "tags": "vip, early"},
            {"first_name": "Bob", "membership_status": "lapsed"},
        ]

        result = await router.route(DestinationType.MEMBERS, rows, site_id="site-1")

        assert result == RouteResult(imported=2)
        ann, bob = memory_store.tables["members"]
        assert ann["email"] == "ann@x.co"
        assert ann["membership_status"] == "active"
        assert ann["tags"] == ["vip", "early"]
        assert ann["site_id"] == "site-1"
        assert bob["email"] is None
        assert bob["membership_status"] == "lapsed"

    async def test_row_without_identity_is_skipped(self, router):
        result = await router.route("members", [{"last_name": "Lee", "email": "  "}])

        assert result.imported == 0
        assert result.skipped == 1
        assert result.errors == [RowError(1, "Missing first_name and email")]

    async def test_duplicate_is_skipped_with_error(self, router, memory_store):
        await _seed_member(memory_store)

        result = await router.route(
            "members",
            [{"first_name": "Cy", "email": "cy@x.co"}, {"first_name": "Ann", "email": "ANN@x.co"}],
            site_id="site-1",
        )

        assert result.imported == 1
        assert result.skipped == 1
        assert result.errors == [RowError(2, "Duplicate: ann@x.co")]

    async def test_rejected_row_is_an_error_but_not_skipped(self, router, memory_store):
        memory_store.columns["members"] = [ColumnSpec("first_name")]

        result = await router.route("members", [{"first_name": "Ann", "email": "a@x.co"}])

        assert result.imported == 0
        assert result.skipped == 0
        assert len(result.errors) == 1
        assert result.errors[0].message.startswith("Unknown columns for members")

    async def test_infrastructure_failure_propagates(self, router, memory_store):
        memory_store.fail_inserts = True

        with pytest.raises(InfrastructureError):
            await router.route("members", [{"first_name": "Ann"}])

    async def test_progress_survives_infrastructure_failure(self, router, memory_store):
        memory_store.fail_after_inserts = 1
        progress = RouteResult()

        with pytest.raises(InfrastructureError):
            await router.route(
                "members",
                [{"first_name": "Ann"}, {"first_name": None, "email": None}, {"first_name": "Bob"}],
                result=progress,
            )

        assert progress.imported == 1
        assert progress.skipped == 1


class TestTransactionsHandler:

    async def test_links_to_member_by_email(self, router, memory_store):
        member = await _seed_member(memory_store)
        rows = [{"member_email": "ANN@x.co", "amount": 12.5, "transaction_date": "2024-03-01"}]

        result = await router.route("transactions", rows, site_id="site-1")

        assert result.imported == 1
        (txn,) = memory_store.tables["member_transactions"]
        assert txn["member_id"] == member["id"]
        assert txn["transaction_type"] == "purchase"

    async def test_missing_fields_and_unknown_member(self, router, memory_store):
        await _seed_member(memory_store)
        rows = [
            {"member_email": "ann@x.co", "amount": None, "transaction_date": "2024-03-01"},
            {"member_email": "ghost@x.co", "amount": 5, "transaction_date": "2024-03-01"},
        ]

        result = await router.route("transactions", rows, site_id="site-1")

        assert result.imported == 0
        assert result.skipped == 2
        assert result.errors == [
            RowError(1, "Missing required fields (member_email, amount, transaction_date)"),
            RowError(2, "Member not found: ghost@x.co"),
        ]

    async def test_member_lookup_is_scoped_to_site(self, router, memory_store):
        await _seed_member(memory_store, site_id="site-2")
        rows = [{"member_email": "ann@x.co", "amount": 5, "transaction_date": "2024-03-01"}]

        result = await router.route("transactions", rows, site_id="site-1")

        assert result.errors == [RowError(1, "Member not found: ann@x.co")]


class TestVisitsHandler:

    async def test_visit_defaults(self, router, memory_store):
        await _seed_member(memory_store)

        result = await router.route(
            "visits",
            [{"member_email": "ann@x.co", "visit_date": "2024-03-02", "notes": ""}],
            site_id="site-1",
        )

        assert result.imported == 1
        (visit,) = memory_store.tables["member_visits"]
        assert visit["visit_type"] == "general"
        assert visit["notes"] is None
        assert visit["site_id"] == "site-1"

    async def test_missing_visit_date(self, router):
        result = await router.route("visits", [{"member_email": "ann@x.co"}])

        assert result.skipped == 1
        assert result.errors[0].message == "Missing required fields (member_email, visit_date)"


class TestCustomDestination:

    async def test_rows_go_to_the_import_table(self, router, memory_store):
        await memory_store.create_table("import_roster_abc", [ColumnSpec("name"), ColumnSpec("points")])
        rows = [{"name": "Ann", "points": 3}, {"name": "Bob", "points": None}]

        result = await router.route("custom", rows, table_name="import_roster_abc")

        assert result == RouteResult(imported=2)
        stored = memory_store.tables["import_roster_abc"]
        assert [r["_import_row_num"] for r in stored] == [1, 2]

    async def test_table_name_is_required(self, router):
        with pytest.raises(MappingError):
            await router.route("custom", [{"name": "Ann"}])


class TestDestinationRouter:

    async def test_unknown_destination(self, router):
        with pytest.raises(MappingError, match="Unknown destination type"):
            await router.route("spreadsheets", [])

    async def test_handlers_can_be_injected(self, memory_store):
        class Recorder:
            def __init__(self):
                self.calls = []

            async def route(self, rows, *, site_id=None, table_name=None, result=None):
                self.calls.append((list(rows), site_id, table_name))
                return RouteResult(imported=len(rows))

        recorder = Recorder()
        router = DestinationRouter(
            memory_store,
            import_tables=ImportTableManager(memory_store),
            handlers={DestinationType.VISITS: recorder},
        )

        result = await router.route("visits", [{"a": 1}], site_id="s")

        assert result.imported == 1
        assert recorder.calls == [([{"a": 1}], "s", None)]
        with pytest.raises(MappingError, match="No handler registered"):
            await router.route("members", [])
