# ==============================================================================
# CRUD FACADE TESTS
# ==============================================================================
# Whitelisting, filters, pagination and dependency-checked deletes
# ==============================================================================

import pytest

from farm_data.core.exceptions import (
    DatabaseErrorCode,
    DependencyViolationError,
    InvalidColumnsError,
    InvalidOrderByError,
    InvalidParameterError,
    InvalidTableError,
    RateLimitExceededError,
)
from farm_data.core.settings import settings
from farm_data.database.crud import CrudFacade
from farm_data.database.operations import DatabaseOperations, OperationKind
from farm_data.database.query_builder import QueryBuilder
from farm_data.database.rate_limiter import SlidingWindowRateLimiter

from tests.conftest import RecordingEngine


class TestQueryBuilder:
    """Tests for SQL construction."""

    def test_select_with_filters(self):
        request = QueryBuilder().select("farms", {"owner_id": 7}, limit=10)

        assert request.query == (
            "SELECT * FROM farms WHERE owner_id = ? "
            "ORDER BY created_at DESC LIMIT ? OFFSET ?"
        )
        assert request.params == [7, 10, 0]
        assert request.operation is OperationKind.QUERY

    def test_operator_filters(self):
        where, params = QueryBuilder().where({
            "qty": {"operator": "<=", "value": 5},
            "category": {"operator": "IN", "value": ["feed", "seed"]},
            "sku": {"operator": "LIKE", "value": "AB%"},
        })

        assert where == " WHERE qty <= ? AND category IN (?, ?) AND sku LIKE ?"
        assert params == [5, "feed", "seed", "AB%"]

    def test_unknown_operator_falls_back_to_equality(self):
        where, params = QueryBuilder().where({"name": {"operator": "; DROP", "value": "x"}})
        assert where == " WHERE name = ?"
        assert params == ["x"]

    def test_null_filters(self):
        builder = QueryBuilder()
        assert builder.where({"field_id": None}) == ("", [])
        assert builder.where({"field_id": {"operator": "=", "value": None}}) == (
            " WHERE field_id IS NULL", []
        )
        assert builder.where({"field_id": {"operator": "!=", "value": None}}) == (
            " WHERE field_id IS NOT NULL", []
        )

    def test_in_requires_values(self):
        with pytest.raises(InvalidParameterError):
            QueryBuilder().where({"id": {"operator": "IN", "value": []}})

    def test_table_whitelist(self):
        with pytest.raises(InvalidTableError) as exc:
            QueryBuilder().select("sqlite_master")
        assert exc.value.code is DatabaseErrorCode.INVALID_TABLE

    @pytest.mark.parametrize("column", ["name; --", "1abc", "a b", ""])
    def test_invalid_columns(self, column):
        with pytest.raises(InvalidColumnsError):
            QueryBuilder().columns([column])

    def test_column_string(self):
        assert QueryBuilder().columns("id, name") == "id, name"

    def test_invalid_order_by(self):
        with pytest.raises(InvalidOrderByError):
            QueryBuilder().select("farms", order_by="name DESC; --")

    def test_direction_defaults_to_desc(self):
        assert QueryBuilder.direction("sideways") == "DESC"
        assert QueryBuilder.direction("asc") == "ASC"

    @pytest.mark.parametrize(
        ("limit", "expected"),
        [(0, 1), (-5, 1), (50, 50), (10_000, 1000), ("25", 25)],
    )
    def test_limit_clamped(self, limit, expected):
        assert QueryBuilder(max_limit=1000).clamp_limit(limit) == expected

    def test_negative_offset_clamped(self):
        assert QueryBuilder.clamp_offset(-10) == 0

    def test_payload_drops_protected_columns(self):
        payload = QueryBuilder().clean_payload({
            "id": 99,
            "created_at": "2020-01-01",
            "updated_at": "2020-01-01",
            "name": "Acme",
        })
        assert payload == {"name": "Acme"}

    def test_payload_with_only_protected_columns_rejected(self):
        with pytest.raises(InvalidParameterError):
            QueryBuilder().clean_payload({"id": 1})

    def test_delete_where_requires_filters(self):
        with pytest.raises(InvalidParameterError):
            QueryBuilder().delete_where("farm_members", {})


class TestCrudWithRecordingEngine:
    """Tests checking the statements sent to the engine."""

    @pytest.mark.asyncio
    async def test_limit_capped_at_maximum(self):
        engine = RecordingEngine()
        crud = CrudFacade(DatabaseOperations(engine))

        await crud.find_many("farms", limit=1_000_000)

        assert engine.executed[0].params[-2] == settings.DB_MAX_LIMIT

    @pytest.mark.asyncio
    async def test_default_limit(self):
        engine = RecordingEngine()
        crud = CrudFacade(DatabaseOperations(engine))

        await crud.find_many("farms")

        assert engine.executed[0].params[-2] == settings.DB_DEFAULT_LIMIT

    @pytest.mark.asyncio
    async def test_rejected_table_never_reaches_engine(self):
        engine = RecordingEngine()
        crud = CrudFacade(DatabaseOperations(engine))

        with pytest.raises(InvalidTableError):
            await crud.delete_by_id("users; DROP TABLE farms", 1)

        assert engine.executed == []

    @pytest.mark.asyncio
    async def test_delete_rate_limited_before_dependency_counts(self):
        engine = RecordingEngine()
        limiter = SlidingWindowRateLimiter(max_requests=1, window_ms=60_000)
        crud = CrudFacade(DatabaseOperations(engine, rate_limiter=limiter))
        limiter.check("u1")

        with pytest.raises(RateLimitExceededError):
            await crud.delete_by_id("farms", 1, actor_id="u1")

        assert engine.executed == []

    @pytest.mark.asyncio
    async def test_delete_charges_actor_once(self):
        engine = RecordingEngine()
        limiter = SlidingWindowRateLimiter(max_requests=5, window_ms=60_000)
        crud = CrudFacade(DatabaseOperations(engine, rate_limiter=limiter))

        await crud.delete_by_id("farms", 1, actor_id="u1")

        assert limiter.request_count("u1") == 1
        assert len(engine.executed) > 1


class TestCrudFacade:
    """End-to-end CRUD against SQLite."""

    @pytest.mark.asyncio
    async def test_create_returns_stored_row(self, crud, owner):
        farm = await crud.create("farms", {
            "id": 500,
            "name": "North",
            "owner_id": owner["id"],
            "metadata": {"irrigated": True},
        })

        assert farm["id"] != 500
        assert farm["name"] == "North"
        assert farm["metadata"] == '{"irrigated": true}'
        assert farm["created_at"] is not None

    @pytest.mark.asyncio
    async def test_find_by_id_missing(self, crud):
        assert await crud.find_by_id("farms", 12345) is None

    @pytest.mark.asyncio
    async def test_find_many_filters_and_pagination(self, crud, owner):
        for name in ("A", "B", "C"):
            await crud.create("farms", {"name": name, "owner_id": owner["id"]})

        page = await crud.find_many(
            "farms",
            {"owner_id": owner["id"]},
            order_by="name",
            order_direction="ASC",
            limit=2,
            offset=1,
        )

        assert [row["name"] for row in page] == ["B", "C"]

    @pytest.mark.asyncio
    async def test_find_many_in_filter(self, crud, owner):
        for name in ("A", "B", "C"):
            await crud.create("farms", {"name": name, "owner_id": owner["id"]})

        rows = await crud.find_many(
            "farms", {"name": {"operator": "IN", "value": ["A", "C"]}}, order_by="name"
        )

        assert sorted(row["name"] for row in rows) == ["A", "C"]

    @pytest.mark.asyncio
    async def test_count_and_exists(self, crud, owner):
        await crud.create("farms", {"name": "A", "owner_id": owner["id"]})

        assert await crud.count("farms") == 1
        assert await crud.exists("farms", {"name": "A"}) is True
        assert await crud.exists("farms", {"name": "Z"}) is False

    @pytest.mark.asyncio
    async def test_find_one(self, crud, owner):
        assert (await crud.find_one("users", {"email": "owner@example.com"}))["id"] == owner["id"]
        assert await crud.find_one("users", {"email": "nobody@example.com"}) is None

    @pytest.mark.asyncio
    async def test_update_by_id(self, crud, owner):
        farm = await crud.create("farms", {"name": "Old", "owner_id": owner["id"]})

        updated = await crud.update_by_id("farms", farm["id"], {"name": "New", "id": 999})

        assert updated["id"] == farm["id"]
        assert updated["name"] == "New"

    @pytest.mark.asyncio
    async def test_update_missing_row_returns_none(self, crud):
        assert await crud.update_by_id("farms", 4242, {"name": "Ghost"}) is None

    @pytest.mark.asyncio
    async def test_delete_without_dependents(self, crud, owner):
        farm = await crud.create("farms", {"name": "Empty", "owner_id": owner["id"]})

        result = await crud.delete_by_id("farms", farm["id"])

        assert result == {"success": True, "changes": 1}
        assert await crud.find_by_id("farms", farm["id"]) is None

    @pytest.mark.asyncio
    async def test_delete_blocked_by_dependents(self, crud, owner):
        farm = await crud.create("farms", {"name": "Busy", "owner_id": owner["id"]})
        await crud.create("animals", {"farm_id": farm["id"], "name": "Bess", "species": "cattle"})

        with pytest.raises(DependencyViolationError) as exc:
            await crud.delete_by_id("farms", farm["id"])

        error = exc.value
        assert error.status_code == 409
        assert error.details["dependent_table"] == "animals"
        assert error.details["foreign_key"] == "farm_id"
        assert error.details["dependent_count"] == 1
        assert await crud.find_by_id("farms", farm["id"]) is not None

    @pytest.mark.asyncio
    async def test_user_delete_blocked_by_owned_farm(self, crud, owner):
        await crud.create("farms", {"name": "Owned", "owner_id": owner["id"]})

        with pytest.raises(DependencyViolationError) as exc:
            await crud.delete_by_id("users", owner["id"])

        assert exc.value.details["dependent_table"] == "farms"

    @pytest.mark.asyncio
    async def test_updated_at_refreshed_by_trigger(self, crud, ops, owner):
        farm = await crud.create("farms", {"name": "Clock", "owner_id": owner["id"]})
        await ops.execute_query(
            "UPDATE farms SET updated_at = '2000-01-01 00:00:00' WHERE id = ?",
            [farm["id"]],
            operation="run",
        )

        await crud.update_by_id("farms", farm["id"], {"name": "Clock 2"})
        row = await crud.find_by_id("farms", farm["id"])

        assert row["updated_at"] != "2000-01-01 00:00:00"

    @pytest.mark.asyncio
    async def test_create_ignores_caller_id_and_created_at(self, crud):
        farm = await crud.create("farms", {
            "id": "x",
            "created_at": "y",
            "name": "Acme",
            "owner_id": "u1",
        })

        assert farm["name"] == "Acme"
        assert isinstance(farm["id"], int)
        assert farm["created_at"] not in (None, "y")

    @pytest.mark.asyncio
    async def test_delete_succeeds_after_dependent_removed(self, crud, owner):
        farm = await crud.create("farms", {"name": "Busy", "owner_id": owner["id"]})
        animal = await crud.create("animals", {
            "farm_id": farm["id"], "name": "Bess", "species": "cattle",
        })

        with pytest.raises(DependencyViolationError):
            await crud.delete_by_id("farms", farm["id"])

        await crud.delete_by_id("animals", animal["id"])
        result = await crud.delete_by_id("farms", farm["id"])

        assert result == {"success": True, "changes": 1}

    @pytest.mark.asyncio
    async def test_farm_lifecycle(self, crud, ops):
        farm = await crud.create("farms", {"name": "Acme", "owner_id": "u1"})

        found = await crud.find_by_id("farms", farm["id"])
        assert found["owner_id"] == "u1"

        await ops.execute_query(
            "UPDATE farms SET updated_at = '2000-01-01 00:00:00' WHERE id = ?",
            [farm["id"]],
            operation="run",
        )
        await crud.update_by_id("farms", farm["id"], {"name": "Acme Farm"})
        updated = await crud.find_by_id("farms", farm["id"])
        assert updated["name"] == "Acme Farm"
        assert updated["updated_at"] not in (None, "2000-01-01 00:00:00")

        animal = await crud.create("animals", {
            "farm_id": farm["id"], "name": "Daisy", "species": "cattle",
        })
        with pytest.raises(DependencyViolationError) as exc:
            await crud.delete_by_id("farms", farm["id"])
        assert exc.value.details["dependent_table"] == "animals"

        await crud.delete_by_id("animals", animal["id"])
        result = await crud.delete_by_id("farms", farm["id"])

        assert result == {"success": True, "changes": 1}
        assert await crud.find_by_id("farms", farm["id"]) is None
