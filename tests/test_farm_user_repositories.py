# ==============================================================================
# FARM & USER REPOSITORY TESTS
# ==============================================================================

from datetime import date

import pytest

from farm_data.core.exceptions import (
    DependencyViolationError,
    InvalidParameterError,
    RecordNotFoundError,
    TransactionError,
)
from farm_data.database.repositories import FarmRepository, UserRepository


@pytest.fixture
def farms(crud) -> FarmRepository:
    return FarmRepository(crud)


@pytest.fixture
def users(crud) -> UserRepository:
    return UserRepository(crud)


class TestFarmRepository:
    """Tests for farm access and lifecycle."""

    @pytest.mark.asyncio
    async def test_create_farm_seeds_membership_and_statistics(self, crud, farm, owner):
        members = await crud.find_many("farm_members", {"farm_id": farm["id"]})
        stats = await crud.find_many("farm_statistics", {"farm_id": farm["id"]})

        assert farm["name"] == "Green Acres"
        assert farm["owner_id"] == owner["id"]
        assert [(m["user_id"], m["role"]) for m in members] == [(owner["id"], "owner")]
        assert len(stats) == 1
        assert stats[0]["report_date"] == date.today().isoformat()

    @pytest.mark.asyncio
    async def test_create_farm_is_atomic(self, crud, farms, owner):
        with pytest.raises(TransactionError):
            await farms.create_farm({"name": "Broken", "acreage": 10}, owner["id"])

        assert await crud.count("farms") == 0
        assert await crud.count("farm_members") == 0
        assert await crud.count("farm_statistics") == 0

    @pytest.mark.asyncio
    async def test_create_farm_accepts_pydantic_model(self, farms, owner):
        from pydantic import BaseModel

        class FarmCreate(BaseModel):
            name: str
            location: str = "Unknown"

        created = await farms.create_farm(FarmCreate(name="Model Farm"), owner["id"])

        assert created["name"] == "Model Farm"
        assert created["location"] is None

    @pytest.mark.asyncio
    async def test_has_user_access(self, farms, farm, owner, outsider):
        assert await farms.has_user_access(farm["id"], owner["id"]) is True
        assert await farms.has_user_access(farm["id"], outsider["id"]) is False
        assert await farms.has_user_access(None, owner["id"]) is False

    @pytest.mark.asyncio
    async def test_find_by_owner(self, farms, farm, owner, outsider):
        assert [f["id"] for f in await farms.find_by_owner(owner["id"])] == [farm["id"]]
        assert await farms.find_by_owner(outsider["id"]) == []

    @pytest.mark.asyncio
    async def test_find_by_owner_includes_stats(self, crud, farms, farm, owner):
        await crud.create("animals", {"farm_id": farm["id"], "name": "Bess", "species": "cattle"})
        await crud.create("tasks", {"farm_id": farm["id"], "title": "Feed", "status": "in_progress"})
        await crud.create("tasks", {"farm_id": farm["id"], "title": "Mow", "status": "completed"})

        owned = await farms.find_by_owner(owner["id"], limit=5)

        assert owned[0]["animal_count"] == 1
        assert owned[0]["field_count"] == 0
        assert owned[0]["pending_tasks"] == 1

    @pytest.mark.asyncio
    async def test_find_by_user_includes_role(self, crud, farms, farm, owner, outsider):
        await crud.create("farm_members", {
            "farm_id": farm["id"], "user_id": outsider["id"], "role": "worker",
        })

        owned = await farms.find_by_user(owner["id"])
        shared = await farms.find_by_user(outsider["id"])

        assert owned[0]["user_role"] == "owner"
        assert shared[0]["user_role"] == "worker"
        assert shared[0]["id"] == farm["id"]
        assert shared[0]["pending_tasks"] == 0

    @pytest.mark.asyncio
    async def test_find_with_stats(self, crud, farms, farm, owner, outsider):
        await crud.create("animals", {"farm_id": farm["id"], "name": "Bess", "species": "cattle"})
        await crud.create("fields", {"farm_id": farm["id"], "name": "North"})
        await crud.create("tasks", {"farm_id": farm["id"], "title": "Feed"})
        await crud.create("tasks", {"farm_id": farm["id"], "title": "Fence", "status": "in_progress"})
        await crud.create("tasks", {"farm_id": farm["id"], "title": "Harvest", "status": "completed"})

        stats = await farms.find_with_stats(farm["id"], owner["id"])

        assert stats["animal_count"] == 1
        assert stats["field_count"] == 1
        assert stats["pending_tasks"] == 2
        assert await farms.find_with_stats(farm["id"], outsider["id"]) is None

    @pytest.mark.asyncio
    async def test_delete_farm_removes_owned_rows(self, crud, farms, farm, owner):
        result = await farms.delete_farm(farm["id"], owner["id"])

        assert result == {"success": True, "changes": 1}
        assert await crud.count("farms") == 0
        assert await crud.count("farm_members") == 0
        assert await crud.count("farm_statistics") == 0

    @pytest.mark.asyncio
    async def test_delete_farm_requires_owner(self, crud, farms, farm, outsider):
        await crud.create("farm_members", {
            "farm_id": farm["id"], "user_id": outsider["id"], "role": "worker",
        })

        with pytest.raises(RecordNotFoundError) as exc:
            await farms.delete_farm(farm["id"], outsider["id"])

        assert exc.value.status_code == 404
        assert "access denied" in exc.value.message
        assert await crud.count("farms") == 1

    @pytest.mark.asyncio
    async def test_delete_farm_blocked_by_dependents(self, crud, farms, farm, owner):
        await crud.create("tasks", {"farm_id": farm["id"], "title": "Feed"})

        with pytest.raises(DependencyViolationError) as exc:
            await farms.delete_farm(farm["id"], owner["id"])

        assert exc.value.details["dependent_table"] == "tasks"
        assert await crud.count("farm_members") == 1


class TestUserRepository:
    """Tests for user accounts."""

    @pytest.mark.asyncio
    async def test_create_user_normalizes_fields(self, users):
        user = await users.create_user({
            "email": "  New.User@Example.COM ",
            "password_hash": "hashed",
            "name": "  New User ",
        })

        assert user["email"] == "new.user@example.com"
        assert user["name"] == "New User"
        assert user["is_active"] == 1

    @pytest.mark.asyncio
    async def test_create_user_requires_fields(self, users):
        with pytest.raises(InvalidParameterError) as exc:
            await users.create_user({"email": "a@example.com", "name": " "})
        assert exc.value.details["missing"] == ["password_hash", "name"]

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, users, owner):
        with pytest.raises(DependencyViolationError):
            await users.create_user({
                "email": "OWNER@example.com",
                "password_hash": "x",
                "name": "Copy",
            })

    @pytest.mark.asyncio
    async def test_duplicate_email_inserted_after_check(self, monkeypatch, crud, users, owner):
        async def email_free(email):
            return False

        monkeypatch.setattr(users, "email_exists", email_free)

        with pytest.raises(DependencyViolationError) as exc:
            await users.create_user({
                "email": "owner@example.com",
                "password_hash": "x",
                "name": "Racer",
            })

        assert exc.value.details["field"] == "email"
        assert await crud.count("users") == 1

    @pytest.mark.asyncio
    async def test_find_by_email_is_case_insensitive(self, users, owner):
        found = await users.find_by_email(" Owner@Example.com")
        assert found["id"] == owner["id"]
        assert await users.find_by_email("missing@example.com") is None

    @pytest.mark.asyncio
    async def test_find_with_farm_count(self, users, farm, owner, outsider):
        with_farm = await users.find_with_farm_count(owner["id"])
        without = await users.find_with_farm_count(outsider["id"])

        assert with_farm["farm_count"] == 1
        assert without["farm_count"] == 0
        assert "password_hash" not in with_farm

    @pytest.mark.asyncio
    async def test_find_auth_data_only_for_active_users(self, crud, users, owner):
        auth = await users.find_auth_data(owner["id"])
        assert auth["password_hash"] == "hashed"

        await crud.update_by_id("users", owner["id"], {"is_active": False})
        assert await users.find_auth_data(owner["id"]) is None

    @pytest.mark.asyncio
    async def test_update_last_login(self, users, owner):
        assert owner["last_login"] is None
        updated = await users.update_last_login(owner["id"])
        assert updated["last_login"] is not None
