# ==============================================================================
# USER REPOSITORY
# ==============================================================================

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from farm_data.core.exceptions import (
    DatabaseError,
    DependencyViolationError,
    InvalidParameterError,
)
from farm_data.database.adapters.base_adapter import StorageErrorKind
from farm_data.database.crud import CrudFacade
from farm_data.database.repositories.base_repository import BaseRepository, Payload

REQUIRED_USER_FIELDS = ("email", "password_hash", "name")


def normalize_email(email: Any) -> str:
    return str(email).strip().lower()


class UserRepository(BaseRepository):
    """
    Repository for user accounts.

    Emails are stored trimmed and lower-cased, and lookups normalize
    the same way.
    """

    def __init__(self, crud: CrudFacade) -> None:
        super().__init__(crud, "users")

    async def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return await self._crud.find_one("users", {"email": normalize_email(email)})

    async def email_exists(self, email: str) -> bool:
        return await self._crud.exists("users", {"email": normalize_email(email)})

    async def find_with_farm_count(self, user_id: Any) -> Optional[Dict[str, Any]]:
        """User row (without password hash) plus the number of owned farms."""
        query = """
            SELECT u.id, u.email, u.name, u.is_active, u.last_login,
                   u.created_at, u.updated_at,
                   COUNT(f.id) AS farm_count
            FROM users u
            LEFT JOIN farms f ON f.owner_id = u.id
            WHERE u.id = ?
            GROUP BY u.id
        """
        return await self._fetch_first(query, [user_id], user_id)

    async def create_user(self, data: Payload) -> Dict[str, Any]:
        """
        Create a user.

        Raises:
            InvalidParameterError: A required field is missing or blank
            DependencyViolationError: The email is already registered
        """
        payload = self._to_dict(data)
        missing = [
            name for name in REQUIRED_USER_FIELDS
            if not str(payload.get(name) or "").strip()
        ]
        if missing:
            raise InvalidParameterError(
                "Email, password hash, and name are required",
                details={"missing": missing},
            )

        payload["email"] = normalize_email(payload["email"])
        payload["name"] = str(payload["name"]).strip()

        if await self.email_exists(payload["email"]):
            raise DependencyViolationError(
                "User with this email already exists",
                details={"table": "users", "field": "email"},
            )
        try:
            return await self._crud.create("users", payload)
        except DatabaseError as e:
            # A concurrent signup inserted the same email after the check
            if e.details.get("storage_error_kind") != StorageErrorKind.CONSTRAINT.value:
                raise
            raise DependencyViolationError(
                "User with this email already exists",
                details={"table": "users", "field": "email"},
            ) from e

    async def find_auth_data(self, user_id: Any) -> Optional[Dict[str, Any]]:
        """Credentials row for an active user, None otherwise."""
        query = """
            SELECT id, email, password_hash, name, is_active,
                   created_at, updated_at, last_login
            FROM users
            WHERE id = ? AND is_active = 1
            LIMIT 1
        """
        return await self._fetch_first(query, [user_id], user_id)

    async def update_last_login(self, user_id: Any) -> Optional[Dict[str, Any]]:
        return await self.update_by_id(
            user_id,
            {"last_login": datetime.now(timezone.utc).replace(tzinfo=None)},
            user_id=user_id,
        )
