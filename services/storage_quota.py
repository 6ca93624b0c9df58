"""
Storage quota — the narrow surface file-management code uses.

Keyed on the authenticated CurrentUser; the counters live on the user
document. Updates are atomic $inc operations so concurrent uploads and
deletes never lose a write.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from errors import InvalidTokenError, ValidationError
from repositories.user_repository import UserRepository
from services.auth_service import CurrentUser


@dataclass(frozen=True)
class StorageUsage:
    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    @property
    def used_percentage(self) -> int:
        if self.limit <= 0:
            return 100
        return round(self.used * 100 / self.limit)


class StorageQuotaService:
    def __init__(self, users: UserRepository) -> None:
        self._users = users

    async def get_usage(self, current_user: CurrentUser) -> StorageUsage:
        user = await self._users.find_by_id(current_user.user_id)
        if user is None:
            raise InvalidTokenError()
        return StorageUsage(used=user.storage_used, limit=user.storage_limit)

    async def check_storage_limit(self, current_user: CurrentUser, file_size: int) -> bool:
        """True when *file_size* more bytes still fit in the user's quota."""
        usage = await self.get_usage(current_user)
        return usage.used + file_size <= usage.limit

    async def update_storage_usage(
        self,
        current_user: CurrentUser,
        file_size: int,
        operation: Literal["add", "remove"] = "add",
    ) -> None:
        if file_size < 0:
            raise ValidationError("file size must not be negative", field="file_size")
        if operation == "add":
            delta = file_size
        elif operation == "remove":
            delta = -file_size
        else:
            raise ValidationError(f"unknown storage operation: {operation}")
        await self._users.increment_storage_used(current_user.user_id, delta)
