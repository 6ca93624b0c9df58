"""Response DTO for GET /api/storage/usage."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from services.storage_quota import StorageUsage


class StorageUsageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    used: int
    limit: int
    remaining: int
    used_percentage: int

    @classmethod
    def from_usage(cls, usage: StorageUsage) -> "StorageUsageResponse":
        return cls(
            used=usage.used,
            limit=usage.limit,
            remaining=usage.remaining,
            used_percentage=usage.used_percentage,
        )
