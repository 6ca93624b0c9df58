"""
Storage quota routes.

GET /api/storage/usage — bytes used, limit and remaining for the current user

Upload and delete handlers live outside this service; they call
StorageQuotaService directly to check and update usage.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import get_current_user, get_storage_quota_service
from schemas.dto.responses.storage import StorageUsageResponse
from services.auth_service import CurrentUser
from services.storage_quota import StorageQuotaService

router = APIRouter(prefix="/api/storage", tags=["storage"])


@router.get("/usage", response_model=StorageUsageResponse)
async def storage_usage(
    current_user: CurrentUser = Depends(get_current_user),
    quota: StorageQuotaService = Depends(get_storage_quota_service),
) -> StorageUsageResponse:
    usage = await quota.get_usage(current_user)
    return StorageUsageResponse.from_usage(usage)
