"""App configuration endpoints.

None of these routes pass through the version gate: clients below the minimum
version must still be able to learn that they need to update.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from loguru import logger

from .. import config
from ..core.versioning import try_parse_version
from ..gate.config_provider import ConfigProvider
from .schemas import AppConfigResponse, OtaManifestResponse, PolicyUpdate, VersionConfigResponse
from .store import SqlPolicyStore

router = APIRouter(tags=["app-config"])


def get_provider(request: Request) -> ConfigProvider:
    return request.app.state.provider


def get_store(request: Request) -> SqlPolicyStore:
    return request.app.state.store


async def require_admin_token(x_admin_token: Optional[str] = Header(default=None)) -> None:
    """Admin routes are disabled unless ADMIN_API_TOKEN is configured."""
    expected = config.ADMIN_API_TOKEN
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API disabled"
        )
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )


@router.get("/api/app-config", response_model=AppConfigResponse)
async def get_app_config(provider: ConfigProvider = Depends(get_provider)):
    """Version requirements and update information for clients."""
    return await provider.get_app_config()


@router.get("/app/version-config", response_model=VersionConfigResponse)
async def get_version_config(provider: ConfigProvider = Depends(get_provider)):
    policy = await provider.resolve_policy()
    return {"version": policy.latest_version, "otaUrl": policy.ota_url}


@router.get("/ota/ota-manifest.json", response_model=OtaManifestResponse)
async def get_ota_manifest(provider: ConfigProvider = Depends(get_provider)):
    manifest = await provider.get_app_config()
    manifest["timestamp"] = datetime.now(timezone.utc)
    return manifest


@router.put(
    "/api/admin/app-config",
    response_model=AppConfigResponse,
    dependencies=[Depends(require_admin_token)],
)
async def update_app_config(
    update: PolicyUpdate,
    provider: ConfigProvider = Depends(get_provider),
    store: SqlPolicyStore = Depends(get_store),
):
    """
    Partially update the stored policy and invalidate the policy cache.

    Rejects updates that would leave latestVersion below minimumRequiredVersion.
    """
    fields = update.model_dump(exclude_none=True)
    if not fields:
        raise HTTPException(
            status_code=422,
            detail="No policy fields supplied"
        )

    try:
        current = await store.get_policy() or {}
    except Exception as e:
        logger.error(f"[Policy] Cannot read policy store for update: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Policy store unavailable"
        )

    merged = {**current, **fields}
    minimum = try_parse_version(merged.get("minimum_required_version"))
    latest = try_parse_version(merged.get("latest_version"))
    if minimum is not None and latest is not None and latest < minimum:
        raise HTTPException(
            status_code=422,
            detail="latestVersion must not be lower than minimumRequiredVersion"
        )

    try:
        await store.update_policy(**fields)
    except Exception as e:
        logger.error(f"[Policy] Failed to store policy update: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Policy store unavailable"
        )

    provider.invalidate()
    logger.info(f"[Policy] Admin updated fields: {sorted(fields)}")
    return await provider.get_app_config()
