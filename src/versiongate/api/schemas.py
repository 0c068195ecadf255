"""Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.versioning import canonical_version, is_valid_version


# ============================================================================
# App Config Schemas
# ============================================================================

class AppConfigResponse(BaseModel):
    """Client-facing version policy."""
    model_config = ConfigDict(populate_by_name=True)

    version: str
    minimum_required_version: str = Field(alias="minimumRequiredVersion")
    ota_url: str = Field(alias="otaUrl")
    force_update: bool = Field(alias="forceUpdate")


class VersionConfigResponse(BaseModel):
    """Latest version and where to get it."""
    model_config = ConfigDict(populate_by_name=True)

    version: str
    ota_url: str = Field(alias="otaUrl")


class OtaManifestResponse(AppConfigResponse):
    """OTA manifest served at /ota/ota-manifest.json."""
    timestamp: datetime


class PolicyUpdate(BaseModel):
    """Partial policy update sent by administrators."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    minimum_required_version: Optional[str] = Field(None, alias="minimumRequiredVersion")
    latest_version: Optional[str] = Field(None, alias="latestVersion")
    ota_url: Optional[str] = Field(None, alias="otaUrl", max_length=512)
    force_update: Optional[bool] = Field(None, alias="forceUpdate")

    @field_validator("minimum_required_version", "latest_version")
    @classmethod
    def _check_semver(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if not is_valid_version(value):
            raise ValueError("must be a semantic version such as 2.0.0")
        return canonical_version(value)


# ============================================================================
# Health Schemas
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    version: str
