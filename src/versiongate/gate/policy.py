"""
Version policy value objects.

A VersionPolicy is an immutable snapshot; the cache that holds it is replaced
wholesale so readers never see a half-updated policy.
"""

from dataclasses import dataclass
from typing import Any

from ..core.versioning import BASELINE_VERSION


@dataclass(frozen=True)
class VersionPolicy:
    """
    Immutable version policy snapshot.

    Attributes:
        minimum_required_version: Oldest client version allowed through the gate
        latest_version: Newest published client version
        ota_url: Where an updated client can be fetched (may be empty)
        force_update_enabled: Whether clients should treat updates as mandatory
    """
    minimum_required_version: str = BASELINE_VERSION
    latest_version: str = BASELINE_VERSION
    ota_url: str = ""
    force_update_enabled: bool = True

    def to_client_dict(self) -> dict[str, Any]:
        """Client-facing representation served by the app-config endpoint."""
        return {
            "version": self.latest_version,
            "minimumRequiredVersion": self.minimum_required_version,
            "otaUrl": self.ota_url,
            "forceUpdate": self.force_update_enabled,
        }


BASELINE_POLICY = VersionPolicy()


@dataclass(frozen=True)
class PolicyCache:
    """A resolved policy and the monotonic time it was resolved at."""
    policy: VersionPolicy
    resolved_at: float

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return (now - self.resolved_at) < ttl_seconds
