"""
Version policy resolution with a time-bounded cache.

The provider reads the policy from a durable store at most once per TTL window
and degrades to environment/hardcoded defaults whenever the store cannot be
read. Callers never see a store error.

Example:
    >>> provider = ConfigProvider(store)
    >>> policy = await provider.resolve_policy()
    >>> policy.minimum_required_version
    '2.0.0'
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Mapping, Optional, Protocol

from loguru import logger

from .. import config
from ..core.exceptions import (
    ConfigStoreUnavailable,
    MalformedPolicyDocument,
    PolicyException,
)
from ..core.versioning import BASELINE_VERSION, canonical_version, parse_version, try_parse_version
from .policy import BASELINE_POLICY, PolicyCache, VersionPolicy


class PolicyStore(Protocol):
    """Durable store holding the single policy document."""

    async def get_policy(self) -> Optional[Mapping[str, Any]]:
        """Return the policy document, or None when none exists yet."""
        ...


def _pick_version(field: str, store_value: Any, env_value: Any) -> str:
    for source, candidate in (("store", store_value), ("environment", env_value)):
        if candidate in (None, ""):
            continue
        if try_parse_version(candidate) is not None:
            return canonical_version(candidate)
        logger.warning(f"[Policy] Ignoring invalid {field} from {source}")
    return BASELINE_VERSION


def build_policy(document: Mapping[str, Any], defaults: Mapping[str, Any]) -> VersionPolicy:
    """
    Merge a store document with defaults, field by field.

    Precedence is store value, then environment default, then hardcoded
    default. Values of the wrong type or unparseable versions count as missing.
    """
    if not isinstance(document, Mapping):
        raise MalformedPolicyDocument("expected a mapping", type(document).__name__)

    minimum = _pick_version(
        "minimum_required_version",
        document.get("minimum_required_version"),
        defaults.get("minimum_required_version"),
    )
    latest = _pick_version(
        "latest_version",
        document.get("latest_version"),
        defaults.get("latest_version"),
    )

    ota_url = document.get("ota_url")
    if not isinstance(ota_url, str) or not ota_url:
        ota_url = defaults.get("ota_url") or config.DEFAULT_OTA_URL

    force_update = document.get("force_update")
    if not isinstance(force_update, bool):
        force_update = defaults.get("force_update_enabled", config.DEFAULT_FORCE_UPDATE)

    if parse_version(latest) < parse_version(minimum):
        logger.warning(
            f"[Policy] latest_version {latest} is below minimum {minimum}, raising it to the minimum"
        )
        latest = minimum

    return VersionPolicy(
        minimum_required_version=minimum,
        latest_version=latest,
        ota_url=ota_url,
        force_update_enabled=bool(force_update),
    )


class ConfigProvider:
    """
    Resolves the current VersionPolicy.

    Concurrency:
        Concurrent callers that miss the cache share one in-flight store read.
        The read is shielded, so a cancelled request does not abort it and its
        result still lands in the cache for later requests.
    """

    def __init__(
        self,
        store: PolicyStore,
        ttl_seconds: float = config.POLICY_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        defaults_loader: Callable[[], Mapping[str, Any]] = config.get_env_policy_defaults,
    ):
        self._store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._defaults_loader = defaults_loader

        self._cache: PolicyCache | None = None
        self._inflight: asyncio.Task | None = None
        self._generation = 0

    async def resolve_policy(self) -> VersionPolicy:
        """Return the cached policy, refreshing it from the store when stale."""
        cached = self._cache
        if cached is not None and cached.is_fresh(self._clock(), self.ttl_seconds):
            return cached.policy

        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(self._refresh(self._generation))
            task.add_done_callback(self._clear_inflight)
            self._inflight = task
        return await asyncio.shield(task)

    def invalidate(self) -> None:
        """Drop the cached policy so the next resolve_policy() hits the store."""
        self._cache = None
        self._inflight = None
        self._generation += 1
        logger.info("[Policy] Cache invalidated")

    async def get_app_config(self) -> dict[str, Any]:
        policy = await self.resolve_policy()
        return policy.to_client_dict()

    async def get_required_version(self) -> str:
        policy = await self.resolve_policy()
        return policy.minimum_required_version

    async def get_ota_url(self) -> str:
        policy = await self.resolve_policy()
        return policy.ota_url

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None

    async def _refresh(self, generation: int) -> VersionPolicy:
        try:
            policy = await self._load_from_store()
            logger.debug(f"[Policy] Loaded from store: minimum={policy.minimum_required_version}")
        except PolicyException as e:
            logger.error(f"{e.log_line()}; using environment fallback")
            policy = self._fallback_policy()
        except Exception as e:
            logger.exception(f"[Policy] Unexpected error resolving policy: {e}; using environment fallback")
            policy = self._fallback_policy()

        # A refresh that started before invalidate() must not repopulate the cache
        if generation == self._generation:
            self._cache = PolicyCache(policy=policy, resolved_at=self._clock())
        return policy

    async def _load_from_store(self) -> VersionPolicy:
        try:
            document = await self._store.get_policy()
        except Exception as exc:
            raise ConfigStoreUnavailable(type(self._store).__name__, exc) from exc

        if document is None:
            document = {}
        return build_policy(document, self._defaults_loader())

    def _fallback_policy(self) -> VersionPolicy:
        try:
            return build_policy({}, self._defaults_loader())
        except Exception as e:
            logger.exception(f"[Policy] Environment defaults unusable: {e}; using baseline policy")
            return BASELINE_POLICY
