import os

from .core.versioning import BASELINE_VERSION


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/versiongate.db")

POLICY_CACHE_TTL_SECONDS = float(os.getenv("POLICY_CACHE_TTL_SECONDS", "300"))  # 5 minutes

UPDATE_FALLBACK_URL = os.getenv("UPDATE_FALLBACK_URL", "https://mdresult.com")

# Comma separated "prefix:mode" pairs, mode is "strict" or "permissive"
GATE_ROUTES = os.getenv("GATE_ROUTES", "/api:strict")

# Extra user-agent fragments identifying our own (old) app builds
LEGACY_APP_TOKENS = os.getenv("LEGACY_APP_TOKENS", "")

ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN", "")

API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
API_RELOAD = os.getenv("API_RELOAD", "false").lower() == "true"

DEFAULT_OTA_URL = ""
DEFAULT_FORCE_UPDATE = True


def get_env_policy_defaults() -> dict:
    """
    Policy defaults from the environment, read at call time.

    Unset variables fall through to the hardcoded defaults. FORCE_UPDATE is
    only false when spelled exactly "false".
    """
    force_update = os.getenv("FORCE_UPDATE")
    return {
        "minimum_required_version": os.getenv("MINIMUM_REQUIRED_VERSION") or BASELINE_VERSION,
        "latest_version": os.getenv("LATEST_VERSION") or BASELINE_VERSION,
        "ota_url": os.getenv("OTA_URL") or DEFAULT_OTA_URL,
        "force_update_enabled": DEFAULT_FORCE_UPDATE if force_update is None else force_update != "false",
    }


def parse_token_list(raw: str) -> tuple[str, ...]:
    return tuple(token.strip().lower() for token in raw.split(",") if token.strip())
