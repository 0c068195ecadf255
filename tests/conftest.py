"""Pytest configuration and shared fixtures."""

import pytest
from unittest.mock import AsyncMock

from versiongate.gate.classifier import ClientClassifier
from versiongate.gate.policy import VersionPolicy
from versiongate.gate.version_gate import VersionGate


POLICY_ENV_VARS = ("MINIMUM_REQUIRED_VERSION", "LATEST_VERSION", "OTA_URL", "FORCE_UPDATE")

FALLBACK_URL = "https://updates.example.com"

CHROME_DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
CHROME_ANDROID_UA = (
    "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
)
SAFARI_IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


# ============================================================================
# Environment
# ============================================================================

@pytest.fixture(autouse=True)
def clean_policy_env(monkeypatch):
    """Make sure policy defaults come from the hardcoded values unless a test sets them."""
    for name in POLICY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# Gate Components
# ============================================================================

@pytest.fixture
def policy():
    """Policy with the baseline 2.0.0 minimum and no OTA URL."""
    return VersionPolicy(minimum_required_version="2.0.0", latest_version="2.3.0")


@pytest.fixture
def classifier():
    return ClientClassifier(extra_app_tokens=[])


@pytest.fixture
def strict_gate(classifier):
    return VersionGate(classifier, require_version_header=True, update_fallback_url=FALLBACK_URL)


@pytest.fixture
def permissive_gate(classifier):
    return VersionGate(classifier, require_version_header=False, update_fallback_url=FALLBACK_URL)


# ============================================================================
# Store Doubles
# ============================================================================

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """Policy store mock returning a complete document."""
    mock = AsyncMock()
    mock.get_policy.return_value = {
        "minimum_required_version": "2.1.0",
        "latest_version": "2.4.0",
        "ota_url": "https://ota.example.com/app.apk",
        "force_update": True,
    }
    return mock
