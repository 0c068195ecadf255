"""
API endpoint tests for the version gate middleware and app-config routes.
Run with: pytest tests/test_api_endpoints.py -v
"""

from unittest.mock import AsyncMock

import pytest
from fastapi import APIRouter
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from versiongate import config
from versiongate.api.database import init_db
from versiongate.api.main import create_app
from versiongate.api.middleware import parse_gate_routes

from tests.conftest import CHROME_DESKTOP_UA


results_router = APIRouter()


@results_router.get("/api/results/{result_id}")
async def get_result(result_id: int):
    return {"id": result_id, "grade": "A"}


@results_router.get("/api/feed")
async def get_feed():
    return {"items": []}


GATE_ROUTES = parse_gate_routes("/api/results:strict,/api/feed:permissive")


def make_engine():
    return create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
async def db_engine():
    engine = make_engine()
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def app(db_engine):
    return create_app(db_engine=db_engine, gate_routes=GATE_ROUTES, extra_routers=[results_router])


@pytest.fixture
async def client(app):
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_token(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_API_TOKEN", "s3cret")
    return {"X-Admin-Token": "s3cret"}


class TestHealth:
    """Health check endpoint tests."""

    async def test_health_check(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "version" in data


class TestAppConfig:
    """Informational endpoints are never gated."""

    async def test_app_config_defaults(self, client):
        response = await client.get("/api/app-config")
        assert response.status_code == 200
        assert response.json() == {
            "version": "2.0.0",
            "minimumRequiredVersion": "2.0.0",
            "otaUrl": "",
            "forceUpdate": True,
        }

    async def test_app_config_reachable_by_outdated_client(self, client):
        response = await client.get(
            "/api/app-config",
            headers={"User-Agent": "okhttp/4.9", "X-App-Version": "1.0.0"},
        )
        assert response.status_code == 200

    async def test_version_config(self, client):
        response = await client.get("/app/version-config", headers={"User-Agent": "okhttp/4.9"})
        assert response.status_code == 200
        assert response.json() == {"version": "2.0.0", "otaUrl": ""}

    async def test_trailing_slash_not_gated_under_api_prefix(self, db_engine):
        app = create_app(db_engine=db_engine, gate_routes=parse_gate_routes("/api:strict"))
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
            response = await ac.get(
                "/api/app-config/",
                headers={"User-Agent": "okhttp/4.9", "X-App-Version": "1.0.0"},
            )
        assert response.status_code == 200
        assert response.json()["minimumRequiredVersion"] == "2.0.0"

    async def test_ota_manifest(self, client):
        response = await client.get("/ota/ota-manifest.json", headers={"User-Agent": "okhttp/4.9"})
        assert response.status_code == 200
        data = response.json()
        assert data["minimumRequiredVersion"] == "2.0.0"
        assert data["forceUpdate"] is True
        assert "timestamp" in data


class TestStrictRoutes:
    """Routes gated in strict-header-required mode."""

    async def test_browser_admitted_without_header(self, client):
        response = await client.get(
            "/api/results/1",
            headers={"User-Agent": CHROME_DESKTOP_UA, "Origin": "https://example.com"},
        )
        assert response.status_code == 200
        assert response.json() == {"id": 1, "grade": "A"}

    async def test_legacy_app_without_header_blocked(self, client):
        response = await client.get("/api/results/1", headers={"User-Agent": "okhttp/4.9"})
        assert response.status_code == 426
        data = response.json()
        assert data["forceUpdate"] is True
        assert data["reason"] == "missing-version-header"
        assert data["updateUrl"] == config.UPDATE_FALLBACK_URL

    async def test_old_version_blocked(self, client):
        response = await client.get(
            "/api/results/1",
            headers={"User-Agent": "MyApp/1.0", "X-App-Version": "1.5.0"},
        )
        assert response.status_code == 426
        assert response.json()["reason"] == "version-too-old"
        assert response.json()["minRequiredVersion"] == "2.0.0"

    async def test_current_version_admitted(self, client):
        response = await client.get(
            "/api/results/1",
            headers={"User-Agent": "MyApp/1.0", "X-App-Version": "2.0.0"},
        )
        assert response.status_code == 200

    async def test_invalid_version_blocked(self, client):
        response = await client.get(
            "/api/results/1",
            headers={"User-Agent": "MyApp/1.0", "X-App-Version": "abc"},
        )
        assert response.status_code == 426
        assert response.json()["reason"] == "invalid-version-format"
        assert "abc" not in response.text

    async def test_preflight_passes(self, client):
        response = await client.options(
            "/api/results/1",
            headers={
                "Origin": "https://example.com",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert response.status_code == 200


class TestPermissiveRoutes:
    """Routes gated in permissive-header-optional mode."""

    async def test_legacy_app_blocked_heuristically(self, client):
        response = await client.get("/api/feed", headers={"User-Agent": "okhttp/4.9"})
        assert response.status_code == 400
        assert response.json()["reason"] == "legacy-client-detected"
        assert response.json()["forceUpdate"] is True

    async def test_unclassified_client_admitted(self, client):
        response = await client.get(
            "/api/feed",
            headers={"User-Agent": "MyApp/2.0", "Origin": "https://example.com"},
        )
        assert response.status_code == 200

    async def test_version_header_still_enforced(self, client):
        response = await client.get(
            "/api/feed",
            headers={"User-Agent": "MyApp/1.0", "X-App-Version": "1.0.0"},
        )
        assert response.status_code == 426


class TestUngatedRoutes:

    async def test_unmatched_path_not_gated(self, client):
        response = await client.get("/favicon.ico", headers={"User-Agent": "okhttp/4.9"})
        assert response.status_code == 204


class TestAdminUpdate:
    """Administrative policy updates take effect immediately."""

    async def test_update_invalidates_cache(self, client, admin_token):
        headers = {"User-Agent": "MyApp/1.0", "X-App-Version": "2.0.0"}
        # Warm the policy cache with the default minimum
        assert (await client.get("/api/results/1", headers=headers)).status_code == 200

        response = await client.put(
            "/api/admin/app-config",
            headers=admin_token,
            json={"minimumRequiredVersion": "2.5.0", "latestVersion": "2.6.0", "otaUrl": "https://ota.example.com"},
        )
        assert response.status_code == 200
        assert response.json() == {
            "version": "2.6.0",
            "minimumRequiredVersion": "2.5.0",
            "otaUrl": "https://ota.example.com",
            "forceUpdate": True,
        }

        blocked = await client.get("/api/results/1", headers=headers)
        assert blocked.status_code == 426
        assert blocked.json()["minRequiredVersion"] == "2.5.0"
        assert blocked.json()["updateUrl"] == "https://ota.example.com"

    async def test_prefixed_versions_stored_canonical(self, client, admin_token):
        response = await client.put(
            "/api/admin/app-config",
            headers=admin_token,
            json={"minimumRequiredVersion": "v2.5.0", "latestVersion": "=2.6.0"},
        )
        assert response.status_code == 200
        assert response.json()["minimumRequiredVersion"] == "2.5.0"
        assert response.json()["version"] == "2.6.0"

        blocked = await client.get(
            "/api/results/1",
            headers={"User-Agent": "MyApp/1.0", "X-App-Version": "2.4.0"},
        )
        assert blocked.json()["minRequiredVersion"] == "2.5.0"

    async def test_update_requires_token(self, client, admin_token):
        response = await client.put(
            "/api/admin/app-config",
            headers={"X-Admin-Token": "wrong"},
            json={"minimumRequiredVersion": "2.5.0"},
        )
        assert response.status_code == 403

    async def test_update_disabled_without_configured_token(self, client, monkeypatch):
        monkeypatch.setattr(config, "ADMIN_API_TOKEN", "")
        response = await client.put(
            "/api/admin/app-config",
            headers={"X-Admin-Token": ""},
            json={"minimumRequiredVersion": "2.5.0"},
        )
        assert response.status_code == 403

    async def test_latest_below_minimum_rejected(self, client, admin_token):
        response = await client.put(
            "/api/admin/app-config",
            headers=admin_token,
            json={"latestVersion": "1.0.0"},
        )
        assert response.status_code == 422

    async def test_invalid_version_rejected(self, client, admin_token):
        response = await client.put(
            "/api/admin/app-config",
            headers=admin_token,
            json={"minimumRequiredVersion": "2.0"},
        )
        assert response.status_code == 422

    async def test_empty_update_rejected(self, client, admin_token):
        response = await client.put("/api/admin/app-config", headers=admin_token, json={})
        assert response.status_code == 422


class TestDegradedOperation:
    """Store outages and internal errors."""

    async def test_store_outage_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("MINIMUM_REQUIRED_VERSION", "3.0.0")
        # No init_db: every store read fails with a missing table
        engine = make_engine()
        app = create_app(db_engine=engine, gate_routes=GATE_ROUTES, extra_routers=[results_router])

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            config_response = await client.get("/api/app-config")
            assert config_response.status_code == 200
            assert config_response.json()["minimumRequiredVersion"] == "3.0.0"

            response = await client.get(
                "/api/results/1",
                headers={"User-Agent": "MyApp/1.0", "X-App-Version": "2.5.0"},
            )
            assert response.status_code == 426
            assert response.json()["minRequiredVersion"] == "3.0.0"

        await engine.dispose()

    async def test_provider_failure_fails_closed(self, app, client, monkeypatch):
        monkeypatch.setattr(
            app.state.provider, "resolve_policy", AsyncMock(side_effect=RuntimeError("boom"))
        )
        response = await client.get(
            "/api/results/1",
            headers={"User-Agent": "MyApp/1.0", "X-App-Version": "9.0.0"},
        )
        assert response.status_code == 426
        data = response.json()
        assert data["reason"] == "evaluation-error"
        assert data["minRequiredVersion"] == "2.0.0"
        assert "boom" not in response.text
