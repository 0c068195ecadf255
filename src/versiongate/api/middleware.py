"""Middleware enforcing the client version policy ahead of protected routes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .. import config
from ..gate.classifier import ClientClassifier
from ..gate.config_provider import ConfigProvider
from ..gate.version_gate import GateMode, VersionGate


@dataclass(frozen=True)
class GateRoute:
    """Path prefix protected by the gate in a given mode."""
    prefix: str
    mode: GateMode

    def matches(self, path: str) -> bool:
        prefix = self.prefix.rstrip("/")
        if not prefix:
            return True
        return path == prefix or path.startswith(prefix + "/")


def parse_gate_routes(raw: str) -> tuple[GateRoute, ...]:
    """
    Parse "prefix:mode" pairs, e.g. "/api/results:strict,/api/public:permissive".

    A pair without a mode defaults to strict.
    """
    routes = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        prefix, _, mode = item.partition(":")
        routes.append(GateRoute(prefix=prefix.strip(), mode=GateMode.parse(mode or "strict")))
    return tuple(routes)


def load_gate_routes() -> tuple[GateRoute, ...]:
    return parse_gate_routes(config.GATE_ROUTES)


class VersionGateMiddleware(BaseHTTPMiddleware):
    """
    Admission checkpoint for the protected route set.

    Admitted requests are forwarded unmodified. Blocked requests never reach a
    handler and get the gate's JSON block payload instead.
    """

    # Routes that bypass the gate so outdated clients can still learn they must update
    PUBLIC_ROUTES = {
        "/health",
        "/api/health",
        "/api/app-config",
        "/api/admin/app-config",
        "/app/version-config",
        "/ota/ota-manifest.json",
    }

    def __init__(
        self,
        app: ASGIApp,
        provider: ConfigProvider,
        routes: Optional[Iterable[GateRoute]] = None,
        classifier: Optional[ClientClassifier] = None,
        update_fallback_url: str = config.UPDATE_FALLBACK_URL,
    ):
        super().__init__(app)
        self.provider = provider
        routes = load_gate_routes() if routes is None else tuple(routes)
        # Longest prefix wins when rules overlap
        self.routes = sorted(routes, key=lambda r: len(r.prefix.rstrip("/")), reverse=True)

        classifier = classifier or ClientClassifier()
        self.gates = {
            mode: VersionGate.for_mode(mode, classifier=classifier, update_fallback_url=update_fallback_url)
            for mode in GateMode
        }

    def is_public(self, path: str) -> bool:
        return (path.rstrip("/") or "/") in self.PUBLIC_ROUTES

    def match_route(self, path: str) -> Optional[GateRoute]:
        for route in self.routes:
            if route.matches(path):
                return route
        return None

    async def dispatch(self, request: Request, call_next):
        """Run each protected request through the version gate."""
        path = request.url.path

        # CORS preflight and public routes pass straight through
        if request.method == "OPTIONS" or self.is_public(path):
            return await call_next(request)

        route = self.match_route(path)
        if route is None:
            return await call_next(request)

        gate = self.gates[route.mode]
        try:
            policy = await self.provider.resolve_policy()
            verdict = gate.evaluate(request.headers, policy)
        except Exception as e:
            logger.opt(exception=e).error(f"[Version Check] Gate failure on {path}, blocking request")
            verdict = gate.fail_closed()

        if verdict.admitted:
            return await call_next(request)

        client_kind = verdict.client_kind.value if verdict.client_kind else "unknown"
        logger.warning(
            f"[Version Check] Blocked {request.method} {path} - {verdict.reason.value} "
            f"(mode={route.mode.value}, client={client_kind})"
        )
        return JSONResponse(status_code=verdict.status_code, content=verdict.block_payload)
