"""
Heuristic client classification from request headers.

No header is an authoritative identity signal, so this is a best-effort label
that sits beneath the explicit X-App-Version check. Rules are evaluated in
order and the first match wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Mapping

from .. import config


class ClientKind(str, Enum):
    """Coarse label for the calling client."""
    BROWSER = "browser"
    LEGACY_APP = "legacy-app"
    UNCLASSIFIED = "unclassified"


BROWSER_TOKENS: tuple[str, ...] = (
    "mozilla",
    "chrome",
    "safari",
    "firefox",
    "edge",
    "opera",
    "msie",
    "trident",
    "webkit",
)

APP_RUNTIME_TOKENS: tuple[str, ...] = (
    # React Native / Expo
    "expo",
    "react-native",
    # Android HTTP stack and runtime
    "okhttp",
    "dalvik",
    "android",
    # iOS networking
    "cfnetwork",
    "ios",
)

APP_IDENTIFIER_TOKENS: tuple[str, ...] = (
    "mdresult",
    "md-result",
    "mobile-app",
    "app-version",
)

WEB_SCHEMES = ("http://", "https://")


@dataclass(frozen=True)
class RequestSignals:
    """Lowercased header values the rules look at."""
    user_agent: str
    origin: str
    referer: str

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "RequestSignals":
        lowered = {str(k).lower(): v for k, v in headers.items()}

        def _get(name: str) -> str:
            value = lowered.get(name) or ""
            return str(value).strip().lower()

        return cls(
            user_agent=_get("user-agent"),
            origin=_get("origin"),
            referer=_get("referer"),
        )

    @property
    def has_web_source(self) -> bool:
        return self.origin.startswith(WEB_SCHEMES) or self.referer.startswith(WEB_SCHEMES)

    def user_agent_has_any(self, tokens: Iterable[str]) -> bool:
        return any(token in self.user_agent for token in tokens)


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    kind: ClientKind
    matches: Callable[[RequestSignals], bool]


@dataclass(frozen=True)
class ClassificationResult:
    kind: ClientKind
    rule: str | None = None


def build_rules(app_tokens: tuple[str, ...]) -> tuple[ClassificationRule, ...]:
    """Ordered rule table; first match wins."""
    return (
        ClassificationRule(
            "browser-with-web-origin",
            ClientKind.BROWSER,
            lambda s: s.user_agent_has_any(BROWSER_TOKENS) and s.has_web_source,
        ),
        ClassificationRule(
            "desktop-mozilla",
            ClientKind.BROWSER,
            lambda s: "mozilla" in s.user_agent and "mobile" not in s.user_agent,
        ),
        ClassificationRule(
            "app-runtime-token",
            ClientKind.LEGACY_APP,
            lambda s: s.user_agent_has_any(app_tokens),
        ),
        ClassificationRule(
            "non-browser-without-web-source",
            ClientKind.LEGACY_APP,
            lambda s: bool(s.user_agent)
            and not s.user_agent_has_any(BROWSER_TOKENS)
            and not s.has_web_source,
        ),
    )


class ClientClassifier:
    """
    Stateless request classifier.

    Example:
        >>> ClientClassifier().classify({"User-Agent": "okhttp/4.9"}).kind
        <ClientKind.LEGACY_APP: 'legacy-app'>
    """

    def __init__(self, extra_app_tokens: Iterable[str] | None = None):
        if extra_app_tokens is None:
            extra_app_tokens = config.parse_token_list(config.LEGACY_APP_TOKENS)
        tokens = APP_RUNTIME_TOKENS + APP_IDENTIFIER_TOKENS + tuple(
            token.lower() for token in extra_app_tokens if token
        )
        self.rules = build_rules(tokens)

    def classify(self, headers: Mapping[str, str]) -> ClassificationResult:
        signals = RequestSignals.from_headers(headers)
        for rule in self.rules:
            if rule.matches(signals):
                return ClassificationResult(kind=rule.kind, rule=rule.name)
        return ClassificationResult(kind=ClientKind.UNCLASSIFIED)
