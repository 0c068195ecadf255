"""
Admission decisions for inbound requests.

The gate combines the client classification, the optional X-App-Version header
and the current VersionPolicy into an AdmissionVerdict. It runs in one of two
modes:

- strict-header-required: a missing version header blocks non-browser clients
- permissive-header-optional: a missing header only blocks clients the
  classifier recognises as legacy apps

Status codes per reason:
    missing-version-header   426
    invalid-version-format   426
    version-too-old          426
    evaluation-error         426
    legacy-client-detected   400  (heuristic, advisory)

Any unexpected error resolves to a block, never to an admit.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from loguru import logger

from .. import config
from ..core.exceptions import (
    InternalEvaluationError,
    InvalidVersionFormat,
    MissingVersionHeader,
)
from ..core.versioning import BASELINE_VERSION, parse_version
from .classifier import ClassificationResult, ClientClassifier, ClientKind
from .messages import DEFAULT_LANGUAGE, preferred_language, update_message
from .policy import VersionPolicy

VERSION_HEADER = "X-App-Version"


class GateMode(str, Enum):
    STRICT = "strict-header-required"
    PERMISSIVE = "permissive-header-optional"

    @classmethod
    def parse(cls, value: str) -> "GateMode":
        """Accept the full mode names or the short forms "strict" / "permissive"."""
        normalized = value.strip().lower()
        for mode in cls:
            if normalized in (mode.value, mode.value.split("-")[0]):
                return mode
        raise ValueError(f"Unknown gate mode: {value!r}")


class ReasonCode(str, Enum):
    MISSING_VERSION_HEADER = "missing-version-header"
    INVALID_VERSION_FORMAT = "invalid-version-format"
    VERSION_TOO_OLD = "version-too-old"
    LEGACY_CLIENT_DETECTED = "legacy-client-detected"
    EVALUATION_ERROR = "evaluation-error"
    BROWSER_EXEMPT = "browser-exempt"
    ADMITTED = "admitted"


HTTP_UPGRADE_REQUIRED = 426
HTTP_BAD_REQUEST = 400

BLOCK_STATUS: dict[ReasonCode, int] = {
    ReasonCode.MISSING_VERSION_HEADER: HTTP_UPGRADE_REQUIRED,
    ReasonCode.INVALID_VERSION_FORMAT: HTTP_UPGRADE_REQUIRED,
    ReasonCode.VERSION_TOO_OLD: HTTP_UPGRADE_REQUIRED,
    ReasonCode.EVALUATION_ERROR: HTTP_UPGRADE_REQUIRED,
    ReasonCode.LEGACY_CLIENT_DETECTED: HTTP_BAD_REQUEST,
}


@dataclass(frozen=True)
class AdmissionVerdict:
    """
    Outcome of evaluating one request.

    Attributes:
        admitted: Whether the request may reach its handler
        reason: Why the gate decided as it did
        client_kind: Classifier label, if classification ran
        status_code: HTTP status for the block response (blocked only)
        block_payload: JSON body for the block response (blocked only)
    """
    admitted: bool
    reason: ReasonCode
    client_kind: ClientKind | None = None
    status_code: int | None = None
    block_payload: dict[str, Any] | None = None


def build_block_payload(
    reason: ReasonCode,
    min_version: str,
    update_url: str,
    language: str = DEFAULT_LANGUAGE,
) -> dict[str, Any]:
    return {
        "success": False,
        "forceUpdate": True,
        "message": update_message(min_version, language),
        "minRequiredVersion": min_version,
        "updateUrl": update_url,
        "reason": reason.value,
    }


class VersionGate:
    """
    Admission decision engine.

    Example:
        >>> gate = VersionGate(require_version_header=True)
        >>> verdict = gate.evaluate({"User-Agent": "okhttp/4.9"}, VersionPolicy())
        >>> verdict.admitted, verdict.status_code
        (False, 426)
    """

    def __init__(
        self,
        classifier: ClientClassifier | None = None,
        require_version_header: bool = True,
        update_fallback_url: str = config.UPDATE_FALLBACK_URL,
    ):
        self.classifier = classifier or ClientClassifier()
        self.require_version_header = require_version_header
        self.update_fallback_url = update_fallback_url

    @classmethod
    def for_mode(cls, mode: GateMode | str, **kwargs: Any) -> "VersionGate":
        if not isinstance(mode, GateMode):
            mode = GateMode.parse(mode)
        return cls(require_version_header=mode is GateMode.STRICT, **kwargs)

    @property
    def mode(self) -> GateMode:
        return GateMode.STRICT if self.require_version_header else GateMode.PERMISSIVE

    def evaluate(self, headers: Mapping[str, str], policy: VersionPolicy) -> AdmissionVerdict:
        """Decide whether a request with ``headers`` is admitted under ``policy``."""
        try:
            return self._evaluate(headers, policy)
        except Exception as e:
            error = InternalEvaluationError("unexpected exception in gate", e)
            logger.opt(exception=e).error(error.log_line())
            return self.fail_closed()

    def fail_closed(self, language: str = DEFAULT_LANGUAGE) -> AdmissionVerdict:
        """Block verdict used when the decision itself could not be made."""
        reason = ReasonCode.EVALUATION_ERROR
        return AdmissionVerdict(
            admitted=False,
            reason=reason,
            status_code=BLOCK_STATUS[reason],
            block_payload=build_block_payload(
                reason, BASELINE_VERSION, self.update_fallback_url, language
            ),
        )

    def _evaluate(self, headers: Mapping[str, str], policy: VersionPolicy) -> AdmissionVerdict:
        classification = self.classifier.classify(headers)
        if classification.kind is ClientKind.BROWSER:
            return AdmissionVerdict(
                admitted=True,
                reason=ReasonCode.BROWSER_EXEMPT,
                client_kind=classification.kind,
            )

        try:
            raw_version = self._read_version_header(headers)
        except MissingVersionHeader:
            return self._on_missing_header(headers, policy, classification)

        try:
            version = parse_version(raw_version)
        except InvalidVersionFormat:
            return self._block(ReasonCode.INVALID_VERSION_FORMAT, headers, policy, classification)

        if version < parse_version(policy.minimum_required_version):
            return self._block(ReasonCode.VERSION_TOO_OLD, headers, policy, classification)

        return AdmissionVerdict(
            admitted=True,
            reason=ReasonCode.ADMITTED,
            client_kind=classification.kind,
        )

    def _on_missing_header(
        self,
        headers: Mapping[str, str],
        policy: VersionPolicy,
        classification: ClassificationResult,
    ) -> AdmissionVerdict:
        if self.require_version_header:
            return self._block(ReasonCode.MISSING_VERSION_HEADER, headers, policy, classification)
        if classification.kind is ClientKind.LEGACY_APP:
            return self._block(ReasonCode.LEGACY_CLIENT_DETECTED, headers, policy, classification)
        return AdmissionVerdict(
            admitted=True,
            reason=ReasonCode.ADMITTED,
            client_kind=classification.kind,
        )

    @staticmethod
    def _read_version_header(headers: Mapping[str, str]) -> str:
        wanted = VERSION_HEADER.lower()
        for key, value in headers.items():
            if str(key).lower() == wanted and value is not None and str(value).strip():
                return str(value).strip()
        raise MissingVersionHeader(VERSION_HEADER)

    def _block(
        self,
        reason: ReasonCode,
        headers: Mapping[str, str],
        policy: VersionPolicy,
        classification: ClassificationResult,
    ) -> AdmissionVerdict:
        return AdmissionVerdict(
            admitted=False,
            reason=reason,
            client_kind=classification.kind,
            status_code=BLOCK_STATUS[reason],
            block_payload=build_block_payload(
                reason,
                policy.minimum_required_version,
                policy.ota_url or self.update_fallback_url,
                preferred_language(headers),
            ),
        )
