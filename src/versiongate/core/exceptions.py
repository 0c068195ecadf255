"""
Exception hierarchy for versiongate.

Policy errors are recovered inside the config provider; admission errors
become block verdicts. Neither is ever rendered into a client response, but
both end up in logs, so context values that come from request headers are
redacted when the exception is formatted.
"""

from typing import Any, ClassVar


class VersionGateException(Exception):
    """
    Base exception for versiongate errors.

    Attributes:
        message: Log-safe description of the failure
        context: Structured details rendered as ``k=v`` pairs
        log_tag: Bracketed tag prefixed by ``log_line()``
        redacted: Context keys whose values are replaced when rendered
    """

    log_tag: ClassVar[str] = "[versiongate]"
    redacted: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        pairs = (
            f"{k}={'<redacted>' if k in self.redacted else v}"
            for k, v in self.context.items()
        )
        return f"{self.message} ({', '.join(pairs)})"

    def log_line(self) -> str:
        return f"{self.log_tag} {self}"


# ============================================================================
# Policy Exceptions
# ============================================================================

class PolicyException(VersionGateException):
    """Base class for version policy resolution errors."""
    log_tag = "[Policy]"


class ConfigStoreUnavailable(PolicyException):
    """Durable policy store could not be read."""

    def __init__(self, store_name: str, original_error: Exception):
        super().__init__(
            f"Policy store {store_name} unavailable",
            context={"store": store_name, "original": str(original_error)}
        )
        self.store_name = store_name
        self.original_error = original_error


class MalformedPolicyDocument(PolicyException):
    """Store returned a document that is not a policy mapping."""

    def __init__(self, reason: str, document_type: str | None = None):
        super().__init__(
            f"Malformed policy document: {reason}",
            context={"type": document_type} if document_type else None
        )
        self.reason = reason


class PolicyValidationError(PolicyException):
    """Policy field failed validation."""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid policy value for '{field}': {reason}",
            context={"field": field, "value": value}
        )
        self.field = field
        self.value = value


# ============================================================================
# Admission Exceptions
# ============================================================================

class AdmissionException(VersionGateException):
    """Base class for request admission errors."""
    log_tag = "[Version Check]"


class MissingVersionHeader(AdmissionException):
    """Request carried no usable version header."""

    def __init__(self, header_name: str):
        super().__init__(
            f"Missing {header_name} header",
            context={"header": header_name}
        )
        self.header_name = header_name


class InvalidVersionFormat(AdmissionException):
    """Version header is not a semantic version.

    The offending value is kept on the instance but rendered as <redacted>.
    """

    redacted = frozenset({"value"})

    def __init__(self, value: str):
        super().__init__(
            "Version header is not a valid semantic version",
            context={"value": value}
        )
        self.value = value


class InternalEvaluationError(AdmissionException):
    """Unexpected failure while evaluating a request."""

    def __init__(self, reason: str, original_error: Exception | None = None):
        super().__init__(
            f"Admission evaluation failed: {reason}",
            context={"original": repr(original_error)} if original_error else None
        )
        self.original_error = original_error
