"""versiongate - client-version admission gate for HTTP APIs."""

__version__ = "1.0.0"

from .gate.classifier import ClientClassifier, ClientKind
from .gate.config_provider import ConfigProvider
from .gate.policy import VersionPolicy
from .gate.version_gate import AdmissionVerdict, GateMode, ReasonCode, VersionGate

__all__ = [
    "AdmissionVerdict",
    "ClientClassifier",
    "ClientKind",
    "ConfigProvider",
    "GateMode",
    "ReasonCode",
    "VersionGate",
    "VersionPolicy",
]
