"""Admission core: policy resolution, client classification and the version gate."""

from .classifier import ClassificationResult, ClientClassifier, ClientKind
from .config_provider import ConfigProvider, PolicyStore, build_policy
from .policy import PolicyCache, VersionPolicy
from .version_gate import AdmissionVerdict, GateMode, ReasonCode, VersionGate

__all__ = [
    "AdmissionVerdict",
    "ClassificationResult",
    "ClientClassifier",
    "ClientKind",
    "ConfigProvider",
    "GateMode",
    "PolicyCache",
    "PolicyStore",
    "ReasonCode",
    "VersionGate",
    "VersionPolicy",
    "build_policy",
]
