"""Semantic version helpers built on the ``semver`` package."""

from __future__ import annotations

from typing import Optional

import semver

from .exceptions import InvalidVersionFormat

BASELINE_VERSION = "2.0.0"


def _clean(value: str) -> str:
    value = value.strip()
    # Clients occasionally send "v2.1.0" or "=2.1.0"; both are accepted as plain versions.
    if value[:1] in ("v", "V", "="):
        value = value[1:]
    return value


def parse_version(value: str) -> semver.Version:
    """
    Parse a strict ``major.minor.patch`` version.

    Raises:
        InvalidVersionFormat: value is not a string or not a full semver triple
    """
    if not isinstance(value, str):
        raise InvalidVersionFormat(repr(value))
    try:
        return semver.Version.parse(_clean(value))
    except ValueError as exc:
        raise InvalidVersionFormat(value) from exc


def try_parse_version(value: object) -> Optional[semver.Version]:
    """Parse ``value`` or return None when it is not a valid version."""
    try:
        return parse_version(value)  # type: ignore[arg-type]
    except InvalidVersionFormat:
        return None


def is_valid_version(value: object) -> bool:
    return try_parse_version(value) is not None


def is_older(version: str, minimum: str) -> bool:
    """True when ``version`` sorts strictly before ``minimum``."""
    return parse_version(version) < parse_version(minimum)


def canonical_version(value: str) -> str:
    """Render ``value`` as a plain ``major.minor.patch[-pre][+build]`` string.

    Raises:
        InvalidVersionFormat: value is not a valid version
    """
    return str(parse_version(value))
