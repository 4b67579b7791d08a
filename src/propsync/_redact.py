"""Helpers for safe debug logging.

Request bodies carry passwords, invite tokens and tenant identity documents;
responses carry session cookies. Everything logged at DEBUG goes through
:func:`redact_for_log` first.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

REDACTED = "<redacted>"
_MAX_DEPTH = 20

# Identity documents on tenant and owner records.
_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "idnumber",
        "passportnumber",
        "workpermitnumber",
        "taxid",
        "registrationnumber",
    }
)
# currentPassword, newPassword, inviteToken, resetToken ...
_SENSITIVE_SUFFIXES: tuple[str, ...] = ("password", "token", "secret")
_COOKIE_KEYS: frozenset[str] = frozenset({"cookie", "set-cookie"})


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return lowered in _SENSITIVE_KEYS or lowered.endswith(_SENSITIVE_SUFFIXES)


def mask_cookie_header(header: str) -> str:
    """Keep cookie names, drop their values: ``sid=abc; Path=/`` -> ``sid=<redacted>``."""
    names = []
    for part in header.split(";"):
        name, sep, _ = part.strip().partition("=")
        if sep and name.lower() not in {"path", "domain", "expires", "max-age", "samesite"}:
            names.append(f"{name}={REDACTED}")
    return "; ".join(names) or REDACTED


def _redact_str(value: str, max_string: int) -> str:
    if len(value) <= max_string:
        return value
    return f"{value[:max_string]}…<truncated>"


def _redact_field(key: str, value: Any, max_string: int, depth: int) -> Any:
    lowered = key.lower()
    if lowered in _COOKIE_KEYS:
        if isinstance(value, str):
            return mask_cookie_header(value)
        if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
            return [mask_cookie_header(str(item)) for item in value]
        return REDACTED
    if is_sensitive_key(key):
        return REDACTED
    return redact_for_log(value, max_string=max_string, _depth=depth + 1)


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs.

    Mappings are walked recursively. Sensitive fields become ``<redacted>``,
    cookie headers keep only the cookie names, and long strings are cut at
    *max_string* characters. The input is never modified.
    """
    if _depth > _MAX_DEPTH:
        return "<max-depth>"
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _redact_str(value, max_string)
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, Mapping):
        return {str(k): _redact_field(str(k), v, max_string, _depth) for k, v in value.items()}
    if isinstance(value, Sequence):
        return [redact_for_log(item, max_string=max_string, _depth=_depth + 1) for item in value]
    return repr(value)
