"""Query keys: path-like identifiers for cached server resources.

The first segment is always the REST collection path; the remaining
segments are path parameters in URL order, so
``("/api/owners", 5, "team")`` addresses ``GET /api/owners/5/team``.
Keeping that shape is what makes prefix invalidation scope related reads
correctly.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

Segment = str | int
QueryKey = tuple[Segment, ...]


def normalize_key(key: Sequence[Segment] | str) -> QueryKey:
    """Return *key* as a tuple of validated segments.

    A bare string is treated as a one-segment key. Raises
    :class:`ValueError` for empty keys and for segments that are not
    ``str`` or ``int`` (``bool`` is rejected explicitly).
    """
    if isinstance(key, str):
        segments: tuple[object, ...] = (key,)
    else:
        segments = tuple(key)
    if not segments:
        raise ValueError("query key must have at least one segment")
    for index, segment in enumerate(segments):
        if isinstance(segment, bool) or not isinstance(segment, (str, int)):
            raise ValueError(f"query key segment {index} must be str or int, got {type(segment).__name__}")
    return segments  # type: ignore[return-value]


def is_prefix(prefix: Sequence[Segment] | str, key: Sequence[Segment] | str) -> bool:
    """Whether *prefix* is a leading subsequence of *key* (or equal to it)."""
    p = normalize_key(prefix)
    k = normalize_key(key)
    if len(p) > len(k):
        return False
    return k[: len(p)] == p


def key_to_path(key: Sequence[Segment] | str) -> str:
    """Join the segments into the request path for the default fetcher."""
    return "/".join(str(segment) for segment in normalize_key(key))


def hash_key(key: Sequence[Segment] | str) -> str:
    """Stable serialized form used as the store's map key.

    ``("/api/x", 1)`` and ``("/api/x", "1")`` hash differently; segment
    types are part of key identity.
    """
    return json.dumps(list(normalize_key(key)), separators=(",", ":"))
