"""Internal constants shared across the library."""

BASE_URL = "http://localhost:5000"
USER_AGENT = "propsync/0 (+aiohttp)"

#: Verbs that mutate server state. Reads are always ``GET``.
WRITE_METHODS: frozenset[str] = frozenset({"POST", "PUT", "PATCH", "DELETE"})

#: Seconds an unsubscribed cache entry survives before garbage collection.
DEFAULT_GC_TIME: float = 5 * 60

#: Original client never marks data stale on its own; only invalidation does.
DEFAULT_STALE_TIME: float = float("inf")

DEFAULT_REQUEST_TIMEOUT: float = 30.0

UNAUTHORIZED_THROW = "throw"
UNAUTHORIZED_RETURN_NULL = "return_null"
UNAUTHORIZED_BEHAVIORS: frozenset[str] = frozenset({UNAUTHORIZED_THROW, UNAUTHORIZED_RETURN_NULL})
