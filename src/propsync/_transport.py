"""JSON-over-HTTP transport with session-cookie persistence."""

from __future__ import annotations

import json
import logging
from http.cookies import SimpleCookie
from typing import Any, Protocol

import aiohttp

from propsync._constants import USER_AGENT
from propsync._redact import redact_for_log
from propsync.config import SyncConfig
from propsync.exceptions import ApiError, AuthenticationError, TransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the client.

    Having a protocol here makes it easy to pass in-memory fake backends
    in tests while keeping the production implementation
    (`HttpTransport`) concrete.
    """

    async def request(self, method: str, path: str, *, json_body: Any = None) -> Any:
        ...


def error_from_response(status: int, text: str, *, reason: str | None = None, endpoint: str = "") -> ApiError:
    """Map a non-2xx response to an :class:`ApiError`.

    The server's ``message`` field is used verbatim. Bodies that are not
    JSON, or carry no message, fall back to the raw text, then the HTTP
    reason phrase.
    """
    body: Any = None
    if text:
        try:
            body = json.loads(text)
        except json.JSONDecodeError:
            body = None

    message = ""
    code = ""
    if isinstance(body, dict):
        candidate = body.get("message")
        if isinstance(candidate, str):
            message = candidate
        if body.get("code") is not None:
            code = str(body["code"])
    if not message:
        message = text.strip()[:500] if text and body is None else ""
    if not message:
        message = reason or f"HTTP {status}"

    cls = AuthenticationError if status == 401 else ApiError
    return cls(message, status_code=status, endpoint=endpoint, code=code)


def decode_json_body(text: str, *, endpoint: str = "") -> Any:
    """Decode a 2xx body; empty bodies (e.g. 204) decode to ``None``."""
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise TransportError(
            f"Invalid JSON from {endpoint}: {text[:200]}",
            endpoint=endpoint,
        ) from exc


class HttpTransport:
    """aiohttp transport that sends JSON and keeps the session cookie."""

    def __init__(self, config: SyncConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._cookies: dict[str, str] = {}
        self._cookie_header: str = ""

    @property
    def cookies(self) -> dict[str, str]:
        return dict(self._cookies)

    def _update_cookies(self, headers: Any) -> None:
        """Extract Set-Cookie headers and store them."""
        raw_cookies = headers.getall("Set-Cookie", [])
        changed = False
        for raw in raw_cookies:
            cookie: SimpleCookie = SimpleCookie()
            cookie.load(raw)
            for key, morsel in cookie.items():
                value = morsel.value
                if self._cookies.get(key) != value:
                    self._cookies[key] = value
                    changed = True

        if changed:
            self._cookie_header = "; ".join(f"{k}={v}" for k, v in self._cookies.items())

    async def request(self, method: str, path: str, *, json_body: Any = None) -> Any:
        """Send one request and return the decoded JSON body.

        Raises :class:`ApiError` (or :class:`AuthenticationError` on 401)
        for non-2xx responses and :class:`TransportError` for network or
        decoding failures.
        """
        verb = method.upper()
        headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        body: str | None = None
        if json_body is not None:
            headers["content-type"] = "application/json"
            body = json.dumps(json_body, default=str)
        if self._cookie_header:
            headers["cookie"] = self._cookie_header

        url = f"{self._config.base_url}{path}"
        _logger.debug("%s %s", verb, url)
        if self._config.api_trace_enabled and json_body is not None:
            _logger.debug("%s %s body=%s", verb, path, redact_for_log(json_body))

        timeout = aiohttp.ClientTimeout(total=self._config.request_timeout)
        try:
            async with self._http.request(verb, url, data=body, headers=headers, timeout=timeout) as resp:
                self._update_cookies(resp.headers)
                text = await resp.text()
                status = resp.status
                reason = resp.reason
        except TimeoutError as exc:
            raise TransportError(f"Request to {path} timed out", endpoint=path) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"Request to {path} failed: {exc}", endpoint=path) from exc

        if not 200 <= status < 300:
            error = error_from_response(status, text, reason=reason, endpoint=path)
            _logger.debug("%s %s -> HTTP %d: %s", verb, path, status, error)
            raise error

        result = decode_json_body(text, endpoint=path)
        if self._config.api_trace_enabled:
            _logger.debug("%s %s -> %d %s", verb, path, status, redact_for_log(result))
        return result
