"""Synchronous request executor for the Base CRM v2 API.

:class:`HttpClient` performs one blocking HTTP call per method invocation
on top of :mod:`httpx` and layers on the API's conventions:

- **Auth** -- ``Authorization: Bearer <token>`` on every request.
- **Versioning** -- the fixed ``/v2`` prefix is inserted between the base
  URL and the caller's path.
- **Envelope** -- bodies are sent as ``{"data": ...}`` and responses are
  unwrapped via :func:`~basecrm.envelope.unwrap_envelope`.
- **Error mapping** -- transport failures and non-2xx/3xx statuses are
  raised as :class:`~basecrm.errors.ApiError` subclasses.
- **Verbose trace** -- with ``Configuration.verbose`` the request and
  response are echoed to stderr through :class:`~basecrm.output.OutputManager`.

Nothing is retried, pooled, or cached. Each call opens its own
:class:`httpx.Client` and closes it before returning or raising.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlencode

import httpx

from basecrm.envelope import unwrap_envelope, wrap_envelope
from basecrm.errors import (
    ConnectionError_,
    RateLimitError,
    RequestError,
    ResourceError,
    ServerError,
    UnknownError,
)
from basecrm.models import Configuration, HTTPMethod
from basecrm.output import get_output

logger = logging.getLogger(__name__)

API_VERSION_PREFIX = "/v2"
"""Inserted between ``Configuration.base_url`` and every request path."""

Result = tuple[int, Any]


class HttpClient:
    """Blocking HTTP client for the Base API.

    Holds nothing but the immutable configuration (and an optional
    transport), so one instance may be shared between threads.

    Args:
        config: Connection settings; see :class:`~basecrm.models.Configuration`.
        transport: Optional :class:`httpx.BaseTransport` used for every
            call instead of the default network transport. Tests pass an
            :class:`httpx.MockTransport` here.

    Example::

        client = HttpClient(Configuration(access_token=token))
        status, leads = client.get("/leads", {"page": "2"})
    """

    def __init__(
        self,
        config: Configuration,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport

    @property
    def config(self) -> Configuration:
        return self._config

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Result:
        """Send a GET request.

        Args:
            path: Resource path relative to ``/v2``, e.g. ``/leads``.
            params: Query parameters, appended to the URL in the given order.

        Returns:
            ``(status_code, resource)``.
        """
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Optional[Mapping[str, Any]] = None) -> Result:
        """Send a POST request with *body* wrapped in the ``data`` envelope."""
        return self.request("POST", path, body=body)

    def put(self, path: str, body: Optional[Mapping[str, Any]] = None) -> Result:
        """Send a PUT request with *body* wrapped in the ``data`` envelope."""
        return self.request("PUT", path, body=body)

    def patch(self, path: str, body: Optional[Mapping[str, Any]] = None) -> Result:
        """Send a PATCH request with *body* wrapped in the ``data`` envelope."""
        return self.request("PATCH", path, body=body)

    def delete(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Result:
        """Send a DELETE request."""
        return self.request("DELETE", path, params=params)

    def request(
        self,
        method: Union[str, HTTPMethod],
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Mapping[str, Any]] = None,
    ) -> Result:
        """Perform a single HTTP request against the API.

        A *body* is only sent for POST, PUT and PATCH; it is ignored for
        other verbs. An empty mapping still counts as a body.

        Args:
            method: HTTP verb, case-insensitive.
            path: Resource path relative to ``/v2``.
            params: Query parameters.
            body: JSON-serialisable resource to send.

        Returns:
            ``(status_code, resource)`` where *resource* is the unwrapped
            envelope payload, or ``None`` when the response has no body.

        Raises:
            ValueError: If *method* is not a supported verb.
            ConnectionError_: On transport failure (DNS, timeout, refused).
            ResourceError: On HTTP 422.
            RateLimitError: On HTTP 429.
            RequestError: On any other HTTP 4xx.
            ServerError: On HTTP 5xx.
            UnknownError: On a non-JSON or undecodable body, or any other
                status outside 200-399.
        """
        verb = HTTPMethod(method.value if isinstance(method, HTTPMethod) else method.lower())
        send_body = body is not None and verb.carries_body

        headers = self._build_headers(send_body)
        url = self._build_url(path, params)
        content = json.dumps(wrap_envelope(body)).encode("utf-8") if send_body else None

        wire_method = verb.value.upper()
        logger.debug("%s %s", wire_method, url)
        if self._config.verbose:
            self._trace_request(wire_method, url, headers, content)

        with httpx.Client(
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            transport=self._transport,
        ) as client:
            try:
                response = client.request(wire_method, url, headers=headers, content=content)
            except httpx.TransportError as exc:
                logger.debug("%s %s failed: %s", wire_method, url, exc)
                raise ConnectionError_(_transport_errno(exc), str(exc) or type(exc).__name__) from exc
            except httpx.HTTPError as exc:
                # e.g. DecodingError on a body that contradicts its Content-Encoding
                logger.debug("%s %s unreadable response: %s", wire_method, url, exc)
                raise UnknownError(
                    f"Unknown error occurred. The response could not be read: {exc}"
                ) from exc

        logger.debug("%s %s -> %d", wire_method, url, response.status_code)
        if self._config.verbose:
            self._trace_response(response)

        return self._handle_response(response)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _build_headers(self, send_body: bool) -> dict[str, str]:
        headers = {
            "User-Agent": self._config.user_agent,
            "Authorization": f"Bearer {self._config.access_token}",
            "Accept": "application/json",
        }
        if send_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _build_url(self, path: str, params: Optional[Mapping[str, Any]]) -> str:
        if params:
            path = f"{path}?{urlencode(params, doseq=True)}"
        return f"{self._config.base_url}{API_VERSION_PREFIX}{path}"

    def _handle_response(self, response: httpx.Response) -> Result:
        code = response.status_code
        raw = response.text

        decoded: Any = None
        has_body = bool(raw.strip())
        if has_body:
            try:
                decoded = json.loads(raw)
            except ValueError as exc:
                raise UnknownError(
                    "Unknown error occurred. The response should be a json response. "
                    f"HTTP response code={code}. HTTP response body={raw}.",
                    code,
                    raw,
                ) from exc

        if code < 200 or code >= 400:
            raise_for_status(code, raw, decoded)

        return code, unwrap_envelope(decoded) if has_body else None

    def _trace_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        content: Optional[bytes],
    ) -> None:
        output = get_output()
        output.trace(f"> {method} {url}")
        for name, value in headers.items():
            if name == "Authorization":
                value = "Bearer ***"
            output.trace(f"> {name}: {value}")
        if content is not None:
            output.trace(f"> {content.decode('utf-8')}")

    def _trace_response(self, response: httpx.Response) -> None:
        output = get_output()
        output.trace(f"< {response.status_code} {response.reason_phrase}")
        for name, value in response.headers.items():
            output.trace(f"< {name}: {value}")
        if response.text:
            output.trace(f"< {response.text}")


def raise_for_status(code: int, raw: str, decoded: Any) -> None:
    """Raise the :class:`~basecrm.errors.ApiError` matching an error *code*.

    Checked in order, first match wins: 422, 429, other 4xx, 5xx, anything
    else. Error bodies are attached decoded, not unwrapped.

    Args:
        code: HTTP status code outside 200-399.
        raw: Response body text, attached to :class:`UnknownError`.
        decoded: Decoded JSON body, or ``None`` for an empty body.
    """
    if code == 422:
        raise ResourceError(code, decoded)
    if code == 429:
        raise RateLimitError(code)
    if 400 <= code < 500:
        raise RequestError(code, decoded)
    if 500 <= code < 600:
        raise ServerError(code, decoded)
    raise UnknownError(
        "Unknown HTTP error response. "
        f"HTTP response code={code}. HTTP response body={raw}.",
        code,
        raw,
    )


def _transport_errno(exc: httpx.TransportError) -> Union[int, str]:
    """Find the OS errno behind a transport error, or fall back to its class name."""
    seen: set[int] = set()
    cause: Optional[BaseException] = exc
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        if isinstance(cause, OSError) and cause.errno is not None:
            return cause.errno
        cause = cause.__cause__ or cause.__context__
    return type(exc).__name__
