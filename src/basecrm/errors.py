"""Exception hierarchy for basecrm.

All exceptions inherit from :class:`BaseCRMError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`basecrm.exit_codes`.
Failures reported by :class:`~basecrm.http_client.HttpClient` derive from
:class:`ApiError` and are additionally tagged with an :class:`ErrorKind`,
so callers can branch either on the class or on ``exc.kind``.

Subclass hierarchy::

    BaseCRMError            (exit 1)
    +-- ConfigurationError  (exit 3)
    +-- ApiError
        +-- ConnectionError_    CONNECTION  (exit 6)
        +-- RequestError        REQUEST     (exit 4)
        +-- ResourceError       RESOURCE    (exit 5)
        +-- RateLimitError      RATE_LIMIT  (exit 7)
        +-- ServerError         SERVER      (exit 8)
        +-- UnknownError        UNKNOWN     (exit 1)
"""

from __future__ import annotations

import enum
from typing import Any, Optional, Union

from basecrm.exit_codes import (
    EXIT_CONFIG_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_RATE_LIMIT,
    EXIT_REQUEST_ERROR,
    EXIT_RESOURCE_ERROR,
    EXIT_SERVER_ERROR,
)
from basecrm.models import ErrorDetail, parse_error_details, parse_logref


class ErrorKind(str, enum.Enum):
    """Closed set of failure categories an API call can end in."""

    CONNECTION = "connection"
    REQUEST = "request"
    RESOURCE = "resource"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    UNKNOWN = "unknown"


class BaseCRMError(Exception):
    """Base exception for all basecrm errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(BaseCRMError):
    """Raised for configuration problems (missing token, invalid JSON, bad base URL)."""

    exit_code = EXIT_CONFIG_ERROR


class ApiError(BaseCRMError):
    """Base class for every failure of an API call.

    Attributes:
        kind: The :class:`ErrorKind` tag of the concrete subclass.
        http_code: HTTP status code, or ``None`` when no response arrived.
        response: Decoded JSON body, or the raw body text when it could not
            be decoded. ``None`` when there was no body.
        errors: :class:`~basecrm.models.ErrorDetail` entries parsed from
            the API's ``errors`` array (empty for non-conforming bodies).
        logref: The API's ``meta.logref`` correlation id, if any.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        http_code: Optional[int] = None,
        response: Any = None,
    ) -> None:
        super().__init__(message)
        self.http_code = http_code
        self.response = response
        self.errors: list[ErrorDetail] = parse_error_details(response)
        self.logref: Optional[str] = parse_logref(response)


def _http_message(http_code: int, response: Any) -> str:
    """Build ``HTTP <code>: <details>`` from a decoded error body."""
    details = parse_error_details(response)
    if details:
        summary = "; ".join(str(d) for d in details)
    elif isinstance(response, dict):
        summary = str(
            response.get("message") or response.get("error") or ""
        )
    elif response is not None:
        summary = str(response)[:200]
    else:
        summary = ""
    prefix = f"HTTP {http_code}"
    return f"{prefix}: {summary}" if summary else prefix


class ConnectionError_(ApiError):
    """Raised on transport failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``. No HTTP code is attached.

    Args:
        errno: The underlying transport error code -- an OS ``errno`` when
            one is available, otherwise the transport exception's class name.
        message: The transport's error message.
    """

    kind = ErrorKind.CONNECTION
    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, errno: Union[int, str, None], message: str) -> None:
        super().__init__(f"Connection error [{errno}]: {message}")
        self.errno = errno
        self.error_message = message


class RequestError(ApiError):
    """Raised when the API answers with an HTTP 4xx status."""

    kind = ErrorKind.REQUEST
    exit_code = EXIT_REQUEST_ERROR

    def __init__(self, http_code: int, response: Any = None) -> None:
        super().__init__(_http_message(http_code, response), http_code, response)


class ResourceError(ApiError):
    """Raised on HTTP 422, when the API rejects the payload's contents.

    ``errors`` lists the offending fields. Not a :class:`RequestError`:
    catch both to handle every 4xx other than 429.
    """

    kind = ErrorKind.RESOURCE
    exit_code = EXIT_RESOURCE_ERROR

    def __init__(self, http_code: int, response: Any = None) -> None:
        super().__init__(_http_message(http_code, response), http_code, response)


class RateLimitError(ApiError):
    """Raised on HTTP 429 -- the account's rate limit is exhausted."""

    kind = ErrorKind.RATE_LIMIT
    exit_code = EXIT_RATE_LIMIT

    def __init__(self, http_code: int = 429) -> None:
        super().__init__(f"HTTP {http_code}: rate limit exceeded", http_code)


class ServerError(ApiError):
    """Raised when the API answers with an HTTP 5xx status."""

    kind = ErrorKind.SERVER
    exit_code = EXIT_SERVER_ERROR

    def __init__(self, http_code: int, response: Any = None) -> None:
        super().__init__(_http_message(http_code, response), http_code, response)


class UnknownError(ApiError):
    """Raised for a malformed (non-JSON) body or a status outside the taxonomy.

    ``response`` holds the raw body text.
    """

    kind = ErrorKind.UNKNOWN
    exit_code = EXIT_GENERIC_FAILURE
