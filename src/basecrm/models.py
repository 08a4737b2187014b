"""Pydantic models shared across basecrm modules.

**Client configuration** -- :class:`Configuration` is the immutable value
handed to :class:`~basecrm.http_client.HttpClient`. It is also what
:mod:`basecrm.config` persists as JSON in the user's config directory.

**Wire models** -- :class:`HTTPMethod` enumerates the verbs the client
issues, and :class:`ErrorDetail` is the parsed form of one entry of the
API's ``errors`` array.
"""

from __future__ import annotations

import enum
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from basecrm import __version__

DEFAULT_BASE_URL = "https://api.getbase.com"
DEFAULT_USER_AGENT = f"BaseCRM/v2 Python/{__version__}"


class Configuration(BaseModel):
    """Connection settings for :class:`~basecrm.http_client.HttpClient`.

    Frozen: a client's configuration never changes after construction, so
    one instance can be shared between threads.

    Example::

        Configuration(access_token="3f8...", verbose=True)
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(description="OAuth2 bearer token")
    base_url: str = Field(
        default=DEFAULT_BASE_URL, description="API host, without the /v2 prefix"
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    verbose: bool = Field(
        default=False, description="Trace wire-level request/response detail to stderr"
    )
    timeout: float = Field(default=30.0, description="Transport timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")

    @field_validator("access_token")
    @classmethod
    def _token_present(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("access token must not be empty")
        return value

    @field_validator("base_url")
    @classmethod
    def _absolute_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"base URL must be an absolute http(s) URL, got {value!r}")
        return value.rstrip("/")


class HTTPMethod(str, enum.Enum):
    """HTTP verbs accepted by :meth:`~basecrm.http_client.HttpClient.request`."""

    GET = "get"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"

    @property
    def carries_body(self) -> bool:
        """Whether a request body is sent for this verb."""
        return self in (HTTPMethod.POST, HTTPMethod.PUT, HTTPMethod.PATCH)


class ErrorDetail(BaseModel):
    """One entry of the ``errors`` array in an API error response.

    The API nests each entry as ``{"error": {...}, "meta": {...}}``; only
    the inner ``error`` object is modelled. Unknown keys are kept in
    ``model_extra``.
    """

    model_config = ConfigDict(extra="allow")

    code: Optional[str] = None
    message: Optional[str] = None
    details: Optional[str] = None
    resource: Optional[str] = None
    field: Optional[str] = None

    def __str__(self) -> str:
        text = self.message or self.code or "error"
        if self.field:
            text = f"{self.field}: {text}"
        if self.details:
            text = f"{text} ({self.details})"
        return text


def parse_error_details(response: Any) -> list[ErrorDetail]:
    """Extract :class:`ErrorDetail` entries from a decoded error body.

    Anything that does not look like the API's error envelope yields an
    empty list.
    """
    if not isinstance(response, dict):
        return []
    entries = response.get("errors")
    if not isinstance(entries, list):
        return []

    details: list[ErrorDetail] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        inner = entry.get("error", entry)
        if isinstance(inner, dict):
            details.append(ErrorDetail.model_validate(inner))
    return details


def parse_logref(response: Any) -> Optional[str]:
    """Return ``meta.logref`` from a decoded error body, if present."""
    if not isinstance(response, dict):
        return None
    meta = response.get("meta")
    if isinstance(meta, dict) and meta.get("logref") is not None:
        return str(meta["logref"])
    return None


class StoredConfig(BaseModel):
    """Partial :class:`Configuration` persisted at ``<config_dir>/config.json``.

    Every field is optional: the file, ``./basecrm.json`` and the
    environment each contribute a layer, and only the merged result has to
    form a valid :class:`Configuration`. See
    :func:`~basecrm.config.resolve_configuration`.
    """

    access_token: Optional[str] = None
    base_url: Optional[str] = None
    user_agent: Optional[str] = None
    verbose: Optional[bool] = None
    timeout: Optional[float] = None
    verify_ssl: Optional[bool] = None
