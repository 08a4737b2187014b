"""basecrm -- synchronous HTTP client for the Base CRM v2 REST API.

The package wraps :mod:`httpx` with the conventions the Base API expects:
bearer authentication, the ``/v2`` path prefix, the ``{"data": ...}``
request/response envelope, and a closed error taxonomy keyed on the HTTP
status code.

Typical usage::

    from basecrm import Configuration, HttpClient

    client = HttpClient(Configuration(access_token="..."))
    status, lead = client.post("/leads", {"last_name": "Doe"})

Modules:
    http_client: :class:`HttpClient`, the request executor.
    envelope: Wrapping and unwrapping of the ``data``/``items`` envelope.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration file and precedence resolution.
    errors: Exception hierarchy with error kinds and exit codes.
    exit_codes: Numeric exit codes used by the CLI.
    output: stdout/stderr formatting system with Rich support.
    app: Typer CLI entry point.
"""

__version__ = "0.1.0"

from basecrm.errors import (  # noqa: E402
    ApiError,
    BaseCRMError,
    ConfigurationError,
    ConnectionError_,
    ErrorKind,
    RateLimitError,
    RequestError,
    ResourceError,
    ServerError,
    UnknownError,
)
from basecrm.http_client import HttpClient  # noqa: E402
from basecrm.models import Configuration  # noqa: E402

__all__ = [
    "__version__",
    "ApiError",
    "BaseCRMError",
    "Configuration",
    "ConfigurationError",
    "ConnectionError_",
    "ErrorKind",
    "HttpClient",
    "RateLimitError",
    "RequestError",
    "ResourceError",
    "ServerError",
    "UnknownError",
]
