"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~basecrm.errors.BaseCRMError` subclass.
Shell wrappers can inspect the exit code to tell a rejected payload from
an exhausted rate limit without parsing stderr.

Example::

    $ basecrm post /leads --data '{"last_name": ""}'
    $ echo $?
    5   # EXIT_RESOURCE_ERROR -- payload validation failed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (including malformed API responses)."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_CONFIG_ERROR = 3
"""The configuration is missing or invalid (e.g. no access token)."""

EXIT_REQUEST_ERROR = 4
"""The API rejected the request with an HTTP 4xx status."""

EXIT_RESOURCE_ERROR = 5
"""The API rejected the payload with HTTP 422."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_RATE_LIMIT = 7
"""The API rate limit was exceeded (HTTP 429)."""

EXIT_SERVER_ERROR = 8
"""The API returned an HTTP 5xx server error."""
