"""Typer application and CLI entry point for basecrm.

The ``basecrm`` console script exposes the :class:`~basecrm.http_client.HttpClient`
verbs as sub-commands so the API can be exercised from a shell::

    basecrm get /leads -p page=2 -p per_page=50
    basecrm post /leads --data '{"last_name": "Doe"}'
    basecrm delete /leads/42

The unwrapped resource is printed to stdout; the status line and any
diagnostics go to stderr. Classified API errors exit with the code listed
in :mod:`basecrm.exit_codes`.

See Also:
    :mod:`basecrm.config`: where the token and base URL are resolved from.
"""

from __future__ import annotations

import json
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from basecrm import __version__
from basecrm.errors import ApiError, BaseCRMError
from basecrm.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE
from basecrm.http_client import HttpClient
from basecrm.output import debug, error, format_response, info, warning


app = typer.Typer(
    name="basecrm",
    help="Call the Base CRM v2 REST API from the command line.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

from basecrm.commands.config import config_app  # noqa: E402

app.add_typer(config_app, name="config", help="Show or edit stored configuration.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"basecrm {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    token: Optional[str] = typer.Option(
        None, "--token", "-t", help="Access token (overrides BASECRM_ACCESS_TOKEN)."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="API host, e.g. https://api.getbase.com."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Trace requests and responses on stderr."
    ),
) -> None:
    """Install the global output manager and stash connection overrides in ``ctx.obj``."""
    from basecrm.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["token"] = token
    ctx.obj["base_url"] = base_url
    # None lets BASECRM_VERBOSE or the stored config decide.
    ctx.obj["verbose"] = True if verbose else None


# ------------------------------------------------------------------ #
# Argument parsing
# ------------------------------------------------------------------ #


def _usage_error(message: str) -> typer.Exit:
    error(message)
    return typer.Exit(code=EXIT_INVALID_USAGE)


def _parse_params(pairs: Optional[list[str]]) -> Optional[dict[str, str]]:
    """Turn repeated ``key=value`` options into an ordered dict."""
    if not pairs:
        return None
    params: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise _usage_error(f"Invalid query parameter {pair!r}, expected key=value")
        params[key] = value
    return params


def _parse_data(data: Optional[str]) -> Optional[dict[str, Any]]:
    """Parse ``--data`` as a JSON object; ``@path`` reads it from a file."""
    if data is None:
        return None
    if data.startswith("@"):
        path = Path(data[1:]).expanduser()
        try:
            data = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise _usage_error(f"Cannot read {path}: {exc}") from None
    try:
        body = json.loads(data)
    except json.JSONDecodeError as exc:
        raise _usage_error(f"--data is not valid JSON: {exc}") from None
    if not isinstance(body, dict):
        raise _usage_error("--data must be a JSON object")
    return body


# ------------------------------------------------------------------ #
# Request commands
# ------------------------------------------------------------------ #


def _report(exc: BaseCRMError) -> None:
    error(str(exc))
    if isinstance(exc, ApiError) and exc.logref:
        warning(f"logref: {exc.logref}")


def _execute(
    ctx: typer.Context,
    method: str,
    path: str,
    params: Optional[dict[str, str]] = None,
    body: Optional[dict[str, Any]] = None,
) -> None:
    from basecrm.config import resolve_configuration

    obj = ctx.obj or {}
    try:
        config = resolve_configuration(
            cli_token=obj.get("token"),
            cli_base_url=obj.get("base_url"),
            cli_verbose=obj.get("verbose"),
        )
        debug(f"Using API at {config.base_url} as {config.user_agent}")
        status, resource = HttpClient(config).request(method, path, params=params, body=body)
    except BaseCRMError as exc:
        _report(exc)
        raise typer.Exit(code=exc.exit_code) from None

    info(f"HTTP {status}")
    if resource is not None:
        format_response(resource)


_PARAM_OPTION = typer.Option(None, "--param", "-p", help="Query parameter as key=value (repeatable).")
_DATA_OPTION = typer.Option(None, "--data", "-d", help="JSON object to send, or @file.")


@app.command("get")
def get_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="Resource path relative to /v2, e.g. /leads."),
    param: Optional[list[str]] = _PARAM_OPTION,
) -> None:
    """Fetch a resource or collection.

    Example::

        basecrm get /leads -p page=2
    """
    _execute(ctx, "GET", path, params=_parse_params(param))


@app.command("delete")
def delete_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="Resource path relative to /v2."),
    param: Optional[list[str]] = _PARAM_OPTION,
) -> None:
    """Delete a resource."""
    _execute(ctx, "DELETE", path, params=_parse_params(param))


@app.command("post")
def post_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="Collection path relative to /v2."),
    data: Optional[str] = _DATA_OPTION,
) -> None:
    """Create a resource. The body is wrapped in the ``data`` envelope.

    Example::

        basecrm post /contacts --data '{"name": "Acme"}'
    """
    _execute(ctx, "POST", path, body=_parse_data(data))


@app.command("put")
def put_command(
    ctx: typer.Context,
    path: str = typer.Argument(help="Resource path relative to /v2."),
    data: Optional[str] = _DATA_OPTION,
) -> None:
    """Update a resource. The body is wrapped in the ``data`` envelope."""
    _execute(ctx, "PUT", path, body=_parse_data(data))


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log() -> str:
    """Write the current traceback under the data directory and return its path."""
    from basecrm.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """Console-script entry point.

    :class:`~basecrm.errors.BaseCRMError` instances escaping a command exit
    with the error's ``exit_code``; anything else writes a crash log and
    exits with :data:`~basecrm.exit_codes.EXIT_GENERIC_FAILURE`.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except BaseCRMError as exc:
        _report(exc)
        sys.exit(exc.exit_code)
    except Exception:
        log_path = _write_crash_log()
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
