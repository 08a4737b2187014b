"""Config commands -- view and modify the stored configuration.

Provides the ``basecrm config`` sub-command group. Values are persisted in
``<config_dir>/config.json`` as a :class:`~basecrm.models.StoredConfig`
and are the lowest-precedence layer in
:func:`~basecrm.config.resolve_configuration`.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError

from basecrm.exit_codes import EXIT_INVALID_USAGE
from basecrm.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


def _mask(token: str) -> str:
    """Keep only the last four characters of a secret visible."""
    if len(token) <= 4:
        return "****"
    return "*" * (len(token) - 4) + token[-4:]


@config_app.command("show")
def config_show() -> None:
    """Show the stored configuration. The access token is masked.

    Example::

        basecrm config show --json
    """
    from basecrm.config import config_file_path, load_stored_config

    config = load_stored_config()
    data = config.model_dump(mode="json", exclude_none=True)
    if "access_token" in data:
        data["access_token"] = _mask(data["access_token"])
    info(f"Config file: {config_file_path()}")
    format_response(data)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key, e.g. 'access_token' or 'base_url'."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a stored configuration value.

    The value is coerced to the field's type by validation (``verbose``
    accepts true/false/1/0/yes/no).

    Example::

        basecrm config set base_url https://api.sandbox.getbase.com
    """
    from basecrm.config import load_stored_config, save_stored_config
    from basecrm.models import Configuration, StoredConfig

    if key not in StoredConfig.model_fields:
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    data = load_stored_config().model_dump()
    data[key] = value
    try:
        updated = StoredConfig.model_validate(data)
        # Run the full model's field checks (absolute URL, non-empty token).
        Configuration.model_validate(
            {"access_token": "placeholder", **updated.model_dump(exclude_none=True)}
        )
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_stored_config(updated)
    shown = _mask(value) if key == "access_token" else getattr(updated, key)
    success(f"Set {key} = {shown}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Remove every stored configuration value."""
    from basecrm.config import save_stored_config
    from basecrm.models import StoredConfig

    if not force:
        typer.confirm("Reset stored configuration?", abort=True)

    save_stored_config(StoredConfig())
    success("Configuration reset.")
