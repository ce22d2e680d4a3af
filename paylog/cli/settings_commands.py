"""Settings CLI commands for paylog.

Manages settings.json - data directory and default tax schedule.
"""

import os
from pathlib import Path

import click

from paylog.sdk import (
    KNOWN_SETTINGS,
    get_data_path,
    get_settings_path,
    load_settings,
    set_setting,
    unset_setting,
)
from paylog.sdk.taxes import TaxScheduleError, resolve_schedule


@click.group()
def settings():
    """Manage settings (settings.json).

    Available settings:
    - data_dir: custom data directory path
    - tax_schedule: tax schedule used when --schedule is not given
    """
    pass


@settings.command("show")
def settings_show():
    """Show each setting, its value and where it comes from."""
    settings_path = get_settings_path()
    current = load_settings()

    state = "" if settings_path.exists() else " (not created yet)"
    click.echo(f"Settings file: {settings_path}{state}")
    click.echo()

    data_source = "settings.json" if current.get("data_dir") else "default"
    click.echo(f"  {'data_dir':<14} {get_data_path()}  [{data_source}]")

    schedule = current.get("tax_schedule")
    if schedule:
        click.echo(f"  {'tax_schedule':<14} {schedule}  [settings.json]")
    else:
        click.echo(f"  {'tax_schedule':<14} (not set; pass --schedule to tax commands)")

    unknown = sorted(set(current) - set(KNOWN_SETTINGS))
    for key in unknown:
        click.echo(click.style(f"  {key:<14} {current[key]}  [unknown key, ignored]", fg="yellow"))


def _check_data_dir(path: str) -> str:
    """Resolve a data_dir value, creating it if needed; must be writable."""
    data_path = Path(path).expanduser().resolve()

    if data_path.is_file():
        raise click.ClickException(f"data_dir must be a directory, not a file: {data_path}")

    if not data_path.exists():
        try:
            data_path.mkdir(parents=True)
        except OSError as e:
            raise click.ClickException(f"Could not create data_dir {data_path}: {e}")
        click.echo(f"Created directory: {data_path}")

    if not os.access(data_path, os.W_OK):
        raise click.ClickException(f"data_dir is not writable: {data_path}")

    return str(data_path)


@settings.command("set")
@click.argument("key", type=click.Choice(KNOWN_SETTINGS))
@click.argument("value")
def settings_set(key: str, value: str):
    """Set KEY to VALUE.

    \b
    Examples:
        paylog settings set tax_schedule no-2024-trinnskatt
        paylog settings set data_dir ~/Documents/paylog
    """
    if key == "data_dir":
        value = _check_data_dir(value)
    elif key == "tax_schedule":
        try:
            resolve_schedule(value)
        except TaxScheduleError as e:
            raise click.ClickException(str(e))

    path = set_setting(key, value)
    click.echo(f"Set {key}: {value}")
    click.echo(f"Saved to: {path}")


@settings.command("unset")
@click.argument("key", type=click.Choice(KNOWN_SETTINGS))
def settings_unset(key: str):
    """Remove KEY from settings.json, reverting to the default."""
    if unset_setting(key):
        click.echo(f"Cleared {key} setting.")
    else:
        click.echo(f"{key} was not set.")
