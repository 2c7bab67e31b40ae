"""Configuration commands.

Show the effective configuration and change values in ~/.azprov/config.toml.
Values set through AZPROV_* environment variables are shown but never
written back to the file.
"""

from __future__ import annotations

from dataclasses import asdict

import click

from azprov.commands.cli_helpers import fail
from azprov.config_manager import ConfigManager
from azprov.exceptions import ProvisionError

__all__ = ["config_group"]


def _key_name(key: str) -> str:
    return key.strip().replace("-", "_")


@click.group(name="config")
def config_group() -> None:
    """Show or change azprov configuration.

    \b
    EXAMPLES:
        # Show the effective configuration
        $ azprov config show

        # Create resource groups in westus2 unless --location is given
        $ azprov config set default-location westus2

        # Reset a value to its default
        $ azprov config unset default-location
    """
    pass


@config_group.command(name="show")
@click.option("--config", help="Config file path", type=click.Path())
def config_show(config: str | None):
    """Show the effective configuration."""
    try:
        values = asdict(ConfigManager.load_config(config))
    except ProvisionError as e:
        fail(e)

    for key, value in values.items():
        click.echo(f"{key} = {'' if value is None else value}")


@config_group.command(name="set")
@click.argument("key")
@click.argument("value")
@click.option("--config", help="Config file path", type=click.Path())
def config_set(key: str, value: str, config: str | None):
    """Set KEY to VALUE in the config file."""
    name = _key_name(key)
    try:
        ConfigManager.update_config(config, **{name: value})
    except ProvisionError as e:
        fail(e)
    click.echo(f"✓ Set {name}")


@config_group.command(name="unset")
@click.argument("key")
@click.option("--config", help="Config file path", type=click.Path())
def config_unset(key: str, config: str | None):
    """Reset KEY to its default."""
    name = _key_name(key)
    try:
        ConfigManager.update_config(config, **{name: None})
    except ProvisionError as e:
        fail(e)
    click.echo(f"✓ Reset {name} to its default")
