"""Shared helper functions for CLI commands."""

import logging
import sys

import click
from rich.console import Console

from azprov.azure_provider import AzureProvider
from azprov.config_manager import ConfigManager, ProvisionerConfig
from azprov.exceptions import ProvisionError

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def load_provider(config_path: str | None) -> AzureProvider:
    """Load configuration and build the Azure provider.

    Raises:
        ConfigError: If the configuration cannot be loaded
    """
    config: ProvisionerConfig = ConfigManager.load_config(config_path)
    return AzureProvider(config=config)


def fail(error: ProvisionError | str) -> None:
    """Print an error to stderr and exit with status 1."""
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def print_warnings(warnings: list[str]) -> None:
    for warning in warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


__all__ = ["console", "fail", "load_provider", "print_warnings"]
