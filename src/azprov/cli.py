"""CLI entry point for azprov.

Commands:
    provision       Resource group, Windows VM, data disks, cert trust, disk formatting
    site            Web app with App Service plan and app settings
    schedule-start  Daily scheduled VM start stored in VM tags
    certs           List trusted management certificates
    config          Show or change configuration
"""

import logging

import click

from azprov import __version__
from azprov.cert_handler import TrustStore
from azprov.commands import config_group, provision, schedule_start, site
from azprov.commands.cli_helpers import fail
from azprov.config_manager import ConfigManager
from azprov.exceptions import ProvisionError


@click.group(context_settings={"help_option_names": ["--help", "-h"]})
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.version_option(version=__version__)
def main(verbose: bool) -> None:
    """azprov - idempotent Azure Windows VM provisioning.

    \b
    COMMANDS:
        provision       Provision a VM with data disks (re-run to add disks)
        site            Provision a web site and set app settings
        schedule-start  Enable, disable, show or run scheduled VM starts
        certs           List trusted management certificates
        config          Show or change configuration

    \b
    CONFIGURATION:
        Config file: ~/.azprov/config.toml
        Environment: AZPROV_<SETTING> overrides, e.g. AZPROV_SUBSCRIPTION_ID

    For help on any command: azprov <command> --help
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")


@main.command(name="certs")
@click.option("--config", help="Config file path", type=click.Path())
def certs(config: str | None):
    """List trusted management certificates."""
    try:
        store = TrustStore(ConfigManager.load_config(config).trust_store_dir)
    except ProvisionError as e:
        fail(e)

    thumbprints = store.list_thumbprints()
    if not thumbprints:
        click.echo(f"No trusted certificates in {store.directory}")
        return
    for thumbprint in thumbprints:
        click.echo(thumbprint)


main.add_command(provision)
main.add_command(site)
main.add_command(schedule_start)
main.add_command(config_group)


if __name__ == "__main__":
    main()
