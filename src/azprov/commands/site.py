"""Web site provisioning command."""

from __future__ import annotations

import click

from azprov.commands.cli_helpers import fail, load_provider, print_warnings
from azprov.exceptions import ProvisionError
from azprov.web_site import WebSiteProvisioner, parse_settings

__all__ = ["site"]


@click.command(name="site")
@click.option("--name", required=True, help="Web app name")
@click.option("--service-name", required=True, help="Resource group hosting the web app")
@click.option("--location", help="Azure region, required if the resource group does not exist")
@click.option("--plan", help="App Service plan (default: <name>-plan)")
@click.option("--sku", help="Plan SKU used when the plan is created")
@click.option(
    "--setting",
    "settings",
    multiple=True,
    metavar="KEY=VALUE",
    help="App setting to apply (repeatable)",
)
@click.option("--config", help="Config file path", type=click.Path())
def site(
    name: str,
    service_name: str,
    location: str | None,
    plan: str | None,
    sku: str | None,
    settings: tuple[str, ...],
    config: str | None,
):
    """Provision a web site and apply its app settings.

    \b
    Examples:
        azprov site --name contoso-web --service-name contoso-svc --location "West US"
        azprov site --name contoso-web --service-name contoso-svc --setting MODE=prod
    """
    try:
        app_settings = parse_settings(settings)
        provisioner = WebSiteProvisioner(load_provider(config))
        web_site = provisioner.ensure_web_site(name, service_name, location, plan, sku)
        web_site.settings = provisioner.set_app_settings(name, service_name, app_settings)
    except ProvisionError as e:
        fail(e)

    print_warnings(provisioner.warnings)
    action = "Created" if web_site.created else "Found"
    click.echo(f"✓ {action} web app {web_site.name} (plan {web_site.plan})")
    if web_site.url:
        click.echo(f"  URL: {web_site.url}")
    if web_site.settings:
        click.echo(f"  Applied settings: {', '.join(sorted(web_site.settings))}")
