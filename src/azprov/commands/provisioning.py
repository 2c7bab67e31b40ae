"""VM provisioning command.

This module provides the ``provision`` command: resource group, VM with data
disks, management certificate trust and guest disk formatting, in that order.
"""

from __future__ import annotations

import os

import click

from azprov.commands.cli_helpers import console, fail, load_provider, print_warnings
from azprov.exceptions import ProvisionError
from azprov.models import Credential
from azprov.vm_provisioning import Provisioner, ProvisioningRequest

__all__ = ["provision"]

PASSWORD_ENV_VAR = "AZPROV_ADMIN_PASSWORD"


@click.command(name="provision")
@click.option("--service-name", required=True, help="Resource group hosting the VM")
@click.option("--vm-name", required=True, help="Windows VM name (1-15 characters)")
@click.option("--location", help="Azure region, required if the resource group does not exist")
@click.option(
    "--disk-size-gb",
    type=click.IntRange(min=1),
    required=True,
    help="Size of each new data disk in GB",
)
@click.option(
    "--number-of-disks",
    type=click.IntRange(min=1),
    required=True,
    help="Number of data disks to add",
)
@click.option("--username", help="Administrator user name (default: from config)")
@click.option("--config", help="Config file path", type=click.Path())
def provision(
    service_name: str,
    vm_name: str,
    location: str | None,
    disk_size_gb: int,
    number_of_disks: int,
    username: str | None,
    config: str | None,
):
    """Provision a Windows VM with data disks.

    Re-running against an existing VM appends NUMBER_OF_DISKS new disks after
    the highest LUN in use; existing disks are left alone.

    The administrator password is prompted for, or read from
    AZPROV_ADMIN_PASSWORD.

    \b
    Examples:
        azprov provision --service-name contoso-svc --location "West US" \\
            --vm-name vm1 --disk-size-gb 16 --number-of-disks 2
    """
    try:
        provider = load_provider(config)
    except ProvisionError as e:
        fail(e)

    password = os.environ.get(PASSWORD_ENV_VAR) or click.prompt(
        "Administrator password", hide_input=True, confirmation_prompt=True
    )
    credential = Credential(
        username=username or provider.config.admin_username, password=password
    )
    request = ProvisioningRequest(
        service_name=service_name,
        vm_name=vm_name,
        disk_size_gb=disk_size_gb,
        disk_count=number_of_disks,
        credential=credential,
        location=location,
    )

    provisioner = Provisioner(provider, progress_callback=lambda msg: console.print(f"→ {msg}"))
    result = provisioner.provision(request)

    print_warnings(result.warnings)
    if not result.succeeded:
        fail(result.get_summary())

    click.echo(f"✓ {result.get_summary()}")
    vm = result.vm
    if vm is not None:
        for disk in vm.data_disks:
            click.echo(f"  LUN {disk.lun}: {disk.label} ({disk.size_gb} GB)")
    certificate = result.value_of("trust_management_certificate")
    if certificate is not None:
        click.echo(f"  Trusted certificate: {certificate.thumbprint}")
