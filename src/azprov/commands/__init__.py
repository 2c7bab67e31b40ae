"""Command groups for azprov CLI."""

from azprov.commands.config import config_group
from azprov.commands.provisioning import provision
from azprov.commands.schedule import schedule_start
from azprov.commands.site import site

__all__ = ["config_group", "provision", "schedule_start", "site"]
