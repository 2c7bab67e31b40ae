"""Web site provisioning.

Ensures an App Service web app exists (resource group, plan, app) and sets
its application settings. Every step is idempotent: existing resources are
reused, settings are merged by Azure (keys not mentioned are kept).
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from azprov.azure_provider import AzureProvider
from azprov.exceptions import ValidationError
from azprov.models import HostingService
from azprov.vm_provisioning import Provisioner

logger = logging.getLogger(__name__)


@dataclass
class WebSite:
    """A provisioned web app."""

    name: str
    service_name: str
    plan: str
    host_name: str | None = None
    state: str | None = None
    created: bool = False
    settings: dict[str, str] = field(default_factory=dict)

    @property
    def url(self) -> str | None:
        return f"https://{self.host_name}" if self.host_name else None


def parse_settings(pairs: list[str] | tuple[str, ...]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` strings into a dict (later keys win).

    Raises:
        ValidationError: If a pair has no '=' or an empty key
    """
    settings: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValidationError(f"Invalid app setting {pair!r}; expected KEY=VALUE")
        settings[key] = value
    return settings


class WebSiteProvisioner:
    """Provision web apps and their app settings."""

    def __init__(self, provider: AzureProvider):
        self.provider = provider
        self.config = provider.config
        self._service_provisioner = Provisioner(provider)

    @property
    def warnings(self) -> list[str]:
        return self._service_provisioner.warnings

    def ensure_web_site(
        self,
        name: str,
        service_name: str,
        location: str | None = None,
        plan: str | None = None,
        sku: str | None = None,
    ) -> WebSite:
        """Ensure resource group, App Service plan and web app exist.

        Args:
            name: Web app name (globally unique host name prefix)
            service_name: Resource group name
            location: Region, required if the resource group is created
            plan: App Service plan (default: config app_service_plan or "<name>-plan")
            sku: Plan SKU used when the plan is created (default: config app_service_sku)

        Returns:
            WebSite

        Raises:
            MissingLocationError: If the resource group is absent and no location given
            ProviderError: If an Azure call fails
        """
        if not name:
            raise ValidationError("Web site name is required")
        service = self._service_provisioner.ensure_service(service_name, location)
        plan_name = plan or self.config.app_service_plan or f"{name}-plan"

        if self.provider.get_app_service_plan(service_name, plan_name) is None:
            self.provider.create_app_service_plan(
                service_name, plan_name, service.location, sku or self.config.app_service_sku
            )

        data = self.provider.get_webapp(service_name, name)
        created = data is None
        if created:
            data = self.provider.create_webapp(service_name, name, plan_name)
        else:
            logger.info(f"Web app {name} already exists")

        return _to_web_site(service, name, plan_name, data or {}, created)

    def set_app_settings(
        self, name: str, service_name: str, settings: dict[str, str]
    ) -> dict[str, str]:
        """Apply app settings in one call.

        Returns:
            The settings that were applied (empty dict if nothing to do)

        Raises:
            ValidationError: If a key is empty or contains '='
        """
        if not settings:
            logger.info("No app settings to apply")
            return {}
        for key in settings:
            if not key or not key.strip() or "=" in key:
                raise ValidationError(f"Invalid app setting name: {key!r}")
        logger.info(f"Setting {len(settings)} app setting(s) on {name}: {', '.join(settings)}")
        self.provider.set_app_settings(service_name, name, settings)
        return dict(settings)


def _to_web_site(
    service: HostingService, name: str, plan: str, data: dict[str, Any], created: bool
) -> WebSite:
    return WebSite(
        name=name,
        service_name=service.name,
        plan=plan,
        host_name=data.get("defaultHostName"),
        state=data.get("state"),
        created=created,
    )


__all__ = ["WebSite", "WebSiteProvisioner", "parse_settings"]
