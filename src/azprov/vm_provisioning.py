"""VM provisioning module.

Idempotent provisioning of a Windows VM with data disks:

1. ensure_service: resource group exists (created if absent)
2. ensure_virtual_machine: VM exists, with N new data disks appended
3. trust_management_certificate: the VM's WinRM certificate is trusted locally
4. initialize_raw_disks: raw disks are partitioned and formatted in the guest

The steps run strictly in order. provision() records the outcome of each step
in a ProvisioningResult and stops at the first failure; nothing created before
the failure is rolled back.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from azprov.azure_provider import AzureProvider
from azprov.cert_handler import (
    EXPIRATION_WARNING_DAYS,
    ManagementCertificate,
    TrustStore,
    days_until_expiry,
    fetch_management_certificate,
)
from azprov.exceptions import MissingLocationError, ProviderError, ProvisionError, ValidationError
from azprov.models import (
    Credential,
    HostingService,
    VirtualMachine,
    VMConfigBuilder,
    normalize_location,
    plan_additional_disks,
    validate_service_name,
    validate_vm_name,
)
from azprov.remote_exec import (
    RemoteCommandChannel,
    RemoteResult,
    enable_management_listener,
    initialize_raw_disks,
)

logger = logging.getLogger(__name__)

# NSG rule priority for the WinRM HTTPS port (RDP rule created by az uses 1000)
MANAGEMENT_PORT_PRIORITY = 1010


@dataclass(frozen=True)
class ProvisioningRequest:
    """Parameters of one provisioning run."""

    service_name: str
    vm_name: str
    disk_size_gb: int
    disk_count: int
    credential: Credential
    location: str | None = None


@dataclass
class StepOutcome:
    """Outcome of one provisioning step."""

    name: str
    success: bool
    value: Any = None
    error: ProvisionError | None = None


@dataclass
class ProvisioningResult:
    """Result of a provisioning run.

    Steps after the first failure are not executed and do not appear in
    ``steps``.
    """

    request: ProvisioningRequest
    steps: list[StepOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return bool(self.steps) and all(step.success for step in self.steps)

    @property
    def error(self) -> ProvisionError | None:
        for step in self.steps:
            if step.error is not None:
                return step.error
        return None

    @property
    def failed_step(self) -> str | None:
        for step in self.steps:
            if not step.success:
                return step.name
        return None

    def value_of(self, step_name: str) -> Any:
        for step in self.steps:
            if step.name == step_name:
                return step.value
        return None

    @property
    def service(self) -> HostingService | None:
        return self.value_of("ensure_service")

    @property
    def vm(self) -> VirtualMachine | None:
        return self.value_of("ensure_virtual_machine")

    def get_summary(self) -> str:
        """Get human-readable summary."""
        if self.succeeded:
            vm = self.vm
            disks = len(vm.data_disks) if vm else 0
            return (
                f"VM {self.request.vm_name} in {self.request.service_name} is ready "
                f"with {disks} data disk(s)"
            )
        return f"Provisioning stopped at {self.failed_step}: {self.error}"


class Provisioner:
    """Provision a VM and its data disks idempotently."""

    def __init__(
        self,
        provider: AzureProvider,
        trust_store: TrustStore | None = None,
        certificate_fetcher: Callable[[str, int], ManagementCertificate] | None = None,
        progress_callback: Callable[[str], None] | None = None,
    ):
        """Initialize provisioner.

        Args:
            provider: Azure provider (carries subscription and settings)
            trust_store: Local certificate trust store (default: from config)
            certificate_fetcher: Fetches the certificate from (host, port)
            progress_callback: Optional callback for progress messages
        """
        self.provider = provider
        self.config = provider.config
        self.trust_store = trust_store or TrustStore(self.config.trust_store_dir)
        self.fetch_certificate = certificate_fetcher or fetch_management_certificate
        self._progress_callback = progress_callback
        self.warnings: list[str] = []

    def _report(self, message: str) -> None:
        if self._progress_callback:
            self._progress_callback(message)
        logger.info(message)

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def ensure_service(self, service_name: str, location: str | None = None) -> HostingService:
        """Ensure the resource group exists.

        Args:
            service_name: Resource group name
            location: Region, required only when the group must be created
                (falls back to config default_location)

        Returns:
            Existing or newly created HostingService

        Raises:
            ValidationError: If the name is invalid
            MissingLocationError: If the group is absent and no location was given
            ProviderError: If the lookup or creation fails
        """
        validate_service_name(service_name)
        service = self.provider.get_resource_group(service_name)

        if service is None:
            location = location or self.config.default_location
            if not location or not location.strip():
                raise MissingLocationError(
                    f"Resource group '{service_name}' does not exist and no location was "
                    "given. Pass --location to create it."
                )
            self._report(f"Creating resource group {service_name} in {location}")
            return self.provider.create_resource_group(service_name, location.strip())

        if location and normalize_location(location) != normalize_location(service.location):
            self._warn(
                f"Resource group '{service_name}' already exists in {service.location}; "
                f"ignoring location '{location}'"
            )
        else:
            logger.info(f"Resource group {service_name} exists in {service.location}")
        return service

    def ensure_virtual_machine(
        self,
        service_name: str,
        vm_name: str,
        disk_size_gb: int,
        disk_count: int,
        credential: Credential,
    ) -> VirtualMachine:
        """Ensure the VM exists and append ``disk_count`` new data disks.

        Existing VM: new disks get LUNs after the current maximum and are
        attached in one update. New VM: created with disks at LUNs
        0..disk_count-1, then this blocks until it is running and enables its
        WinRM HTTPS management listener.

        Returns:
            VM with its full current disk set

        Raises:
            ValidationError: If sizes, counts or names are invalid
            ProviderError: If any Azure call fails (no rollback)
            RemoteExecutionError: If the management listener cannot be enabled
        """
        validate_vm_name(vm_name)
        if disk_size_gb < 1:
            raise ValidationError(f"Disk size must be at least 1 GB, got {disk_size_gb}")
        if disk_count < 1:
            raise ValidationError(f"Number of disks must be at least 1, got {disk_count}")

        vm = self.provider.get_vm(service_name, vm_name)
        if vm is not None:
            disks = plan_additional_disks(vm.luns, disk_count, disk_size_gb)
            self._report(
                f"VM {vm_name} exists; adding {disk_count} x {disk_size_gb} GB disk(s) "
                f"at LUN {disks[0].lun}-{disks[-1].lun}"
            )
            return self.provider.attach_data_disks(
                service_name, vm_name, disks, self.config.disk_sku
            )

        validate_vm_name(vm_name, new_vm=True)
        service = self.provider.get_resource_group(service_name)
        if service is None:
            raise ProviderError(f"Resource group '{service_name}' not found")

        request = (
            VMConfigBuilder(
                service_name, vm_name, service.location, self.config.vm_size, self.config.image
            )
            .with_credential(credential)
            .with_disk_sku(self.config.disk_sku)
            .with_boot_diagnostics(self.config.default_storage_account)
            .add_data_disks(count=disk_count, size_gb=disk_size_gb)
            .build()
        )

        self._report(f"Creating VM {vm_name} with {disk_count} x {disk_size_gb} GB disk(s)")
        vm = self.provider.create_vm(request)

        self._report(f"Waiting for {vm_name} to boot")
        vm.power_state = self.provider.wait_for_running(service_name, vm_name)

        port = self.config.winrm_port
        self.provider.open_port(service_name, vm_name, port, MANAGEMENT_PORT_PRIORITY)
        enable_management_listener(RemoteCommandChannel(self.provider, service_name, vm_name), port)
        return vm

    def trust_management_certificate(
        self, service_name: str, vm_name: str
    ) -> ManagementCertificate | None:
        """Install the VM's management certificate into the local trust store.

        Returns:
            The certificate if it was installed, None if already trusted

        Raises:
            ProviderError: If the VM or its public IP cannot be found
            CertificateError: If the certificate cannot be fetched or stored
        """
        host = self.provider.get_public_ip(service_name, vm_name)
        certificate = self.fetch_certificate(host, self.config.winrm_port)

        if self.trust_store.contains(certificate.thumbprint):
            logger.info(f"Certificate {certificate.thumbprint} is already trusted")
            return None

        remaining = days_until_expiry(certificate)
        if remaining < EXPIRATION_WARNING_DAYS:
            self._warn(
                f"Management certificate {certificate.thumbprint} expires in {remaining} days"
            )

        self.trust_store.install(certificate)
        self._report(f"Trusted management certificate {certificate.thumbprint}")
        return certificate

    def initialize_raw_disks(
        self, service_name: str, vm_name: str, credential: Credential
    ) -> RemoteResult:
        """Partition and format raw disks inside the guest.

        Raises:
            RemoteExecutionError: If the guest script fails
        """
        channel = RemoteCommandChannel(self.provider, service_name, vm_name, credential)
        self._report(f"Formatting raw disks on {vm_name}")
        return initialize_raw_disks(channel)

    # ------------------------------------------------------------------
    # Flow
    # ------------------------------------------------------------------

    def provision(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Run all steps in order, stopping at the first failure.

        Only ProvisionError failures are captured in the result; anything
        else is a bug and propagates.
        """
        self.warnings = []
        result = ProvisioningResult(request=request, warnings=self.warnings)
        steps: list[tuple[str, Callable[[], Any]]] = [
            ("ensure_service", lambda: self.ensure_service(request.service_name, request.location)),
            (
                "ensure_virtual_machine",
                lambda: self.ensure_virtual_machine(
                    request.service_name,
                    request.vm_name,
                    request.disk_size_gb,
                    request.disk_count,
                    request.credential,
                ),
            ),
            (
                "trust_management_certificate",
                lambda: self.trust_management_certificate(request.service_name, request.vm_name),
            ),
            (
                "initialize_raw_disks",
                lambda: self.initialize_raw_disks(
                    request.service_name, request.vm_name, request.credential
                ),
            ),
        ]

        for name, step in steps:
            try:
                value = step()
            except ProvisionError as e:
                logger.error(f"{name} failed: {e}")
                result.steps.append(StepOutcome(name=name, success=False, error=e))
                break
            result.steps.append(StepOutcome(name=name, success=True, value=value))

        return result


__all__ = [
    "Provisioner",
    "ProvisioningRequest",
    "ProvisioningResult",
    "StepOutcome",
]
