"""Azure management client used by all provisioning operations.

AzureProvider is the explicit client object every operation receives. It owns
the subscription, timeouts and retry policy and turns Azure CLI invocations
into typed results. Failing calls raise ProviderError; lookups of resources
that do not exist return None.

Security:
- Commands are sanitized before display (admin/run-as passwords redacted)
- The admin password is passed on the az argv and is visible in the local
  process list while `az vm create` runs
- Input validation happens in the callers (models.validate_*)
"""

import json
import logging
import time
from typing import Any

from azprov.azure_cli_visibility import AzureCLIExecutor
from azprov.config_manager import ProvisionerConfig
from azprov.exceptions import ProviderError
from azprov.models import DataDisk, HostingService, VirtualMachine, VMCreateRequest
from azprov.retry_config import RetryConfig, get_retry_config
from azprov.retry_handler import is_transient_provider_error, retry_with_exponential_backoff

logger = logging.getLogger(__name__)

NOT_FOUND_MARKERS = (
    "ResourceNotFound",
    "ResourceGroupNotFound",
    "could not be found",
    "was not found",
    "Can't find app",
)


class AzureProvider:
    """Azure Resource Manager operations through the Azure CLI."""

    def __init__(
        self,
        config: ProvisionerConfig | None = None,
        retry_config: RetryConfig | None = None,
        show_commands: bool = True,
    ):
        """Initialize provider.

        Args:
            config: Provisioner configuration (default: built-in defaults)
            retry_config: Retry policy (default: from environment)
            show_commands: Print each sanitized az command before running it
        """
        self.config = config or ProvisionerConfig()
        self.show_commands = show_commands
        retry = retry_config or get_retry_config()
        self._execute = retry_with_exponential_backoff(
            max_attempts=retry.azure_cli_max_attempts,
            initial_delay=retry.azure_cli_initial_delay,
            max_delay=retry.azure_cli_max_delay,
            jitter=retry.jitter_enabled,
            retryable_exceptions=(ProviderError,),
            should_retry=is_transient_provider_error,
        )(self._execute_once)

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------

    def az(
        self,
        args: list[str],
        *,
        timeout: int | None = None,
        allow_not_found: bool = False,
        parse_json: bool = True,
    ) -> Any:
        """Run ``az <args>`` and return its parsed JSON output.

        Args:
            args: Arguments after ``az``
            timeout: Seconds before the call is abandoned (default: command_timeout)
            allow_not_found: Return None instead of raising for missing resources
            parse_json: Parse stdout as JSON (empty output returns None)

        Returns:
            Parsed JSON, raw stdout when parse_json is False, or None

        Raises:
            ProviderError: If the command fails
        """
        command = ["az", *args]
        if parse_json:
            command += ["--output", "json"]
        if self.config.subscription_id:
            command += ["--subscription", self.config.subscription_id]

        try:
            stdout = self._execute(command, timeout or self.config.command_timeout)
        except ProviderError as e:
            if allow_not_found and _is_not_found(e.stderr or ""):
                logger.debug(f"Resource not found: {e.command}")
                return None
            raise

        if not parse_json:
            return stdout
        if not stdout.strip():
            return None
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise ProviderError(f"Failed to parse Azure CLI output: {e}") from e

    def _execute_once(self, command: list[str], timeout: int) -> str:
        executor = AzureCLIExecutor(
            show_progress=self.show_commands, timeout=timeout, show_command=self.show_commands
        )
        result = executor.execute(command)
        if not result["success"]:
            stderr = (result["stderr"] or "").strip()
            raise ProviderError(
                f"Azure CLI command failed: {result['command']}\n{stderr}",
                command=result["command"],
                stderr=stderr,
                returncode=result["returncode"],
            )
        return result["stdout"]

    # ------------------------------------------------------------------
    # Resource groups (hosting services)
    # ------------------------------------------------------------------

    def get_resource_group(self, name: str) -> HostingService | None:
        data = self.az(["group", "show", "--name", name], allow_not_found=True)
        if data is None:
            return None
        return HostingService(name=data["name"], location=data["location"])

    def create_resource_group(self, name: str, location: str) -> HostingService:
        logger.info(f"Creating resource group {name} in {location}")
        data = self.az(["group", "create", "--name", name, "--location", location])
        return HostingService(name=data["name"], location=data["location"])

    # ------------------------------------------------------------------
    # Virtual machines
    # ------------------------------------------------------------------

    def get_vm(self, resource_group: str, name: str) -> VirtualMachine | None:
        """Look up a VM with instance details (power state, public IP)."""
        data = self.az(
            ["vm", "show", "--resource-group", resource_group, "--name", name, "--show-details"],
            allow_not_found=True,
        )
        if data is None:
            return None
        return parse_vm(resource_group, data)

    def create_vm(self, request: VMCreateRequest) -> VirtualMachine:
        """Create a VM and attach the requested data disks.

        The VM is created without data disks, then all disks are attached
        in a single update so they carry their labels and LUNs.
        """
        args = [
            "vm",
            "create",
            "--resource-group",
            request.service_name,
            "--name",
            request.name,
            "--location",
            request.location,
            "--size",
            request.size,
            "--image",
            request.image,
            "--admin-username",
            request.credential.username,
            "--admin-password",
            request.credential.password,
            "--public-ip-sku",
            "Standard",
            "--storage-sku",
            request.disk_sku,
        ]
        if request.boot_diagnostics_storage:
            args += ["--boot-diagnostics-storage", request.boot_diagnostics_storage]

        logger.info(f"Creating VM {request.name} ({request.size}, {request.image})")
        self.az(args, timeout=self.config.create_timeout)

        if request.data_disks:
            return self.attach_data_disks(
                request.service_name, request.name, request.data_disks, request.disk_sku
            )
        vm = self.get_vm(request.service_name, request.name)
        if vm is None:
            raise ProviderError(f"VM {request.name} not found after creation")
        return vm

    def attach_data_disks(
        self,
        resource_group: str,
        vm_name: str,
        disks: tuple[DataDisk, ...] | list[DataDisk],
        sku: str | None = None,
    ) -> VirtualMachine:
        """Attach new empty managed disks with one ``az vm update`` call."""
        if not disks:
            raise ValueError("No disks to attach")
        storage_type = sku or self.config.disk_sku
        args = ["vm", "update", "--resource-group", resource_group, "--name", vm_name]
        for disk in disks:
            entry = {
                "lun": disk.lun,
                "name": disk.resource_name(vm_name),
                "createOption": "Empty",
                "diskSizeGB": disk.size_gb,
                "managedDisk": {"storageAccountType": storage_type},
            }
            args += ["--add", "storageProfile.dataDisks", json.dumps(entry, separators=(",", ":"))]

        luns = ", ".join(str(disk.lun) for disk in disks)
        logger.info(f"Attaching {len(disks)} data disk(s) to {vm_name} at LUN {luns}")
        data = self.az(args, timeout=self.config.create_timeout)
        return parse_vm(resource_group, data)

    def wait_for_running(
        self,
        resource_group: str,
        vm_name: str,
        timeout: int | None = None,
        poll_interval: int | None = None,
    ) -> str:
        """Block until the VM reports ``PowerState/running``.

        Args:
            resource_group: Resource group name
            vm_name: VM name
            timeout: Seconds to wait (default: boot_wait_timeout)
            poll_interval: Seconds between polls (default: boot_poll_interval)

        Returns:
            Final power state display string

        Raises:
            ProviderError: If the VM does not boot before the deadline
        """
        timeout = timeout or self.config.boot_wait_timeout
        poll_interval = poll_interval or self.config.boot_poll_interval
        deadline = time.monotonic() + timeout
        logger.info(f"Waiting up to {timeout}s for {vm_name} to boot...")

        while True:
            state = self.get_power_state(resource_group, vm_name)
            if state == "PowerState/running":
                logger.info(f"VM {vm_name} is running")
                return "VM running"
            if time.monotonic() >= deadline:
                raise ProviderError(
                    f"VM {vm_name} did not reach running state within {timeout}s "
                    f"(last state: {state or 'unknown'})"
                )
            logger.debug(f"VM {vm_name} state {state}, polling again in {poll_interval}s")
            time.sleep(poll_interval)

    def get_power_state(self, resource_group: str, vm_name: str) -> str | None:
        data = self.az(
            ["vm", "get-instance-view", "--resource-group", resource_group, "--name", vm_name]
        )
        statuses = (data or {}).get("instanceView", {}).get("statuses", [])
        for status in statuses:
            code = status.get("code", "")
            if code.startswith("PowerState/"):
                return code
        return None

    def start_vm(self, resource_group: str, vm_name: str) -> None:
        logger.info(f"Starting VM {vm_name}")
        self.az(
            ["vm", "start", "--resource-group", resource_group, "--name", vm_name],
            timeout=self.config.create_timeout,
        )

    def open_port(self, resource_group: str, vm_name: str, port: int, priority: int) -> None:
        self.az(
            [
                "vm",
                "open-port",
                "--resource-group",
                resource_group,
                "--name",
                vm_name,
                "--port",
                str(port),
                "--priority",
                str(priority),
            ]
        )

    def get_public_ip(self, resource_group: str, vm_name: str) -> str:
        """Public IP address of a VM.

        Raises:
            ProviderError: If the VM does not exist or has no public IP
        """
        vm = self.get_vm(resource_group, vm_name)
        if vm is None:
            raise ProviderError(f"VM {vm_name} not found in {resource_group}")
        if not vm.public_ip:
            raise ProviderError(f"VM {vm_name} has no public IP address")
        return vm.public_ip

    # ------------------------------------------------------------------
    # VM tags
    # ------------------------------------------------------------------

    def get_vm_tags(self, resource_group: str, vm_name: str) -> dict[str, str]:
        data = self.az(
            [
                "vm",
                "show",
                "--resource-group",
                resource_group,
                "--name",
                vm_name,
                "--query",
                "tags",
            ]
        )
        return data or {}

    def set_vm_tag(self, resource_group: str, vm_name: str, key: str, value: str) -> None:
        self.az(
            [
                "vm",
                "update",
                "--resource-group",
                resource_group,
                "--name",
                vm_name,
                "--set",
                f"tags.{key}={value}",
                "--force-string",
            ]
        )

    def remove_vm_tag(self, resource_group: str, vm_name: str, key: str) -> None:
        self.az(
            [
                "vm",
                "update",
                "--resource-group",
                resource_group,
                "--name",
                vm_name,
                "--remove",
                f"tags.{key}",
            ]
        )

    def list_vms_with_tag(self, resource_group: str, key: str) -> list[str]:
        data = self.az(
            [
                "vm",
                "list",
                "--resource-group",
                resource_group,
                "--query",
                f'[?tags."{key}" != null].name',
            ]
        )
        return list(data or [])

    # ------------------------------------------------------------------
    # App Service
    # ------------------------------------------------------------------

    def get_app_service_plan(self, resource_group: str, name: str) -> dict[str, Any] | None:
        return self.az(
            ["appservice", "plan", "show", "--resource-group", resource_group, "--name", name],
            allow_not_found=True,
        )

    def create_app_service_plan(
        self, resource_group: str, name: str, location: str, sku: str
    ) -> dict[str, Any]:
        logger.info(f"Creating App Service plan {name} ({sku})")
        return self.az(
            [
                "appservice",
                "plan",
                "create",
                "--resource-group",
                resource_group,
                "--name",
                name,
                "--location",
                location,
                "--sku",
                sku,
            ]
        )

    def get_webapp(self, resource_group: str, name: str) -> dict[str, Any] | None:
        return self.az(
            ["webapp", "show", "--resource-group", resource_group, "--name", name],
            allow_not_found=True,
        )

    def create_webapp(self, resource_group: str, name: str, plan: str) -> dict[str, Any]:
        logger.info(f"Creating web app {name} on plan {plan}")
        return self.az(
            [
                "webapp",
                "create",
                "--resource-group",
                resource_group,
                "--name",
                name,
                "--plan",
                plan,
            ],
            timeout=self.config.create_timeout,
        )

    def set_app_settings(
        self, resource_group: str, name: str, settings: dict[str, str]
    ) -> list[dict[str, Any]]:
        args = [
            "webapp",
            "config",
            "appsettings",
            "set",
            "--resource-group",
            resource_group,
            "--name",
            name,
            "--settings",
        ]
        args += [f"{key}={value}" for key, value in settings.items()]
        return self.az(args) or []


def _is_not_found(stderr: str) -> bool:
    return any(marker.lower() in stderr.lower() for marker in NOT_FOUND_MARKERS)


def parse_vm(resource_group: str, data: dict[str, Any]) -> VirtualMachine:
    """Build a VirtualMachine from ``az vm show`` / ``az vm update`` JSON."""
    name = data["name"]
    storage = data.get("storageProfile") or {}
    image_ref = storage.get("imageReference") or {}
    prefix = f"{name}-"

    disks = []
    for entry in storage.get("dataDisks") or []:
        disk_name = entry.get("name") or ""
        label = disk_name[len(prefix) :] if disk_name.startswith(prefix) else disk_name
        size = entry.get("diskSizeGb", entry.get("diskSizeGB")) or 0
        disks.append(DataDisk(size_gb=int(size), label=label, lun=int(entry["lun"])))
    disks.sort(key=lambda disk: disk.lun)

    public_ips = data.get("publicIps") or ""
    return VirtualMachine(
        service_name=resource_group,
        name=name,
        location=data.get("location", ""),
        size=(data.get("hardwareProfile") or {}).get("vmSize"),
        image=image_ref.get("sku") or image_ref.get("id"),
        admin_username=(data.get("osProfile") or {}).get("adminUsername"),
        data_disks=disks,
        power_state=data.get("powerState"),
        public_ip=public_ips.split(",")[0].strip() or None,
        id=data.get("id"),
    )


__all__ = ["AzureProvider", "parse_vm"]
