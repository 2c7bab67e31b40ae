"""Remote command execution module.

Commands run inside Windows guests through Azure managed run commands
(``az vm run-command create``). A run command can execute as a given guest
account, so the provisioning credential doubles as the channel credential.
No inbound ports are required for the channel itself.

Security:
- The run-as password is redacted from displayed commands, but it is passed
  on the az argv and is visible in the local process list while the command runs
- Scripts are fixed templates; only integers are interpolated
- Timeout enforcement on every execution
"""

import logging
import time
import uuid
from dataclasses import dataclass

from azprov.azure_provider import AzureProvider
from azprov.exceptions import ProviderError, RemoteExecutionError
from azprov.models import Credential

logger = logging.getLogger(__name__)

# Initialize every RAW disk as MBR, one full-size partition with a drive
# letter, NTFS without prompting. Disks already initialized are skipped.
DISK_INIT_SCRIPT = """\
$ErrorActionPreference = 'Stop'
$raw = @(Get-Disk | Where-Object PartitionStyle -eq 'RAW')
foreach ($disk in $raw) {
    $disk |
        Initialize-Disk -PartitionStyle MBR -PassThru |
        New-Partition -AssignDriveLetter -UseMaximumSize |
        Format-Volume -FileSystem NTFS -Confirm:$false | Out-Null
    Write-Output ("Formatted disk " + $disk.Number)
}
Write-Output ("Initialized " + $raw.Count + " raw disk(s)")
"""

WINRM_LISTENER_SCRIPT = """\
$ErrorActionPreference = 'Stop'
$listener = Get-ChildItem WSMan:\\localhost\\Listener |
    Where-Object {{ $_.Keys -contains 'Transport=HTTPS' }}
if (-not $listener) {{
    $cert = New-SelfSignedCertificate -DnsName $env:COMPUTERNAME `
        -CertStoreLocation Cert:\\LocalMachine\\My
    New-Item -Path WSMan:\\localhost\\Listener -Transport HTTPS -Address * `
        -CertificateThumbPrint $cert.Thumbprint -Port {port} -Force | Out-Null
    Write-Output ("Created HTTPS listener with certificate " + $cert.Thumbprint)
}}
if (-not (Get-NetFirewallRule -Name 'azprov-winrm-https' -ErrorAction SilentlyContinue)) {{
    New-NetFirewallRule -Name 'azprov-winrm-https' -DisplayName 'WinRM HTTPS' `
        -Protocol TCP -LocalPort {port} -Action Allow | Out-Null
}}
"""


@dataclass
class RemoteResult:
    """Result from remote command execution."""

    vm_name: str
    success: bool
    stdout: str
    stderr: str
    exit_code: int | None
    execution_state: str
    duration: float = 0.0

    def get_output(self) -> str:
        """Get combined output."""
        if self.stdout and self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout or self.stderr


class RemoteCommandChannel:
    """Run PowerShell scripts inside one VM."""

    def __init__(
        self,
        provider: AzureProvider,
        resource_group: str,
        vm_name: str,
        credential: Credential | None = None,
        timeout: int | None = None,
    ):
        """Open a channel to a VM.

        Args:
            provider: Azure provider
            resource_group: Resource group of the VM
            vm_name: VM name
            credential: Guest account to run as (None = LocalSystem)
            timeout: Script timeout in seconds (default: remote_command_timeout)
        """
        self.provider = provider
        self.resource_group = resource_group
        self.vm_name = vm_name
        self.credential = credential
        self.timeout = timeout or provider.config.remote_command_timeout

    def run_powershell(self, script: str) -> RemoteResult:
        """Execute a script and wait for it to finish.

        The temporary run-command resource is removed afterwards.

        Returns:
            RemoteResult (success reflects guest exit code and execution state)

        Raises:
            ProviderError: If the run command cannot be created or queried
        """
        name = f"azprov-{uuid.uuid4().hex[:8]}"
        scope = ["--resource-group", self.resource_group, "--vm-name", self.vm_name]
        args = [
            "vm",
            "run-command",
            "create",
            *scope,
            "--name",
            name,
            "--script",
            script,
            "--async-execution",
            "false",
            "--timeout-in-seconds",
            str(self.timeout),
        ]
        if self.credential is not None:
            args += [
                "--run-as-user",
                self.credential.username,
                "--run-as-password",
                self.credential.password,
            ]

        start = time.monotonic()
        logger.debug(f"Running script on {self.vm_name} as run command {name}")
        try:
            self.provider.az(args, timeout=self.timeout + 120)
            data = self.provider.az(
                ["vm", "run-command", "show", *scope, "--name", name, "--instance-view"]
            )
        finally:
            self._delete(name, scope)

        view = (data or {}).get("instanceView") or {}
        exit_code = view.get("exitCode")
        state = view.get("executionState") or "Unknown"
        return RemoteResult(
            vm_name=self.vm_name,
            success=state == "Succeeded" and exit_code == 0,
            stdout=(view.get("output") or "").strip(),
            stderr=(view.get("error") or "").strip(),
            exit_code=exit_code,
            execution_state=state,
            duration=time.monotonic() - start,
        )

    def _delete(self, name: str, scope: list[str]) -> None:
        try:
            self.provider.az(
                ["vm", "run-command", "delete", *scope, "--name", name, "--yes"],
                parse_json=False,
            )
        except ProviderError as e:
            # Leftover run-command resources are harmless
            logger.warning(f"Failed to delete run command {name} on {self.vm_name}: {e}")


def _run_checked(channel: RemoteCommandChannel, script: str, action: str) -> RemoteResult:
    try:
        result = channel.run_powershell(script)
    except ProviderError as e:
        raise RemoteExecutionError(
            f"{action} failed on {channel.vm_name}: {e.stderr or e}", error=e.stderr or ""
        ) from e
    if not result.success:
        raise RemoteExecutionError(
            f"{action} failed on {result.vm_name} "
            f"(state: {result.execution_state}, exit code: {result.exit_code}): "
            f"{result.stderr or result.stdout or 'no output'}",
            exit_code=result.exit_code,
            output=result.stdout,
            error=result.stderr,
        )
    return result


def initialize_raw_disks(channel: RemoteCommandChannel) -> RemoteResult:
    """Initialize, partition and format every RAW disk in the guest.

    Raises:
        RemoteExecutionError: If the script fails in the guest
    """
    logger.info(f"Initializing raw disks on {channel.vm_name}")
    result = _run_checked(channel, DISK_INIT_SCRIPT, "Disk initialization")
    logger.info(result.stdout.splitlines()[-1] if result.stdout else "Disk initialization done")
    return result


def enable_management_listener(channel: RemoteCommandChannel, port: int) -> RemoteResult:
    """Ensure a WinRM HTTPS listener with a self-signed certificate exists.

    Raises:
        RemoteExecutionError: If the script fails in the guest
    """
    logger.info(f"Enabling WinRM HTTPS listener on {channel.vm_name}:{port}")
    script = WINRM_LISTENER_SCRIPT.format(port=int(port))
    return _run_checked(channel, script, "Management listener setup")


__all__ = [
    "DISK_INIT_SCRIPT",
    "RemoteCommandChannel",
    "RemoteResult",
    "enable_management_listener",
    "initialize_raw_disks",
]
