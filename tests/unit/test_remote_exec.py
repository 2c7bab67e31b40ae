"""Tests for remote_exec module.

The in-memory provider answers the run-command calls; tests check the
commands sent and how the instance view is interpreted.
"""

from unittest.mock import MagicMock

import pytest

from azprov.exceptions import ProviderError, RemoteExecutionError
from azprov.remote_exec import (
    DISK_INIT_SCRIPT,
    RemoteCommandChannel,
    RemoteResult,
    enable_management_listener,
    initialize_raw_disks,
)


def az_actions(fake_provider):
    return [args[0][2] for args in fake_provider.called("az")]


class TestRemoteCommandChannel:
    def test_create_show_delete(self, fake_provider, credential):
        channel = RemoteCommandChannel(fake_provider, "contoso-svc", "vm1", credential, timeout=60)

        result = channel.run_powershell("Write-Output hi")

        assert az_actions(fake_provider) == ["create", "show", "delete"]
        (create,) = fake_provider.run_commands
        assert create[create.index("--timeout-in-seconds") + 1] == "60"
        assert create[create.index("--run-as-password") + 1] == credential.password
        assert result.success
        assert result.exit_code == 0

    def test_without_credential_runs_as_system(self, fake_provider):
        RemoteCommandChannel(fake_provider, "contoso-svc", "vm1").run_powershell("whoami")

        (create,) = fake_provider.run_commands
        assert "--run-as-user" not in create

    def test_default_timeout_from_config(self, fake_provider):
        channel = RemoteCommandChannel(fake_provider, "contoso-svc", "vm1")
        assert channel.timeout == fake_provider.config.remote_command_timeout

    def test_non_zero_exit_is_failure(self, fake_provider):
        fake_provider.run_command_view.update({"exitCode": 3, "error": "boom"})

        result = RemoteCommandChannel(fake_provider, "contoso-svc", "vm1").run_powershell("x")

        assert not result.success
        assert result.get_output() == "Initialized 0 raw disk(s)\nboom"

    def test_deletes_run_command_when_create_fails(self):
        provider = MagicMock()
        provider.config.remote_command_timeout = 30
        provider.az.side_effect = [ProviderError("Conflict"), ""]

        with pytest.raises(ProviderError):
            RemoteCommandChannel(provider, "contoso-svc", "vm1").run_powershell("x")

        delete_args = provider.az.call_args_list[-1].args[0]
        assert delete_args[:3] == ["vm", "run-command", "delete"]

    def test_delete_failure_only_logged(self, caplog):
        provider = MagicMock()
        provider.config.remote_command_timeout = 30
        view = {"instanceView": {"executionState": "Succeeded", "exitCode": 0, "output": "ok"}}
        provider.az.side_effect = [{}, view, ProviderError("gone")]

        result = RemoteCommandChannel(provider, "contoso-svc", "vm1").run_powershell("x")

        assert result.success
        assert "Failed to delete run command" in caplog.text


class TestScripts:
    def test_disk_init_script_formats_raw_disks(self):
        assert "PartitionStyle -eq 'RAW'" in DISK_INIT_SCRIPT
        assert "Initialize-Disk -PartitionStyle MBR" in DISK_INIT_SCRIPT
        assert "New-Partition -AssignDriveLetter -UseMaximumSize" in DISK_INIT_SCRIPT
        assert "Format-Volume -FileSystem NTFS -Confirm:$false" in DISK_INIT_SCRIPT

    def test_initialize_raw_disks(self, fake_provider, credential):
        channel = RemoteCommandChannel(fake_provider, "contoso-svc", "vm1", credential)

        result = initialize_raw_disks(channel)

        assert isinstance(result, RemoteResult)
        (create,) = fake_provider.run_commands
        assert create[create.index("--script") + 1] == DISK_INIT_SCRIPT

    def test_initialize_raw_disks_failure(self, fake_provider):
        fake_provider.run_command_view.update({"executionState": "Failed", "exitCode": None})
        channel = RemoteCommandChannel(fake_provider, "contoso-svc", "vm1")

        with pytest.raises(RemoteExecutionError) as exc_info:
            initialize_raw_disks(channel)
        assert "state: Failed" in str(exc_info.value)

    def test_provider_error_wrapped(self, fake_provider):
        fake_provider.failures["az"] = ProviderError("failed", stderr="VM not running")
        channel = RemoteCommandChannel(fake_provider, "contoso-svc", "vm1")

        with pytest.raises(RemoteExecutionError, match="VM not running"):
            initialize_raw_disks(channel)

    def test_management_listener_port(self, fake_provider):
        enable_management_listener(RemoteCommandChannel(fake_provider, "rg", "vm1"), 5986)

        (create,) = fake_provider.run_commands
        script = create[create.index("--script") + 1]
        assert "-Port 5986" in script
        assert "-LocalPort 5986" in script
        assert "{port}" not in script
