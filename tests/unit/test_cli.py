"""CLI tests using click's CliRunner.

The provider is replaced with the in-memory fake and certificate fetching
is patched, so commands run end to end without Azure.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from azprov import __version__
from azprov.cli import main
from azprov.config_manager import ConfigManager
from azprov.exceptions import ConfigError
from azprov.start_schedule import StartScheduleManager


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def cli_provider(fake_provider, management_certificate):
    """Route every command to the fake provider."""
    with (
        patch("azprov.commands.provisioning.load_provider", return_value=fake_provider),
        patch("azprov.commands.site.load_provider", return_value=fake_provider),
        patch("azprov.commands.schedule.load_provider", return_value=fake_provider),
        patch(
            "azprov.vm_provisioning.fetch_management_certificate",
            return_value=management_certificate,
        ),
    ):
        yield fake_provider


PROVISION_ARGS = [
    "provision",
    "--service-name",
    "contoso-svc",
    "--location",
    "West US",
    "--vm-name",
    "vm1",
    "--disk-size-gb",
    "16",
    "--number-of-disks",
    "2",
]


class TestMain:
    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(main, ["--help"])
        for command in ("provision", "site", "schedule-start", "certs", "config"):
            assert command in result.output


class TestProvisionCommand:
    def test_success_with_prompted_password(self, runner, cli_provider, monkeypatch):
        monkeypatch.delenv("AZPROV_ADMIN_PASSWORD", raising=False)

        result = runner.invoke(main, PROVISION_ARGS, input="S3cure-Pw!\nS3cure-Pw!\n")

        assert result.exit_code == 0, result.output
        assert "ready with 2 data disk(s)" in result.output
        assert "LUN 1: disk_1 (16 GB)" in result.output
        (request,) = cli_provider.called("create_vm")[0]
        assert request.credential.password == "S3cure-Pw!"
        assert request.credential.username == cli_provider.config.admin_username

    def test_password_from_environment(self, runner, cli_provider, monkeypatch):
        monkeypatch.setenv("AZPROV_ADMIN_PASSWORD", "FromEnv-1!")

        result = runner.invoke(main, [*PROVISION_ARGS, "--username", "opsadmin"])

        assert result.exit_code == 0, result.output
        (request,) = cli_provider.called("create_vm")[0]
        assert request.credential.username == "opsadmin"
        assert request.credential.password == "FromEnv-1!"

    def test_missing_location_exits_1(self, runner, cli_provider, monkeypatch):
        monkeypatch.setenv("AZPROV_ADMIN_PASSWORD", "pw")
        args = [a for a in PROVISION_ARGS if a not in ("--location", "West US")]

        result = runner.invoke(main, args)

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "ensure_service" in result.output
        assert cli_provider.called("create_vm") == []

    @pytest.mark.parametrize("option", ["--disk-size-gb", "--number-of-disks"])
    def test_rejects_zero(self, runner, cli_provider, option):
        args = list(PROVISION_ARGS)
        args[args.index(option) + 1] = "0"

        result = runner.invoke(main, args)

        assert result.exit_code == 2
        assert cli_provider.calls == []

    def test_config_error(self, runner, monkeypatch):
        monkeypatch.setenv("AZPROV_ADMIN_PASSWORD", "pw")
        with patch(
            "azprov.commands.provisioning.load_provider", side_effect=ConfigError("bad config")
        ):
            result = runner.invoke(main, PROVISION_ARGS)

        assert result.exit_code == 1
        assert "Error: bad config" in result.output


class TestSiteCommand:
    def test_site_with_settings(self, runner, cli_provider):
        result = runner.invoke(
            main,
            [
                "site",
                "--name",
                "contoso-web",
                "--service-name",
                "contoso-svc",
                "--location",
                "West US",
                "--setting",
                "MODE=prod",
                "--setting",
                "LEVEL=2",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Created web app contoso-web" in result.output
        assert "https://contoso-web.azurewebsites.net" in result.output
        assert cli_provider.called("set_app_settings") == [
            ("contoso-svc", "contoso-web", {"MODE": "prod", "LEVEL": "2"})
        ]

    def test_invalid_setting(self, runner, cli_provider):
        result = runner.invoke(
            main,
            ["site", "--name", "w", "--service-name", "rg", "--location", "x", "--setting", "BAD"],
        )

        assert result.exit_code == 1
        assert "KEY=VALUE" in result.output
        assert cli_provider.calls == []


class TestScheduleCommands:
    def test_enable_show_disable(self, runner, cli_provider):
        base = ["--service-name", "contoso-svc", "--vm-name", "vm1"]

        result = runner.invoke(
            main, ["schedule-start", "enable", *base, "--at", "07:30", "--days", "weekdays"]
        )
        assert result.exit_code == 0, result.output
        assert "mon,tue,wed,thu,fri" in result.output

        result = runner.invoke(main, ["schedule-start", "show", *base])
        assert "07:30 UTC" in result.output

        result = runner.invoke(main, ["schedule-start", "disable", *base])
        assert result.exit_code == 0
        tags = cli_provider.tags[("contoso-svc", "vm1")]
        assert StartScheduleManager.SCHEDULE_TAG_KEY not in tags

    def test_invalid_time(self, runner, cli_provider):
        result = runner.invoke(
            main,
            ["schedule-start", "enable", "--service-name", "rg", "--vm-name", "vm1", "--at", "9am"],
        )
        assert result.exit_code == 1
        assert "Invalid time" in result.output

    def test_run_reports_counts(self, runner, cli_provider):
        result = runner.invoke(main, ["schedule-start", "run", "--service-name", "contoso-svc"])

        assert result.exit_code == 0
        assert "Checked 0 VM(s)" in result.output


class TestCertsCommand:
    def test_lists_thumbprints(self, runner, trust_store, management_certificate):
        trust_store.install(management_certificate)
        config = type("Config", (), {"trust_store_dir": str(trust_store.directory)})()

        with patch("azprov.cli.ConfigManager.load_config", return_value=config):
            result = runner.invoke(main, ["certs"])

        assert result.exit_code == 0
        assert management_certificate.thumbprint in result.output

    def test_empty_store(self, runner, tmp_path):
        config = type("Config", (), {"trust_store_dir": str(tmp_path / "none")})()

        with patch("azprov.cli.ConfigManager.load_config", return_value=config):
            result = runner.invoke(main, ["certs"])

        assert "No trusted certificates" in result.output


class TestConfigCommands:
    @pytest.fixture
    def config_file(self, tmp_path, monkeypatch):
        directory = tmp_path / ".azprov"
        monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_DIR", directory)
        monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_FILE", directory / "config.toml")
        return directory / "config.toml"

    def test_set_writes_file(self, runner, config_file):
        result = runner.invoke(main, ["config", "set", "default-location", "westus2"])

        assert result.exit_code == 0, result.output
        assert 'default_location = "westus2"' in config_file.read_text()
        assert ConfigManager.load_config().default_location == "westus2"

    def test_set_unknown_key(self, runner, config_file):
        result = runner.invoke(main, ["config", "set", "colour", "blue"])

        assert result.exit_code == 1
        assert "Unknown config key: colour" in result.output
        assert not config_file.exists()

    def test_set_invalid_integer(self, runner, config_file):
        result = runner.invoke(main, ["config", "set", "boot_wait_timeout", "soon"])

        assert result.exit_code == 1
        assert "must be an integer" in result.output

    def test_unset_removes_key(self, runner, config_file):
        runner.invoke(main, ["config", "set", "default-location", "westus2"])

        result = runner.invoke(main, ["config", "unset", "default-location"])

        assert result.exit_code == 0, result.output
        assert "default_location" not in config_file.read_text()

    def test_show_includes_environment_override(self, runner, config_file, monkeypatch):
        monkeypatch.setenv("AZPROV_VM_SIZE", "Standard_B4ms")

        result = runner.invoke(main, ["config", "show"])

        assert result.exit_code == 0
        assert "vm_size = Standard_B4ms" in result.output
        assert "winrm_port = 5986" in result.output
