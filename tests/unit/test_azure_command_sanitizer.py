"""Tests for Azure CLI command sanitization."""

import pytest

from azprov.security import AzureCommandSanitizer, sanitize_azure_command

REDACTED = AzureCommandSanitizer.REDACTED


class TestParameterRedaction:
    def test_admin_password(self):
        result = AzureCommandSanitizer.sanitize("az vm create --name vm1 --admin-password P@ss1")
        assert result == f"az vm create --name vm1 --admin-password {REDACTED}"

    def test_run_as_password_in_args(self):
        args = [
            "az",
            "vm",
            "run-command",
            "create",
            "--run-as-user",
            "azprovadmin",
            "--run-as-password",
            "P@ss1",
        ]

        result = AzureCommandSanitizer.sanitize_args(args)

        assert result[-1] == REDACTED
        assert "azprovadmin" in result

    def test_equals_form(self):
        assert sanitize_azure_command(["az", "--password=abc"]) == f"az --password={REDACTED}"

    @pytest.mark.parametrize(
        "param", ["--admin-password", "--ADMIN-PASSWORD", "--client-secret", "--my-api-key"]
    )
    def test_sensitive_params(self, param):
        assert AzureCommandSanitizer.is_sensitive_param(param)

    @pytest.mark.parametrize("param", ["--name", "--resource-group", "--run-as-user", "--settings"])
    def test_non_sensitive_params(self, param):
        assert not AzureCommandSanitizer.is_sensitive_param(param)


class TestSettingsRedaction:
    def test_secret_looking_settings_redacted(self):
        args = ["az", "webapp", "config", "appsettings", "set", "--settings"]
        args += ["MODE=prod", "DB_PASSWORD=hunter2", "API_TOKEN=abc"]

        result = AzureCommandSanitizer.sanitize_args(args)

        assert result[-3:] == ["MODE=prod", f"DB_PASSWORD={REDACTED}", f"API_TOKEN={REDACTED}"]

    def test_settings_end_at_next_option(self):
        args = ["--settings", "A=1", "--name", "web", "--output", "json"]
        assert AzureCommandSanitizer.sanitize_args(args) == args


class TestValuePatterns:
    def test_connection_string_value(self):
        value = (
            "DefaultEndpointsProtocol=https;AccountName=store;"
            "AccountKey=abcDEF123456789+/=;EndpointSuffix=core.windows.net"
        )
        result = sanitize_azure_command(["az", "thing", value])
        assert "abcDEF123456789" not in result

    def test_ansi_escapes_stripped(self):
        assert AzureCommandSanitizer.sanitize_args(["\x1b[31mred\x1b[0m"]) == ["red"]

    def test_plain_command_untouched(self):
        command = "az group show --name contoso-svc --output json"
        assert sanitize_azure_command(command) == command
