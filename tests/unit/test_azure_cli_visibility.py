"""Tests for azure_cli_visibility module.

subprocess.run is patched; no Azure CLI is required.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest
from rich.text import Text

from azprov.azure_cli_visibility import AzureCLIExecutor, CommandDisplayFormatter, TTYDetector


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(
        args=["az"], returncode=returncode, stdout=stdout, stderr=stderr
    )


class TestTTYDetector:
    def test_ci_is_not_tty(self, monkeypatch):
        monkeypatch.setenv("CI", "true")
        assert TTYDetector.is_tty() is False

    def test_no_color(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert TTYDetector.supports_color() is False

    def test_dumb_terminal(self, monkeypatch):
        monkeypatch.setenv("TERM", "dumb")
        assert TTYDetector.supports_interactive_features() is False


class TestCommandDisplayFormatter:
    def test_plain(self):
        formatter = CommandDisplayFormatter(use_color=False)
        assert formatter.format(["az", "vm", "list"]) == "Executing: az vm list"

    def test_color(self):
        formatted = CommandDisplayFormatter(use_color=True).format(["az", "vm", "list"])
        assert isinstance(formatted, Text)
        assert formatted.plain == "Executing: az vm list"


class TestAzureCLIExecutor:
    """Test AzureCLIExecutor.execute."""

    @patch("azprov.azure_cli_visibility.subprocess.run")
    def test_success(self, mock_run: MagicMock) -> None:
        mock_run.return_value = completed(stdout='{"name": "rg"}')
        executor = AzureCLIExecutor(show_progress=False, show_command=False, timeout=30)

        result = executor.execute(["az", "group", "show", "--name", "rg"])

        assert result["success"] is True
        assert result["stdout"] == '{"name": "rg"}'
        assert result["error"] is None
        _, kwargs = mock_run.call_args
        assert kwargs["capture_output"] is True
        assert kwargs["text"] is True
        assert kwargs["check"] is False
        assert kwargs["timeout"] == 30

    @patch("azprov.azure_cli_visibility.subprocess.run")
    def test_failure_returns_result(self, mock_run: MagicMock) -> None:
        mock_run.return_value = completed(returncode=1, stderr="ERROR: AuthorizationFailed")

        result = AzureCLIExecutor(show_progress=False, show_command=False).execute(["az", "vm"])

        assert result["success"] is False
        assert result["returncode"] == 1
        assert result["error"] == "ERROR: AuthorizationFailed"

    @patch("azprov.azure_cli_visibility.subprocess.run")
    def test_timeout(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="az", timeout=5)

        result = AzureCLIExecutor(show_progress=False, show_command=False, timeout=5).execute(
            ["az", "vm", "create"]
        )

        assert result["returncode"] == -1
        assert "timeout after 5 seconds" in result["stderr"]

    @patch("azprov.azure_cli_visibility.subprocess.run")
    def test_az_not_installed(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = FileNotFoundError("az")

        result = AzureCLIExecutor(show_progress=False, show_command=False).execute(["az"])

        assert result["success"] is False
        assert "Command not found" in result["error"]

    @patch("azprov.azure_cli_visibility.subprocess.run")
    def test_command_display_is_sanitized(self, mock_run: MagicMock, capsys) -> None:
        mock_run.return_value = completed()
        executor = AzureCLIExecutor(show_progress=False, show_command=True)
        executor.formatter = CommandDisplayFormatter(use_color=False)

        result = executor.execute(["az", "vm", "create", "--admin-password", "Hunter2!"])

        out = capsys.readouterr().out
        assert "Hunter2!" not in out
        assert "--admin-password [REDACTED]" in out
        assert "Hunter2!" not in result["command"]
        # The real command still carries the password
        assert mock_run.call_args.args[0][-1] == "Hunter2!"

    def test_empty_command(self):
        with pytest.raises(TypeError):
            AzureCLIExecutor(show_progress=False).execute([])

    def test_negative_timeout(self):
        with pytest.raises(ValueError):
            AzureCLIExecutor(timeout=-1)
