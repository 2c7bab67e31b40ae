"""Azure CLI command visibility and progress indicators.

Every management call azprov makes goes through AzureCLIExecutor:
- Display the exact command before execution (sanitized)
- Spinner while the command runs (interactive terminals only)
- TTY vs non-TTY environment detection
- Uniform result dictionary, never raises for a failing ``az`` process

Usage:
    >>> executor = AzureCLIExecutor(show_progress=True)
    >>> result = executor.execute(["az", "group", "show", "--name", "rg"])
    Executing: az group show --name rg
"""

import logging
import os
import subprocess
import sys
import time
from typing import Any

from rich.console import Console
from rich.text import Text

from azprov.security import AzureCommandSanitizer

logger = logging.getLogger(__name__)


class TTYDetector:
    """Detect TTY vs non-TTY environments.

    Decides whether colors and spinners are used or plain lines are printed
    (redirected output, CI systems, scheduled runs).
    """

    CI_ENV_VARS = ("CI", "GITHUB_ACTIONS", "TRAVIS", "CIRCLECI", "GITLAB_CI", "TF_BUILD")

    @staticmethod
    def is_tty() -> bool:
        """Check if stdout is an interactive terminal."""
        if any(os.getenv(var) for var in TTYDetector.CI_ENV_VARS):
            return False
        try:
            return sys.stdout.isatty()
        except AttributeError:
            return False

    @staticmethod
    def supports_color() -> bool:
        """Check if color output should be used (honours NO_COLOR)."""
        if os.getenv("NO_COLOR"):
            return False
        return TTYDetector.is_tty()

    @staticmethod
    def supports_interactive_features() -> bool:
        """Check if spinners and live updates are supported."""
        if os.getenv("TERM") == "dumb":
            return False
        return TTYDetector.is_tty()


class CommandDisplayFormatter:
    """Format commands for display in the terminal."""

    def __init__(self, use_color: bool | None = None):
        """Initialize formatter.

        Args:
            use_color: Whether to use color. If None, auto-detect.
        """
        self.use_color = use_color if use_color is not None else TTYDetector.supports_color()

    def format(self, command: list[str]) -> Text | str:
        """Format an already sanitized command.

        Examples:
            >>> CommandDisplayFormatter(use_color=False).format(["az", "vm", "list"])
            'Executing: az vm list'
        """
        cmd_str = " ".join(command)
        if self.use_color:
            text = Text("Executing: ", style="bold blue")
            text.append(cmd_str, style="cyan")
            return text
        return f"Executing: {cmd_str}"


class AzureCLIExecutor:
    """Execute Azure CLI commands with visibility.

    Examples:
        >>> executor = AzureCLIExecutor(show_progress=False, timeout=30)
        >>> result = executor.execute(["az", "vm", "list"])
        >>> result["success"]
        True
    """

    def __init__(
        self,
        show_progress: bool = True,
        timeout: int | None = None,
        show_command: bool = True,
        console: Console | None = None,
    ):
        """Initialize Azure CLI executor.

        Args:
            show_progress: Whether to show a spinner while the command runs
            timeout: Command timeout in seconds (None = no timeout)
            show_command: Whether to print the sanitized command first
            console: Rich console to print to (default: stdout console)

        Raises:
            ValueError: If timeout is negative
        """
        if timeout is not None and timeout < 0:
            raise ValueError("Timeout must be non-negative")

        self.show_progress = show_progress
        self.timeout = timeout
        self.show_command = show_command
        self.console = console or Console()
        self.formatter = CommandDisplayFormatter()

    def execute(self, command: list[str]) -> dict[str, Any]:
        """Execute an Azure CLI command.

        Args:
            command: Command as argument list (e.g. ``["az", "vm", "list"]``)

        Returns:
            Dictionary with execution results:
                - returncode: Exit code (0 = success, -1 = launch failure/timeout)
                - stdout: Standard output
                - stderr: Standard error
                - success: Boolean success flag
                - command: Sanitized command string
                - error: Error message (if failed)
                - elapsed: Wall-clock seconds

        Raises:
            TypeError: If command is empty
            KeyboardInterrupt: If the user cancels with Ctrl+C
        """
        if not command:
            raise TypeError("Command cannot be None or empty")

        display_args = AzureCommandSanitizer.sanitize_args(command)
        display_command = " ".join(display_args)
        logger.debug(f"Running: {display_command}")

        if self.show_command:
            formatted = self.formatter.format(display_args)
            if isinstance(formatted, Text):
                self.console.print(formatted)
            else:
                print(formatted, flush=True)

        start = time.monotonic()
        try:
            if self.show_progress and TTYDetector.supports_interactive_features():
                with self.console.status("Waiting for Azure...", spinner="dots"):
                    completed = self._run(command)
            else:
                completed = self._run(command)
        except subprocess.TimeoutExpired:
            return self._failure(
                display_command, f"Command timeout after {self.timeout} seconds", start
            )
        except FileNotFoundError as e:
            return self._failure(display_command, f"Command not found: {e}", start)
        except PermissionError as e:
            return self._failure(display_command, f"Permission denied: {e}", start)

        elapsed = time.monotonic() - start
        logger.debug(f"Command finished in {elapsed:.1f}s (exit code: {completed.returncode})")
        return {
            "returncode": completed.returncode,
            "stdout": completed.stdout,
            "stderr": completed.stderr,
            "success": completed.returncode == 0,
            "command": display_command,
            "error": completed.stderr if completed.returncode != 0 else None,
            "elapsed": elapsed,
        }

    def _run(self, command: list[str]) -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=self.timeout,
            check=False,
        )

    @staticmethod
    def _failure(display_command: str, message: str, start: float) -> dict[str, Any]:
        return {
            "returncode": -1,
            "stdout": "",
            "stderr": message,
            "success": False,
            "command": display_command,
            "error": message,
            "elapsed": time.monotonic() - start,
        }


__all__ = [
    "AzureCLIExecutor",
    "CommandDisplayFormatter",
    "TTYDetector",
]
