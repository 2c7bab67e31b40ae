"""Exception hierarchy for azprov.

Every failure raised by the provisioning flow derives from ProvisionError so
callers (the CLI, or a script embedding azprov) can catch one type and decide
whether to halt.
"""


class ProvisionError(Exception):
    """Base class for all azprov failures."""

    pass


class ValidationError(ProvisionError, ValueError):
    """Raised when caller input is invalid (names, sizes, counts)."""

    pass


class MissingLocationError(ProvisionError):
    """Raised when a resource group must be created but no location was given."""

    pass


class ProviderError(ProvisionError):
    """Raised when an Azure management call fails.

    Attributes:
        command: Sanitized command that failed
        stderr: Error output returned by the Azure CLI
        returncode: Process exit code (-1 for timeouts and launch failures)
    """

    def __init__(
        self,
        message: str,
        command: str | None = None,
        stderr: str | None = None,
        returncode: int | None = None,
    ):
        super().__init__(message)
        self.command = command
        self.stderr = stderr
        self.returncode = returncode


class RemoteExecutionError(ProvisionError):
    """Raised when a command executed inside the guest OS fails.

    Attributes:
        exit_code: Exit code reported by the guest (None if unknown)
        output: Captured standard output
        error: Captured standard error
    """

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        output: str = "",
        error: str = "",
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output
        self.error = error


class CertificateError(ProvisionError):
    """Raised when the management certificate cannot be fetched, parsed or stored."""

    pass


class ConfigError(ProvisionError):
    """Raised when configuration operations fail."""

    pass


class ScheduleError(ProvisionError):
    """Raised when start schedule operations fail."""

    pass


__all__ = [
    "CertificateError",
    "ConfigError",
    "MissingLocationError",
    "ProviderError",
    "ProvisionError",
    "RemoteExecutionError",
    "ScheduleError",
    "ValidationError",
]
