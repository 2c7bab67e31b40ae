"""Azure CLI command sanitization for secure display.

Provisioning commands carry the VM admin password (``az vm create``) and the
run-as password for guest commands (``az vm run-command create``). Every
command is passed through this module before it is printed or logged.

Usage:
    >>> from azprov.security import AzureCommandSanitizer
    >>> AzureCommandSanitizer.sanitize("az vm create --admin-password Secret123")
    'az vm create --admin-password [REDACTED]'
"""

import re
from re import Pattern
from typing import ClassVar


class AzureCommandSanitizer:
    """Sanitize Azure CLI commands for safe display and logging.

    Two layers are applied: parameter-based redaction for known sensitive
    options, then value-based pattern matching for secrets that appear under
    parameter names we do not know about.
    """

    REDACTED = "[REDACTED]"

    # Matched case-insensitively (lowercase only in set)
    SENSITIVE_PARAMS: ClassVar[set[str]] = {
        "--password",
        "--admin-password",
        "--run-as-password",
        "--client-secret",
        "--account-key",
        "--connection-string",
        "--sas-token",
        "--secret",
        "--secrets",
        "--token",
        "--access-token",
        "--certificate-password",
        "--custom-data",
        "--user-data",
    }

    # Options whose values are app settings: KEY=VALUE pairs may hold secrets
    SETTINGS_PARAMS: ClassVar[set[str]] = {"--settings", "--slot-settings"}

    SENSITIVE_KEYWORDS: ClassVar[tuple[str, ...]] = (
        "password",
        "secret",
        "token",
        "credential",
        "connection",
        "apikey",
        "api-key",
        "api_key",
    )

    SECRET_VALUE_PATTERNS: ClassVar[dict[str, Pattern]] = {
        "azure_connection_string": re.compile(
            r"DefaultEndpointsProtocol=https[^;\s]*;AccountName=[^;]+;AccountKey=([A-Za-z0-9+/=]+)",
            re.IGNORECASE,
        ),
        "sas_token": re.compile(r"(\?sv=\d{4}-\d{2}-\d{2}[^\s\"']+)", re.IGNORECASE),
        "jwt": re.compile(r"(eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+)"),
    }

    ANSI_ESCAPE: ClassVar[Pattern] = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")

    @classmethod
    def sanitize(cls, command: str) -> str:
        """Sanitize a command string.

        Args:
            command: Azure CLI command string

        Returns:
            Command with secrets replaced by [REDACTED]
        """
        if not isinstance(command, str):
            command = str(command)
        return " ".join(cls.sanitize_args(command.split(" ")))

    @classmethod
    def sanitize_args(cls, args: list[str]) -> list[str]:
        """Sanitize a command given as an argument list.

        Values following a sensitive option are replaced. ``--param=value``
        forms are handled too. App settings keep their keys but lose the
        values of keys that look secret.

        Args:
            args: Command arguments (e.g. ``["az", "vm", "create", ...]``)

        Returns:
            New list with sensitive values redacted
        """
        result: list[str] = []
        redact_next = False
        in_settings = False

        for raw in args:
            arg = cls._strip_escapes(str(raw))

            if redact_next:
                result.append(cls.REDACTED)
                redact_next = False
                continue

            if arg.startswith("--"):
                in_settings = False
                param, sep, value = arg.partition("=")
                if cls.is_sensitive_param(param):
                    result.append(f"{param}={cls.REDACTED}" if sep else param)
                    redact_next = not sep
                    continue
                if param.lower() in cls.SETTINGS_PARAMS:
                    in_settings = True
                result.append(arg)
                continue

            if in_settings:
                result.append(cls._sanitize_setting(arg))
                continue

            result.append(cls._sanitize_value(arg))

        return result

    @classmethod
    def is_sensitive_param(cls, param: str) -> bool:
        """Check whether an option name carries a secret value."""
        param_lower = param.lower()
        if param_lower in cls.SENSITIVE_PARAMS:
            return True
        return any(keyword in param_lower for keyword in cls.SENSITIVE_KEYWORDS)

    @classmethod
    def _sanitize_setting(cls, arg: str) -> str:
        key, sep, _value = arg.partition("=")
        if sep and any(keyword in key.lower() for keyword in cls.SENSITIVE_KEYWORDS):
            return f"{key}={cls.REDACTED}"
        return cls._sanitize_value(arg)

    @classmethod
    def _sanitize_value(cls, value: str) -> str:
        for pattern in cls.SECRET_VALUE_PATTERNS.values():
            value = pattern.sub(cls.REDACTED, value)
        return value

    @classmethod
    def _strip_escapes(cls, text: str) -> str:
        text = cls.ANSI_ESCAPE.sub("", text)
        return "".join(char for char in text if char in "\n\t" or ord(char) >= 32)


def sanitize_azure_command(command: list[str] | str) -> str:
    """Convenience function returning a display-safe command string.

    Args:
        command: Command as argument list or string

    Returns:
        Sanitized command string
    """
    if isinstance(command, list):
        return " ".join(AzureCommandSanitizer.sanitize_args(command))
    return AzureCommandSanitizer.sanitize(command)
