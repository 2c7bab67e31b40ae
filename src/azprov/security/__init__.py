"""Security module for azprov.

- AzureCommandSanitizer: Sanitize Azure CLI commands before display/logging

Example:
    >>> from azprov.security import AzureCommandSanitizer
    >>> AzureCommandSanitizer.sanitize("az vm create --admin-password Secret")
    'az vm create --admin-password [REDACTED]'
"""

from azprov.security.azure_command_sanitizer import (
    AzureCommandSanitizer,
    sanitize_azure_command,
)

__all__ = [
    "AzureCommandSanitizer",
    "sanitize_azure_command",
]
