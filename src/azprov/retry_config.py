"""Configuration for retry and wait behaviour.

Design Philosophy:
- Ruthless simplicity: Single configuration object
- Sensible defaults: No retries, failures surface immediately
- Environment-aware: Can be overridden via env vars
"""

import os
from dataclasses import dataclass


@dataclass
class RetryConfig:
    """Retry configuration settings.

    Provider failures are fatal by default (one attempt). Raising
    ``azure_cli_max_attempts`` lets transient throttling be retried with
    exponential backoff.
    """

    azure_cli_max_attempts: int = 1
    azure_cli_initial_delay: float = 2.0
    azure_cli_max_delay: float = 30.0

    jitter_enabled: bool = True

    @classmethod
    def from_environment(cls) -> "RetryConfig":
        """Load retry configuration from environment variables.

        Environment variables (all optional):
            AZPROV_RETRY_MAX_ATTEMPTS: Attempts per Azure CLI call (default: 1)
            AZPROV_RETRY_INITIAL_DELAY: Initial delay in seconds (default: 2.0)
            AZPROV_RETRY_MAX_DELAY: Max delay in seconds (default: 30.0)
            AZPROV_RETRY_JITTER_ENABLED: Enable jitter (default: true)

        Returns:
            RetryConfig with values from environment or defaults
        """
        return cls(
            azure_cli_max_attempts=max(1, int(os.getenv("AZPROV_RETRY_MAX_ATTEMPTS", "1"))),
            azure_cli_initial_delay=float(os.getenv("AZPROV_RETRY_INITIAL_DELAY", "2.0")),
            azure_cli_max_delay=float(os.getenv("AZPROV_RETRY_MAX_DELAY", "30.0")),
            jitter_enabled=os.getenv("AZPROV_RETRY_JITTER_ENABLED", "true").lower() == "true",
        )


_config: RetryConfig | None = None


def get_retry_config() -> RetryConfig:
    """Get global retry configuration (loaded from environment on first access)."""
    global _config
    if _config is None:
        _config = RetryConfig.from_environment()
    return _config


def reset_retry_config() -> None:
    """Reset global retry configuration.

    Forces reload from environment on next access.
    """
    global _config
    _config = None


__all__ = ["RetryConfig", "get_retry_config", "reset_retry_config"]
