"""Pytest configuration and fixtures for azprov tests.

CRITICAL: Protects production configuration from test modifications.
"""

import os
import shutil
from pathlib import Path

import pytest


@pytest.fixture(scope="session", autouse=True)
def protect_production_config():
    """Protect ~/.azprov/config.toml from being modified by tests.

    This fixture:
    1. Backs up the real config.toml before any tests run
    2. Restores it after all tests complete
    """
    config_path = Path.home() / ".azprov" / "config.toml"
    backup_path = Path.home() / ".azprov" / ".config.toml.pytest-backup"

    config_existed = config_path.exists()
    if config_existed:
        shutil.copy2(config_path, backup_path)
        print(f"\n[PYTEST] Protected config.toml - backup at {backup_path}")

    yield

    if config_existed and backup_path.exists():
        shutil.copy2(backup_path, config_path)
        backup_path.unlink()
        print("\n[PYTEST] Restored config.toml from backup")
    elif backup_path.exists():
        backup_path.unlink()


@pytest.fixture(scope="session", autouse=True)
def prevent_real_azure_operations():
    """Mark test mode so nothing reaches real Azure resources by accident."""
    os.environ["AZPROV_TEST_MODE"] = "true"

    yield

    if "AZPROV_TEST_MODE" in os.environ:
        del os.environ["AZPROV_TEST_MODE"]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Clear AZPROV_* settings from the developer's shell for every test."""
    for name in list(os.environ):
        if name.startswith("AZPROV_") and name != "AZPROV_TEST_MODE":
            monkeypatch.delenv(name)

