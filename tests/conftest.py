# tests/conftest.py

"""Shared pytest fixtures for all tracker tests."""

from collections.abc import Generator
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def fresh_renderer() -> Generator[None, None, None]:
    """Give every test its own process-wide renderer, never a live session."""
    with patch("src.services.renderer._renderer", None):
        yield


@pytest.fixture(autouse=True)
def no_env_config_override(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[None, None, None]:
    """Keep a developer's APP_CONFIG_JSON out of config tests."""
    monkeypatch.delenv("APP_CONFIG_JSON", raising=False)
    yield
