"""
Pytest configuration and shared fixtures for the weblimo test suite.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from weblimo.config import Settings  # noqa: E402


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ``WEBLIMO_*`` variables of the host out of the tests."""
    import os

    for key in list(os.environ):
        if key.startswith("WEBLIMO_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings() -> Settings:
    """Provide default settings for application instances."""
    return Settings(environment="test")
