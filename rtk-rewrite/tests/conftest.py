"""Pytest configuration and fixtures for the rtk-rewrite hooks."""

import sys
from pathlib import Path

import pytest

# Hook scripts are standalone modules; make them importable
hooks_dir = Path(__file__).parent.parent / "hooks"
sys.path.insert(0, str(hooks_dir))

_RTK_ENV_VARS = ("RTK_REWRITE_ENABLED", "RTK_REWRITE_VERBOSE", "RTK_REWRITE_EXTRA_RULES")


@pytest.fixture(autouse=True)
def clean_rtk_env(monkeypatch):
    """Run every test with the RTK_REWRITE_* toggles at their defaults."""
    for var in _RTK_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
