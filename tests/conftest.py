"""
Shared pytest setup for the vault distributor tests.

Puts the repository root and tests/ on sys.path so that test modules can
import the packages and the `fixtures` helpers directly, and provides the
fixtures most test modules use.
"""

import sys
from pathlib import Path

import pytest

# =============================================================================
# Import paths (before any project import)
# =============================================================================

_TESTS_ROOT = Path(__file__).resolve().parent
_PROJECT_ROOT = _TESTS_ROOT.parent

for _path in (str(_PROJECT_ROOT), str(_TESTS_ROOT)):
    if _path not in sys.path:
        sys.path.insert(0, _path)

from fixtures import make_allocations, make_harness  # noqa: E402


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep VAULT_* variables from the developer's shell out of tests."""
    for name in (
        "VAULT_PROGRAM_ID",
        "VAULT_REDEEM_INDEX_SCOPE",
        "VAULT_LOG_LEVEL",
        "VAULT_LOG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def allocations():
    """Five current-encoding allocations (indices 0..4)."""
    return make_allocations(5)


@pytest.fixture
def harness():
    """A program with one funded vault (per-index marker scope)."""
    return make_harness()


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow: thread-heavy tests (skip with -m \"not slow\")"
    )
