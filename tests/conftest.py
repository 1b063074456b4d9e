"""
Pytest configuration and shared fixtures for claimforge tests.

This conftest.py:
1. Adds project root to sys.path for imports
2. Provides commonly-used fixtures via pytest's autodiscovery
3. Configures pytest markers and settings
"""

import sys
from pathlib import Path

import pytest

# =============================================================================
# Path Setup - Must happen before any local imports
# =============================================================================

# Get the project root (parent of tests/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_TESTS_ROOT = Path(__file__).resolve().parent

# Add both project root and tests root to sys.path
for _path in [str(_PROJECT_ROOT), str(_TESTS_ROOT)]:
    if _path not in sys.path:
        sys.path.insert(0, _path)

# =============================================================================
# Import fixtures using importlib (more robust for pytest loading)
# =============================================================================

import importlib

_common = importlib.import_module("fixtures.common")
_fakes = importlib.import_module("fixtures.fake_ledger")

make_inputs = _common.make_inputs
make_params = _common.make_params
make_compiled_campaign = _common.make_compiled_campaign

FakeLedger = _fakes.FakeLedger
FakeSigner = _fakes.FakeSigner
FakeClock = _fakes.FakeClock


# =============================================================================
# Pytest Fixtures (autodiscovered by pytest)
# =============================================================================

@pytest.fixture
def store():
    """Provide an in-memory CampaignStore, closed after the test."""
    from core.store.database import CampaignStore

    s = CampaignStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def campaign_inputs():
    """Provide default two-cohort CampaignInputs."""
    return make_inputs()


@pytest.fixture
def campaign_params():
    """Provide default CampaignParameters (decimals 0, large budget)."""
    return make_params()


@pytest.fixture
def persisted_campaign(store):
    """Provide a compiled campaign already saved in `store`."""
    return make_compiled_campaign(store)


@pytest.fixture
def fake_ledger():
    """Provide an empty in-memory ledger."""
    return FakeLedger()


@pytest.fixture
def fake_signer():
    """Provide a deterministic signer."""
    return FakeSigner()


@pytest.fixture
def fake_clock():
    """Provide a clock that advances only on sleep."""
    return FakeClock()


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
