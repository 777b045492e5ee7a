"""
Pytest configuration for ore-watch tests.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


# =============================================================================
# VALIDATION ON TEST RUN
# =============================================================================

def pytest_configure(config):
    """
    Load the bundled default config before running tests.

    A broken config/orewatch_defaults.yaml surfaces as a collection failure
    instead of as dozens of confusing test failures.
    """
    from world.orewatch.config import load_config_from_yaml

    try:
        load_config_from_yaml(project_root / "config" / "orewatch_defaults.yaml")
    except (FileNotFoundError, ValueError) as e:
        pytest.fail(f"Default config failed to load:\n{e}", pytrace=False)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def store():
    """Empty in-memory action log."""
    from world.orewatch.persistence import InMemoryActionLog
    return InMemoryActionLog()


@pytest.fixture
def config():
    """Default config with the total-actions gate lowered for small logs."""
    from tests.helpers import make_config
    return make_config()
