"""
Pytest configuration for collab_story tests.

Test Tier System:
- fast (default): Pure unit tests, storage in memory or mocked
- medium: API TestClient and multi-threaded tests
- slow: Tests that need a live PostgreSQL (none run by default)

Run tiers:
- pytest                          # Fast + medium (default addopts skip slow)
- pytest -m fast                  # Fast only
- pytest --override-ini="addopts=" -v   # Full suite (all tiers)

Note: Unmarked tests are auto-assigned to 'fast' tier.
- No marker needed for fast (unit) tests
- Add @pytest.mark.medium for API TestClient / threaded tests
- Tests marked @pytest.mark.integration (without tier) default to 'medium'
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Never touch a real database or the shared log file from tests
os.environ["STORE_BACKEND"] = "memory"
os.environ["LOG_FILE"] = ""


# =============================================================================
# Tier Auto-Assignment
# =============================================================================

def pytest_collection_modifyitems(config, items):
    """
    Automatically assign tier markers to unmarked tests.

    Tests are fast by default unless explicitly marked as medium or slow.
    Tests marked @pytest.mark.integration (but no tier) become medium.
    """
    for item in items:
        has_tier = (
            list(item.iter_markers(name='fast')) or
            list(item.iter_markers(name='medium')) or
            list(item.iter_markers(name='slow'))
        )
        if has_tier:
            continue

        if list(item.iter_markers(name='skip')):
            continue

        if list(item.iter_markers(name='integration')):
            item.add_marker(pytest.mark.medium)
            continue

        item.add_marker(pytest.mark.fast)


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def memory_store():
    """Fresh in-memory store with the default capacity policy, recording calls."""
    from collab_story.db.memory_store import InMemoryStore

    return InMemoryStore(record_calls=True)


@pytest.fixture
def engine(memory_store):
    """AppendEngine over the in-memory store."""
    from collab_story.weaving.services import AppendEngine

    return AppendEngine(memory_store)

