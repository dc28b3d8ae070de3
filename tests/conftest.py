"""
Global pytest configuration and fixtures for the recommendation engine test suite.
"""

import os
import sys
from pathlib import Path

import pytest

# Test environment setup
os.environ["TESTING"] = "1"

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rental_recs.domain.services.recommendation_config import RecommendationConfig
from tests.utils.data_factories import BehaviorFactory, PropertyFactory
from tests.utils.fakes import FakeStores, MarketplaceData


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers automatically."""
    for item in items:
        # Add markers based on test file location
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "repository" in str(item.fspath):
            item.add_marker(pytest.mark.db)


@pytest.fixture
def property_factory():
    return PropertyFactory(start_id=100)


@pytest.fixture
def behavior_factory():
    return BehaviorFactory()


@pytest.fixture
def marketplace():
    return MarketplaceData()


@pytest.fixture
def stores(marketplace):
    return FakeStores(marketplace)


@pytest.fixture
def fast_config():
    """Short timeouts so waiting paths finish quickly"""
    return RecommendationConfig(
        inflight_wait_timeout_seconds=0.2,
        lock_poll_interval_seconds=0.01,
        scorer_timeout_seconds=1.0
    )
