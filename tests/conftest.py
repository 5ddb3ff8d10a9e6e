"""
Pytest configuration for the test suite.

This file is automatically loaded by pytest and applies configuration
to all tests in the tests/ directory.
"""

import sys
import os

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def config():
    """Seeded default configuration."""
    return Config(SEED=42)


@pytest.fixture
def gameplay_state():
    """Factory for perception records in active gameplay."""
    def _make_state(position='center', score=1000, coins=10, powerups=None, lanes=None):
        return {
            'screenType': 'gameplay',
            'playerPosition': position,
            'lanes': lanes or {
                'left': {'obstacles': False, 'coins': False},
                'center': {'obstacles': True, 'coins': False},
                'right': {'obstacles': False, 'coins': True},
            },
            'powerups': list(powerups or []),
            'score': score,
            'coins': coins,
        }
    return _make_state
