"""
Global pytest configuration for the costume switch test suite.

Registers the suite's markers and tags tests by their location.
"""

import pytest


def pytest_configure(config):
    """Configure pytest settings and markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests for individual components"
    )
    config.addinivalue_line(
        "markers", "streaming: Tests that drive the engine token by token"
    )
    config.addinivalue_line(
        "markers", "scenario: End-to-end attribution scenarios"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location."""
    for item in items:
        test_file = str(item.fspath)

        if "/unit/" in test_file:
            item.add_marker(pytest.mark.unit)

        if "stream_engine" in test_file or "tester" in test_file:
            item.add_marker(pytest.mark.streaming)
