"""Test configuration and fixtures."""

import pytest

from tests.helpers import WHITEOUT, make_tree


@pytest.fixture
def scenario_layers():
    """Three layers: add /a and /b, modify /a and add /c, delete /b."""
    return [
        make_tree({"/a": 100, "/b": 50}),
        make_tree({"/a": 200, "/c": 10}),
        make_tree({"/b": WHITEOUT}),
    ]


@pytest.fixture
def nested_layers():
    """Layers touching files inside shared directories."""
    return [
        make_tree({"/etc/passwd": 20, "/etc/hosts": 5, "/usr/bin/sh": 300}),
        make_tree({"/etc/hosts": 8, "/var/log/app.log": 40}),
        make_tree({"/usr/bin": WHITEOUT, "/etc/hosts": 8}),
    ]


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")
    config.addinivalue_line(
        "markers", "concurrency: mark test as exercising concurrent access"
    )
