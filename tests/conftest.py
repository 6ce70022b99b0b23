"""Pytest configuration for tests."""

# Register fixture modules as pytest plugins
pytest_plugins = [
    "tests.fixtures.media",
    "tests.fixtures.storage",
    "tests.fixtures.controllers",
]
