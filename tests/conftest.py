import pytest

from movement_analytics.logging_setup import reset_logging


@pytest.fixture(autouse=True)
def unconfigured_package_logging():
    """CLI tests configure package logging; undo it after every test."""
    yield
    reset_logging()
