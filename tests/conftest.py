import pytest

from depflow import scheduler, tick
from depflow.config import reset_config


@pytest.fixture(autouse=True)
def _fresh_runtime():
    """Each test starts with default config and empty queues."""
    reset_config({})
    scheduler.reset()
    tick.reset()
    yield
    scheduler.reset()
    tick.reset()
    reset_config({})


@pytest.fixture
def sync_flush():
    """Flush queued subscribers synchronously, inside the mutating call."""
    from depflow import config

    config.async_flush = False
    yield config
