"""Module to setup fixtures and other required artifacts for tests

    isort:skip_file
"""

import pytest

from postledger import AccountStore, Identity
from postledger.adapters import MemoryStorage


def pytest_addoption(parser):
    """Additional options for running tests with pytest"""
    parser.addoption(
        "--slow", action="store_true", default=False, help="Run slow tests"
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: marks tests as slow")


def pytest_collection_modifyitems(config, items):
    """Configure special markers on tests, so as to control execution"""
    if config.getoption("--slow"):
        # --slow given in cli: do not skip slow tests
        return

    skip_slow = pytest.mark.skip(reason="need --slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


class FakeClock:
    """Clock that only moves when told to"""

    def __init__(self, now=1_700_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds=1):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage():
    storage = MemoryStorage()
    yield storage
    storage._data_reset()


@pytest.fixture
def store(storage, clock):
    return AccountStore(storage=storage, clock=clock)


@pytest.fixture
def author():
    return Identity.generate()


@pytest.fixture
def other_user():
    return Identity.generate()


@pytest.fixture
def post_address(store, author):
    return store.create_post(
        author, "My First Post", "This is the content of my first post.", 1
    )
