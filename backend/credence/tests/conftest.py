"""
Pytest configuration for credence tests.
"""

import pytest

from credence import EngineParameters, InvestmentService

from .fakes import (
    FakeClock,
    FakeContentRepository,
    FakeInvestmentRepository,
    FakeUserRepository,
    InMemoryStore,
)

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


def pytest_configure(config):
    """Configure pytest with asyncio marker."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test."
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def params():
    return EngineParameters()


@pytest.fixture
def store(clock):
    return InMemoryStore(clock)


@pytest.fixture
def users(store):
    return FakeUserRepository(store)


@pytest.fixture
def contents(store):
    return FakeContentRepository(store)


@pytest.fixture
def investments(store):
    return FakeInvestmentRepository(store)


@pytest.fixture
def service(users, contents, investments, params, clock):
    return InvestmentService(users, contents, investments, params=params, clock=clock)


@pytest.fixture
def alice_bob(store):
    """Two funded investors and one content authored by a third user."""
    store.add_user("alice")
    store.add_user("bob")
    store.add_user("carol")
    return store.add_content("carol", "Rust ownership explained")
