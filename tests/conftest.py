"""Shared fixtures: mocked store sessions and a deterministic status resolver."""

from unittest.mock import AsyncMock

import pytest

from tests.factories import FakeStatusResolver, make_session


@pytest.fixture
def statuses() -> FakeStatusResolver:
    return FakeStatusResolver()


@pytest.fixture
def mock_db() -> AsyncMock:
    return make_session()


@pytest.fixture
def mock_docs() -> AsyncMock:
    return make_session()


@pytest.fixture
def mock_messages() -> AsyncMock:
    return make_session()
