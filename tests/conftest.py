from unittest import mock

import pytest

from conduit.common import AbstractClient
from conduit.settings import Settings


@pytest.fixture(autouse=True)
def reset_settings():
    yield
    Settings().reset()


@pytest.fixture
def raw():
    return mock.MagicMock()


@pytest.fixture
def client(raw):
    return AbstractClient(raw, name="test")
