import pytest

from helpers import FakeCache


@pytest.fixture
def fake_cache():
    return FakeCache()
