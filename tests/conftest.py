"""Shared fixtures."""

import pytest

from tests.helpers import FakeTransport


@pytest.fixture
def fake_remote():
    return FakeTransport()
