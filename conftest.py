"""Shared fixtures for the request governor tests."""

import pytest

API_KEY = "3fa85f64-5717-4562-b3fc-2c963f66afa6"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def api_key():
    return API_KEY
