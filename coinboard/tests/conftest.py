from __future__ import annotations

import pytest

from coinboard.services.gateway import MarketDataGateway
from coinboard.services.providers.base import Capability
from coinboard.tests.fakes import FakeClock, FakeProvider, SleepRecorder
from coinboard.utils.cache import ResponseCache


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def primary() -> FakeProvider:
    return FakeProvider("primary")


@pytest.fixture()
def secondary() -> FakeProvider:
    return FakeProvider("secondary", {Capability.LISTING, Capability.SINGLE_LOOKUP})


@pytest.fixture()
def gateway(primary, secondary, clock, sleeper) -> MarketDataGateway:
    return MarketDataGateway(
        ResponseCache(max_entries=100, clock=clock),
        primary,
        secondary,
        rate_limit_delay_ms=1000,
        primary_ttl_ms=300_000,
        fallback_ttl_ms=60_000,
        sleep=sleeper,
    )
