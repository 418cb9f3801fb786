"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncIterator, Awaitable, Callable

import pytest_asyncio

from tests.fixtures.upstream_stub import UpstreamStub
from ws_relay.config import RelayConfig
from ws_relay.relay import Relay

RelayFactory = Callable[..., Awaitable[Relay]]


@pytest_asyncio.fixture
async def upstream() -> AsyncIterator[UpstreamStub]:
    """Running echo upstream on a free localhost port."""
    stub = UpstreamStub()
    await stub.start()
    yield stub
    await stub.stop()


@pytest_asyncio.fixture
async def relay_factory() -> AsyncIterator[RelayFactory]:
    """Start relays on free localhost ports; all are stopped after the test."""
    relays: list[Relay] = []

    async def factory(upstream_url: str, **overrides) -> Relay:
        config = RelayConfig(upstream_url=upstream_url, host="127.0.0.1", port=0, **overrides)
        relay = Relay(config)
        await relay.start()
        relays.append(relay)
        return relay

    yield factory

    for relay in relays:
        await relay.stop()


@pytest_asyncio.fixture
async def relay(relay_factory: RelayFactory, upstream: UpstreamStub) -> Relay:
    """Relay pointed at the echo upstream."""
    return await relay_factory(upstream.url)
