from typing import AsyncGenerator

import pytest
import pytest_asyncio
from arm_poller.config import Settings
from arm_poller.models import PollingConfig
from arm_poller.transport import ResourceManagerClient
from management_server import ManagementServer

API_VERSION = "2023-06-01"


@pytest_asyncio.fixture
async def server() -> AsyncGenerator[ManagementServer, None]:
    """Start and yield a fake management server on a free port."""
    server_instance = ManagementServer()
    await server_instance.start()
    try:
        yield server_instance
    finally:
        await server_instance.stop()


@pytest.fixture
def settings(server) -> Settings:
    """Settings pointing at the fake server with short waits."""
    return Settings(
        base_url=server.base_url,
        api_version=API_VERSION,
        request_timeout=5.0,
        min_poll_interval=0.01,
        peering_min_timeout=0.01,
    )


@pytest.fixture
def config() -> PollingConfig:
    """Fast polling policy without jitter."""
    return PollingConfig(
        min_interval=0.01,
        initial_delay=0.01,
        max_delay=0.05,
        backoff_factor=2.0,
        jitter=False,
    )


@pytest_asyncio.fixture
async def client(settings) -> AsyncGenerator[ResourceManagerClient, None]:
    async with ResourceManagerClient(settings=settings) as rm_client:
        yield rm_client
