#!/usr/bin/env python

"""Configures execution of pytest."""

import pytest
import pytest_asyncio

from aiohttp.test_utils import TestClient as AioHttpTestClient
from aiohttp.test_utils import TestServer as AioHttpTestServer

from docker_registry_always import create_app, UpstreamClient

from .testutils import FakeRegistry, make_index, make_manifest


def pytest_addoption(parser):
    """pytest add option."""
    parser.addoption(
        "--allow-online",
        action="store_true",
        default=False,
        help="Allow execution of online tests.",
    )


def pytest_collection_modifyitems(config, items):
    """pytest collection modifier."""

    skip_online = pytest.mark.skip(
        reason="Execution of online tests requires --allow-online option."
    )
    for item in items:
        if "online" in item.keywords and not config.getoption("--allow-online"):
            item.add_marker(skip_online)


def pytest_configure(config):
    """pytest configuration hook."""
    config.addinivalue_line("markers", "online: allow execution of online tests.")


@pytest.fixture
def no_proxy_environment(monkeypatch):
    """Removes proxy configuration from the environment."""
    for variable in [
        "HTTP_PROXY",
        "http_proxy",
        "HTTPS_PROXY",
        "https_proxy",
        "NO_PROXY",
        "no_proxy",
    ]:
        monkeypatch.delenv(variable, raising=False)


@pytest_asyncio.fixture
async def fake_registry() -> FakeRegistry:
    """Provides a running FakeRegistry hosting base/image:v2 as a two platform image index."""
    registry = FakeRegistry()
    children = [
        registry.add_manifest(make_manifest("amd64")),
        registry.add_manifest(make_manifest("arm64")),
    ]
    registry.add_manifest(make_index(children), tag="v2")
    await registry.start()
    yield registry
    await registry.close()


@pytest_asyncio.fixture
async def upstream_client(no_proxy_environment, tmp_path) -> UpstreamClient:
    # pylint: disable=redefined-outer-name,unused-argument
    """Provides an UpstreamClient without any stored credentials."""
    async with UpstreamClient(
        credentials_store=tmp_path.joinpath("config.json")
    ) as client:
        yield client


@pytest_asyncio.fixture
async def mirror_client(
    fake_registry: FakeRegistry, upstream_client: UpstreamClient
) -> AioHttpTestClient:
    # pylint: disable=redefined-outer-name
    """Provides a test client for a mirror of base/image:v2 hosted by the fake registry."""
    app = create_app(fake_registry.image_name(), upstream_client=upstream_client)
    client = AioHttpTestClient(AioHttpTestServer(app))
    await client.start_server()
    yield client
    await client.close()
