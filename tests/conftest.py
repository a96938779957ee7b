"""
Pytest configuration for the playlist cache tests.

Upstream servers are simulated with httpx.MockTransport, the cache lives in
a temporary directory.
"""

import os
import tempfile
from pathlib import Path

import httpx
import pytest
from dotenv import load_dotenv

# Load .env file from project root
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")

# The static mount is created at import time, keep it out of the working tree.
os.environ["CACHE_DIR"] = tempfile.mkdtemp(prefix="hls_cache_proxy_")
os.environ["SELF_CHECK_INTERVAL"] = "0"

from hls_cache_proxy.utils.cache_utils import PlaylistCache  # noqa: E402


def pytest_configure(config):
    """Configure pytest-asyncio mode."""
    config.addinivalue_line("markers", "asyncio: mark test as async")


MASTER_URL = "https://cdn.example.com/master.m3u8"

MASTER_PLAYLIST = (
    "#EXTM3U\n"
    "#EXT-X-STREAM-INF:BANDWIDTH=1280000,RESOLUTION=640x360\n"
    "low/index.m3u8\n"
    "#EXT-X-STREAM-INF:BANDWIDTH=2560000,RESOLUTION=1280x720\n"
    "https://cdn.example.com/high/index.m3u8\n"
)

VARIANT_PLAYLIST = (
    "#EXTM3U\n"
    "#EXT-X-VERSION:3\n"
    "#EXT-X-TARGETDURATION:10\n"
    "#EXTINF:10.0,\n"
    "seg001.ts\n"
    "#EXTINF:10.0,\n"
    "seg002.ts\n"
    "#EXT-X-ENDLIST\n"
)


class FakeUpstream:
    """Serves canned playlists and records every request it receives."""

    def __init__(self, routes: dict | None = None):
        self.routes = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="not found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, tuple):
            status_code, text = route
            return httpx.Response(status_code, text=text)
        return httpx.Response(200, text=route)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), follow_redirects=True)

    def requested_urls(self) -> list[str]:
        return [str(request.url) for request in self.requests]


@pytest.fixture
def upstream():
    return FakeUpstream(
        {
            MASTER_URL: MASTER_PLAYLIST,
            "https://cdn.example.com/low/index.m3u8": VARIANT_PLAYLIST,
            "https://cdn.example.com/high/index.m3u8": VARIANT_PLAYLIST,
        }
    )


@pytest.fixture
def cache(tmp_path):
    return PlaylistCache(cache_dir=tmp_path / "stream_cache", ttl=3600)
