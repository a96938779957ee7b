from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from hls_cache_proxy import handlers
from hls_cache_proxy.configs import settings
from hls_cache_proxy.main import app

from conftest import MASTER_URL, FakeUpstream


@pytest.fixture
def client():
    return TestClient(app)


def test_self_check(client):
    response = client.get("/self-check")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert isinstance(body["time"], int)


def test_missing_url_is_reported_with_success_status(client):
    response = client.get("/get_best_stream")

    assert response.status_code == 200
    assert response.json() == {"error": "Missing URL"}


def test_get_best_stream_and_serve_cached_files(client, upstream, monkeypatch):
    monkeypatch.setattr(handlers, "create_httpx_client", upstream.client)

    response = client.get("/get_best_stream", params={"url": MASTER_URL, "referer": "https://example.com/page"})

    assert response.status_code == 200
    body = response.json()
    assert [entry["bandwidth"] for entry in body["all"]] == [1280000, 2560000]
    assert body["master"].startswith(settings.cache_url_path.strip("/") + "/")

    master = client.get("/" + body["master"])
    assert master.status_code == 200
    assert "1280000.m3u8" in master.text
    variant = client.get("/" + body["all"][0]["file"])
    assert "referer=https%3A%2F%2Fexample.com%2F" in variant.text

    key = Path(body["master"]).parent.name
    assert (Path(settings.cache_dir) / key / "master.m3u8").exists()


def test_upstream_failure_is_reported(client, monkeypatch):
    monkeypatch.setattr(handlers, "create_httpx_client", FakeUpstream().client)

    response = client.get("/get_best_stream", params={"url": "https://cdn.example.com/gone.m3u8"})

    assert response.status_code == 200
    assert response.json() == {"error": "Could not load master playlist"}


def test_unexpected_error_is_reported(client, monkeypatch):
    async def broken(url, referer):
        raise RuntimeError("boom")

    monkeypatch.setattr("hls_cache_proxy.routes.stream.handle_best_stream_request", broken)

    response = client.get("/get_best_stream", params={"url": MASTER_URL})

    assert response.status_code == 200
    assert response.json() == {"error": "Internal server error"}


def test_cors_headers(client):
    response = client.get("/self-check", headers={"Origin": "https://player.example"})
    assert response.headers["access-control-allow-origin"] == "*"
