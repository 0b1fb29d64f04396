from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from batch_scraper.api import create_app
from batch_scraper.errors import FetchTimeoutError
from batch_scraper.orchestrator import ScrapeOrchestrator


@pytest.fixture
def api_client(settings, memory_store, fake_fetcher, scraper_home):
    fetcher = fake_fetcher({"https://b.test/timeout": FetchTimeoutError("timed out")})
    orchestrator = ScrapeOrchestrator(settings, memory_store, fetcher=fetcher)
    with TestClient(create_app(orchestrator)) as client:
        yield client


def test_health(api_client: TestClient) -> None:
    response = api_client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_scrape_returns_partial_job(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/scrape",
        json={"urls": ["https://a.test/ok", "https://b.test/timeout", "https://a.test/ok"]},
    )

    assert response.status_code == 200
    payload = response.json()
    assert set(payload) == {"jobId", "status", "results"}
    assert payload["status"] == "PARTIAL"
    assert payload["results"] == [
        {"url": "https://a.test/ok", "ok": True, "statusCode": 200},
        {"url": "https://b.test/timeout", "ok": False, "error": "timed out"},
    ]


def test_scrape_rejects_empty_url_list(api_client: TestClient, memory_store) -> None:
    response = api_client.post("/api/scrape", json={"urls": []})

    assert response.status_code == 400
    payload = response.json()
    assert payload["error"] == "Invalid body"
    assert payload["issues"][0]["loc"] == ["urls"]
    assert memory_store.jobs == {}


def test_scrape_rejects_malformed_json(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/scrape", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid body"


def test_scrape_reports_internal_failure(api_client: TestClient, memory_store) -> None:
    def broken_create_job(**kwargs):
        raise RuntimeError("database is locked")

    memory_store.create_job = broken_create_job
    response = api_client.post("/api/scrape", json={"urls": ["https://a.test/"]})

    assert response.status_code == 500
    payload = response.json()
    assert payload["error"] == "Internal server error"
    assert "database is locked" in payload["message"]


@pytest.mark.parametrize(
    "config",
    [{"extra": 5}, {"timeout_seconds": 120}, {"tags": "x"}, {"nested": {"depth": [1, 2]}}],
)
def test_scrape_accepts_any_config_mapping(
    api_client: TestClient, memory_store, config
) -> None:
    response = api_client.post(
        "/api/scrape", json={"urls": ["https://a.test/ok"], "config": config}
    )

    assert response.status_code == 200
    job = memory_store.get_job(response.json()["jobId"])
    assert job["config"] == config
