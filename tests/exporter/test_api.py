"""
Tests for the HTTP exposition endpoints.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiohttp import test_utils
from prometheus_client.parser import text_string_to_metric_families

from core.clock import MockClock
from core.exceptions import SessionError
from exporter.api import ExporterAPI, create_app
from exporter.config import ExporterConfig
from fetcher import CFConfig, TaskOutcome, TaskStatus
from filters import Filter
from models import Application, CFObjects, Metadata, Organization, Space


# ============================================================
# FIXTURES
# ============================================================

def make_objs() -> CFObjects:
    objs = CFObjects()
    objs.insert("organizations", [
        Organization(guid="o1", name="acme", metadata=Metadata(labels={"env": "prod"})),
    ])
    objs.insert("spaces", [Space(guid="s1", name="dev", relationships={"organization": "o1"})])
    objs.insert("applications", [
        Application(
            guid="a1",
            name="web",
            metadata=Metadata(labels={"team": "x"}),
            relationships={"space": "s1"},
        ),
    ])
    objs.outcomes = {
        name: TaskOutcome(name=name, status=TaskStatus.SUCCEEDED)
        for name in ("info", "organizations", "spaces", "applications")
    }
    objs.took = 0.25
    return objs


@pytest.fixture
def config():
    return ExporterConfig(
        cf=CFConfig(url="https://api.example.com", client_id="exporter", client_secret="secret"),
        environment="test",
        deployment="cf-dev",
        scrape_timeout_seconds=30.0,
    )


@pytest.fixture
def fetcher():
    fetcher = MagicMock()
    fetcher.filter = Filter("metadata")
    fetcher.get_objects = AsyncMock(side_effect=lambda timeout=None: make_objs())
    return fetcher


def sample_value(body: str, name: str):
    """Value of the single sample called name in an exposition body."""
    values = [
        s.value
        for family in text_string_to_metric_families(body)
        for s in family.samples
        if s.name == name
    ]
    assert len(values) == 1
    return values[0]


def client_for(api: ExporterAPI, path: str = "/metrics") -> test_utils.TestClient:
    return test_utils.TestClient(test_utils.TestServer(create_app(api, path)))


# ============================================================
# ENDPOINTS
# ============================================================

class TestMetricsEndpoint:
    """Tests for the telemetry endpoint."""

    @pytest.mark.asyncio
    async def test_renders_snapshot(self, config, fetcher):
        api = ExporterAPI(config, fetcher, clock=MockClock())

        async with client_for(api) as client:
            response = await client.get("/metrics")
            body = await response.text()

        assert response.status == 200
        assert response.headers["Content-Type"].startswith("text/plain")
        assert 'cf_organization_metadata{' in body
        assert 'label_key="org_env"' in body
        assert 'environment="test"' in body
        assert sample_value(body, "cf_last_metadata_scrape_error") == 0
        fetcher.get_objects.assert_awaited_with(30.0)

    @pytest.mark.asyncio
    async def test_scrape_error_still_returns_200(self, config, fetcher):
        failed = CFObjects()
        failed.error = SessionError("authentication failed")
        fetcher.get_objects = AsyncMock(return_value=failed)
        api = ExporterAPI(config, fetcher)

        async with client_for(api) as client:
            response = await client.get("/metrics")
            body = await response.text()

        assert response.status == 200
        assert "cf_organization_metadata{" not in body
        assert sample_value(body, "cf_last_metadata_scrape_error") == 1

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_reports_scrape_health(self, config, fetcher):
        fetcher.get_objects = AsyncMock(side_effect=RuntimeError("unexpected"))
        api = ExporterAPI(config, fetcher)

        async with client_for(api) as client:
            response = await client.get("/metrics")
            body = await response.text()

        assert response.status == 200
        assert "cf_organization_metadata{" not in body
        assert sample_value(body, "cf_last_metadata_scrape_error") == 1
        assert sample_value(body, "cf_metadata_scrapes_total") == 1
        assert sample_value(body, "cf_metadata_scrape_errors_total") == 1

    @pytest.mark.asyncio
    async def test_render_error_returns_empty_body(self, config, fetcher):
        api = ExporterAPI(config, fetcher)

        with patch("exporter.api.render", side_effect=RuntimeError("unexpected")):
            async with client_for(api) as client:
                response = await client.get("/metrics")
                body = await response.text()

        assert response.status == 200
        assert body == ""

    @pytest.mark.asyncio
    async def test_counters_persist_across_requests(self, config, fetcher):
        api = ExporterAPI(config, fetcher)

        async with client_for(api) as client:
            await client.get("/metrics")
            response = await client.get("/metrics")
            body = await response.text()

        assert sample_value(body, "cf_metadata_scrapes_total") == 2

    @pytest.mark.asyncio
    async def test_scrapes_are_serialized(self, config, fetcher):
        in_flight = 0
        peak = 0

        async def get_objects(timeout=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.02)
            in_flight -= 1
            return make_objs()

        fetcher.get_objects = get_objects
        api = ExporterAPI(config, fetcher)

        async with client_for(api) as client:
            responses = await asyncio.gather(*(client.get("/metrics") for _ in range(3)))

        assert [r.status for r in responses] == [200, 200, 200]
        assert peak == 1

    @pytest.mark.asyncio
    async def test_custom_telemetry_path(self, config, fetcher):
        config.telemetry_path = "/inventory"
        api = ExporterAPI(config, fetcher)

        async with client_for(api, "/inventory") as client:
            found = await client.get("/inventory")
            missing = await client.get("/metrics")

        assert found.status == 200
        assert missing.status == 404

    def test_no_collectors_when_metadata_disabled(self, config, fetcher):
        fetcher.filter = Filter("routes")

        assert ExporterAPI(config, fetcher).collectors == []


class TestAuxiliaryEndpoints:
    """Tests for health and landing page."""

    @pytest.mark.asyncio
    async def test_health(self, config, fetcher):
        api = ExporterAPI(config, fetcher)

        async with client_for(api) as client:
            response = await client.get("/health")
            data = await response.json()

        assert response.status == 200
        assert data["status"] == "ok"
        fetcher.get_objects.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_landing_page_links_metrics(self, config, fetcher):
        api = ExporterAPI(config, fetcher)

        async with client_for(api) as client:
            response = await client.get("/")
            body = await response.text()

        assert response.status == 200
        assert response.headers["Content-Type"].startswith("text/html")
        assert 'href="/metrics"' in body
