"""
Exporter - HTTP Exposition.

============================================================
PURPOSE
============================================================
HTTP endpoints of the exporter.

- GET <telemetry path>  fetch a snapshot and render metrics
- GET /health           liveness check
- GET /                 landing page

PRINCIPLES:
- Scrapes are serialized: one snapshot in flight at a time
- Scrape errors never fail the request; they are reported
  through the scrape health metrics

============================================================
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST

from collectors import BaseCollector, ScrapeContext, build_collectors, render
from core.clock import ClockProtocol, SystemClock
from core.exceptions import wrap_exception
from fetcher import Fetcher
from models import CFObjects

from .config import ExporterConfig


logger = logging.getLogger(__name__)


LANDING_PAGE = """<html>
<head><title>Cloud Foundry Inventory Exporter</title></head>
<body>
<h1>Cloud Foundry Inventory Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


def json_response(data: Any, status: int = 200) -> web.Response:
    """Create JSON response."""
    return web.Response(
        text=json.dumps(data, indent=2),
        status=status,
        content_type="application/json",
    )


# ============================================================
# API HANDLERS
# ============================================================

class ExporterAPI:
    """
    HTTP handlers of the exporter.

    Collectors are created once, so their counters persist
    across scrapes.
    """

    def __init__(
        self,
        config: ExporterConfig,
        fetcher: Fetcher,
        collectors: Optional[Sequence[BaseCollector]] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize API.

        Args:
            config: Exporter configuration
            fetcher: Snapshot fetcher
            collectors: Collectors to render (defaults to those the filter enables)
            clock: Clock for scrape timestamps
        """
        self._config = config
        self._fetcher = fetcher
        self._collectors: List[BaseCollector] = (
            list(collectors) if collectors is not None else build_collectors(fetcher.filter)
        )
        self._clock = clock or SystemClock()
        self._scrape_lock = asyncio.Lock()

    @property
    def collectors(self) -> List[BaseCollector]:
        return list(self._collectors)

    async def scrape(self) -> bytes:
        """Fetch one snapshot and render it."""
        async with self._scrape_lock:
            try:
                objs = await self._fetcher.get_objects(self._config.scrape_timeout_seconds)
            except Exception as e:
                logger.error(f"Error fetching objects: {e}", exc_info=True)
                objs = CFObjects()
                objs.error = wrap_exception(e)

            context = ScrapeContext(
                objects=objs,
                environment=self._config.environment,
                deployment=self._config.deployment,
                namespace=self._config.namespace,
                clock=self._clock,
            )
            return render(context, self._collectors)

    # --------------------------------------------------------
    # ENDPOINTS
    # --------------------------------------------------------

    async def metrics(self, request: web.Request) -> web.Response:
        """
        GET /metrics

        Metrics in the text exposition format.
        """
        try:
            body = await self.scrape()
        except Exception as e:
            logger.error(f"Error rendering metrics: {e}", exc_info=True)
            body = b""

        return web.Response(
            body=body,
            status=200,
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )

    async def health(self, request: web.Request) -> web.Response:
        """
        GET /health

        Exporter health check.
        """
        return json_response({
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "cf-inventory-exporter",
        })

    async def index(self, request: web.Request) -> web.Response:
        """GET /"""
        return web.Response(
            text=LANDING_PAGE.format(path=self._config.telemetry_path),
            content_type="text/html",
        )


# ============================================================
# APPLICATION FACTORY
# ============================================================

def create_app(api: ExporterAPI, telemetry_path: str = "/metrics") -> web.Application:
    """
    Create the exporter application.

    Returns an aiohttp Application with all routes configured.
    """
    app = web.Application()

    app.router.add_get(telemetry_path, api.metrics)
    app.router.add_get("/health", api.health)
    if telemetry_path != "/":
        app.router.add_get("/", api.index)

    return app


async def run_server(config: ExporterConfig, fetcher: Fetcher) -> None:
    """
    Serve the exporter until cancelled.

    Args:
        config: Validated exporter configuration
        fetcher: Snapshot fetcher
    """
    api = ExporterAPI(config, fetcher)
    app = create_app(api, config.telemetry_path)

    host, port = config.host_port

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"Listening on http://{host}:{port}{config.telemetry_path}")

    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await runner.cleanup()


__all__ = [
    "ExporterAPI",
    "create_app",
    "run_server",
    "json_response",
]
