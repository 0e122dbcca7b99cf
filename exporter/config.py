"""
Exporter - Configuration.

============================================================
SOURCES (lowest to highest precedence)
============================================================
1. Defaults below
2. Environment variables (a .env file is loaded first)
3. Command-line flags (see exporter.cli.build_config)

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from core.exceptions import ConfigurationError
from fetcher.models import CFConfig
from filters import Filter


DEFAULT_LISTEN_ADDRESS = ":9193"
DEFAULT_TELEMETRY_PATH = "/metrics"
DEFAULT_NAMESPACE = "cf"
DEFAULT_WORKERS = 4

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "text")


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    return float(value)


@dataclass
class ExporterConfig:
    """Configuration of the exporter process."""

    cf: CFConfig = field(default_factory=CFConfig)
    """Platform API connection."""

    workers: int = DEFAULT_WORKERS
    """Maximum concurrent fetch tasks."""

    filter_collectors: str = ""
    """Comma separated collector categories, empty for the default set."""

    namespace: str = DEFAULT_NAMESPACE
    """Metric name prefix."""

    environment: str = ""
    deployment: str = ""
    """Values of the constant environment/deployment labels."""

    scrape_timeout_seconds: Optional[float] = None
    """Deadline of the fetch tasks of one scrape, None for no deadline."""

    listen_address: str = DEFAULT_LISTEN_ADDRESS
    telemetry_path: str = DEFAULT_TELEMETRY_PATH

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> "ExporterConfig":
        """Load configuration from environment variables."""
        load_dotenv()

        return cls(
            cf=CFConfig.from_env(),
            workers=int(os.getenv("CF_API_WORKERS", str(DEFAULT_WORKERS))),
            filter_collectors=os.getenv("FILTER_COLLECTORS", ""),
            namespace=os.getenv("METRICS_NAMESPACE", DEFAULT_NAMESPACE),
            environment=os.getenv("METRICS_ENVIRONMENT", ""),
            deployment=os.getenv("METRICS_DEPLOYMENT", ""),
            scrape_timeout_seconds=_optional_float(os.getenv("SCRAPE_TIMEOUT_SECONDS")),
            listen_address=os.getenv("WEB_LISTEN_ADDRESS", DEFAULT_LISTEN_ADDRESS),
            telemetry_path=os.getenv("WEB_TELEMETRY_PATH", DEFAULT_TELEMETRY_PATH),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
        )

    def build_filter(self) -> Filter:
        """
        Parse the collector filter.

        Raises:
            ConfigurationError: On unknown category names
        """
        return Filter.from_string(self.filter_collectors)

    @property
    def host_port(self) -> Tuple[str, int]:
        """
        Split the listen address into host and port.

        An empty host (":9193") listens on every interface.
        """
        host, sep, port = self.listen_address.rpartition(":")
        if not sep or not port.isdigit():
            raise ConfigurationError(
                message=f"invalid listen address: {self.listen_address!r}",
                config_key="web.listen-address",
                actual_value=self.listen_address,
            )
        return host.strip("[]") or "0.0.0.0", int(port)

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = self.cf.validate()

        if self.workers < 1:
            errors.append("cf.api-workers must be at least 1")

        try:
            self.build_filter()
        except ConfigurationError as e:
            errors.append(f"filter.collectors: {e.message}")

        if not self.environment:
            errors.append("metrics.environment is required")
        if not self.deployment:
            errors.append("metrics.deployment is required")

        if self.scrape_timeout_seconds is not None and self.scrape_timeout_seconds <= 0:
            errors.append("scrape.timeout must be positive")

        try:
            self.host_port
        except ConfigurationError as e:
            errors.append(e.message)

        if not self.telemetry_path.startswith("/"):
            errors.append("web.telemetry-path must start with /")

        if self.log_level not in LOG_LEVELS:
            errors.append(f"log level must be one of {', '.join(LOG_LEVELS)}")
        if self.log_format not in LOG_FORMATS:
            errors.append(f"log format must be one of {', '.join(LOG_FORMATS)}")

        return errors


__all__ = [
    "ExporterConfig",
    "DEFAULT_LISTEN_ADDRESS",
    "DEFAULT_TELEMETRY_PATH",
    "DEFAULT_NAMESPACE",
    "DEFAULT_WORKERS",
    "LOG_LEVELS",
    "LOG_FORMATS",
]
