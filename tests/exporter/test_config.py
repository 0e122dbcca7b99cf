"""
Tests for exporter configuration and the command line.
"""

import logging
from unittest.mock import patch

import pytest

from core.exceptions import ConfigurationError
from exporter.cli import build_config, create_parser, main, setup_logging, validate_args
from exporter.config import ExporterConfig
from fetcher import CFConfig
from filters import Category


ENV_VARS = [
    "CF_API_URL", "CF_CLIENT_ID", "CF_CLIENT_SECRET", "CF_USERNAME", "CF_PASSWORD",
    "CF_SKIP_SSL_VALIDATION", "CF_REQUEST_TIMEOUT_SECONDS", "CF_API_WORKERS",
    "FILTER_COLLECTORS", "METRICS_NAMESPACE", "METRICS_ENVIRONMENT", "METRICS_DEPLOYMENT",
    "SCRAPE_TIMEOUT_SECONDS", "WEB_LISTEN_ADDRESS", "WEB_TELEMETRY_PATH",
    "LOG_LEVEL", "LOG_FORMAT",
]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def clean_env(monkeypatch):
    """Environment without exporter variables and without .env loading."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    with patch("exporter.config.load_dotenv"):
        yield monkeypatch


def valid_config(**overrides) -> ExporterConfig:
    config = ExporterConfig(
        cf=CFConfig(url="https://api.example.com", client_id="exporter", client_secret="secret"),
        environment="prod",
        deployment="cf",
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


# ============================================================
# ENVIRONMENT
# ============================================================

class TestFromEnv:
    """Tests for ExporterConfig.from_env."""

    def test_defaults(self, clean_env):
        config = ExporterConfig.from_env()

        assert config.workers == 4
        assert config.namespace == "cf"
        assert config.listen_address == ":9193"
        assert config.telemetry_path == "/metrics"
        assert config.scrape_timeout_seconds is None
        assert config.log_level == "INFO"
        assert config.log_format == "text"
        assert config.cf.skip_ssl_validation is False

    def test_reads_variables(self, clean_env):
        clean_env.setenv("CF_API_URL", "https://api.sys.example.com")
        clean_env.setenv("CF_USERNAME", "admin")
        clean_env.setenv("CF_PASSWORD", "pw")
        clean_env.setenv("CF_SKIP_SSL_VALIDATION", "true")
        clean_env.setenv("CF_API_WORKERS", "8")
        clean_env.setenv("FILTER_COLLECTORS", "metadata,applications")
        clean_env.setenv("METRICS_ENVIRONMENT", "prod")
        clean_env.setenv("METRICS_DEPLOYMENT", "cf-eu")
        clean_env.setenv("SCRAPE_TIMEOUT_SECONDS", "30")
        clean_env.setenv("LOG_LEVEL", "debug")

        config = ExporterConfig.from_env()

        assert config.cf.url == "https://api.sys.example.com"
        assert not config.cf.uses_client_credentials
        assert config.cf.skip_ssl_validation is True
        assert config.workers == 8
        assert config.scrape_timeout_seconds == 30.0
        assert config.log_level == "DEBUG"
        assert config.build_filter().enabled_categories == [
            Category.APPLICATIONS, Category.METADATA,
        ]
        assert config.validate() == []


# ============================================================
# VALIDATION
# ============================================================

class TestValidate:
    """Tests for configuration validation."""

    def test_valid(self):
        assert valid_config().validate() == []

    def test_missing_url_and_credentials(self):
        config = valid_config(cf=CFConfig())

        errors = config.validate()

        assert "cf.api-url is required" in errors
        assert (
            "either cf.client-id/cf.client-secret or cf.username/cf.password is required"
            in errors
        )

    def test_client_id_without_secret(self):
        config = valid_config(cf=CFConfig(url="https://api.example.com", client_id="exporter"))

        assert config.validate() == ["cf.client-secret is required with cf.client-id"]

    def test_url_scheme(self):
        config = valid_config(cf=CFConfig(url="api.example.com", username="u", password="p"))

        assert config.validate() == ["cf.api-url must start with http:// or https://"]

    def test_labels_required(self):
        errors = valid_config(environment="", deployment="").validate()

        assert "metrics.environment is required" in errors
        assert "metrics.deployment is required" in errors

    def test_unknown_filter(self):
        errors = valid_config(filter_collectors="metadata,bogus").validate()

        assert len(errors) == 1
        assert errors[0].startswith("filter.collectors:")

    def test_workers_and_timeout(self):
        errors = valid_config(workers=0, scrape_timeout_seconds=-1).validate()

        assert "cf.api-workers must be at least 1" in errors
        assert "scrape.timeout must be positive" in errors

    def test_listen_address(self):
        assert valid_config().host_port == ("0.0.0.0", 9193)
        assert valid_config(listen_address="127.0.0.1:8080").host_port == ("127.0.0.1", 8080)

        with pytest.raises(ConfigurationError):
            valid_config(listen_address="localhost").host_port

        assert valid_config(listen_address="nowhere").validate() != []


# ============================================================
# COMMAND LINE
# ============================================================

class TestCli:
    """Tests for the argparse front end."""

    def test_flags_override_base(self):
        args = create_parser().parse_args([
            "--cf.api-url", "https://api.other.com",
            "--cf.api-workers", "2",
            "--filter.collectors", "metadata",
            "--metrics.environment", "staging",
            "--skip-ssl-verify",
            "--scrape.timeout", "15",
            "--web.listen-address", "127.0.0.1:9999",
            "--log-level", "debug",
        ])

        config = build_config(args, base=valid_config())

        assert config.cf.url == "https://api.other.com"
        assert config.cf.client_id == "exporter"
        assert config.cf.skip_ssl_validation is True
        assert config.workers == 2
        assert config.filter_collectors == "metadata"
        assert config.environment == "staging"
        assert config.deployment == "cf"
        assert config.scrape_timeout_seconds == 15.0
        assert config.host_port == ("127.0.0.1", 9999)
        assert config.log_level == "DEBUG"

    def test_unset_flags_keep_base(self):
        args = create_parser().parse_args([])

        config = build_config(args, base=valid_config())

        assert config.cf.url == "https://api.example.com"
        assert config.cf.skip_ssl_validation is False
        assert config.workers == 4

    def test_validate_args(self):
        args = create_parser().parse_args(["--cf.api-workers", "0", "--scrape.timeout", "0"])

        errors = validate_args(args)

        assert "--cf.api-workers must be at least 1" in errors
        assert "--scrape.timeout must be positive" in errors

    def test_main_rejects_invalid_config(self, clean_env, capsys):
        assert main([]) == 1

        err = capsys.readouterr().err
        assert "Error: cf.api-url is required" in err
        assert "Error: metrics.environment is required" in err

    def test_setup_logging(self):
        root = logging.getLogger()
        saved = (root.level, list(root.handlers))
        try:
            setup_logging("DEBUG", "json")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert '"level": "%(levelname)s"' in root.handlers[0].formatter._fmt
        finally:
            root.setLevel(saved[0])
            root.handlers = saved[1]
