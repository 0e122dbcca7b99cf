"""
Exporter - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface of the exporter.

- Provides argparse-based CLI
- Loads configuration from environment, then CLI flags
- Sets up logging
- Entry point for the application

============================================================
USAGE
============================================================
cf-inventory-exporter --cf.api-url https://api.sys.example.com \\
    --cf.client-id exporter --cf.client-secret secret \\
    --metrics.environment prod --metrics.deployment cf

python -m exporter.cli --filter.collectors metadata --log-level DEBUG

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from fetcher import Fetcher

from .api import run_server
from .config import LOG_FORMATS, LOG_LEVELS, ExporterConfig


__version__ = "1.0.0"


# ============================================================
# LOGGING
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Set up process logging.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("exporter")


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser.

    Flags default to None so that unset flags keep the
    environment value.
    """
    parser = argparse.ArgumentParser(
        prog="cf-inventory-exporter",
        description="Exports Cloud Foundry inventory metadata as metrics",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Every flag can also be set through its environment variable
(CF_API_URL, METRICS_ENVIRONMENT, ...) or a .env file.

Collector categories:
  applications, buildpacks, domains, events, isolation_segments,
  metadata, organizations, routes, security_groups, service_bindings,
  service_instances, service_plans, service_route_bindings, services,
  spaces, stacks, tasks
        """
    )

    # --------------------------------------------------------
    # Platform API
    # --------------------------------------------------------
    cf_group = parser.add_argument_group("Cloud Foundry API")

    cf_group.add_argument(
        "--cf.api-url",
        dest="api_url",
        metavar="URL",
        help="Cloud Foundry API URL (env CF_API_URL)",
    )
    cf_group.add_argument(
        "--cf.client-id",
        dest="client_id",
        help="Client id for the client credentials grant (env CF_CLIENT_ID)",
    )
    cf_group.add_argument(
        "--cf.client-secret",
        dest="client_secret",
        help="Client secret (env CF_CLIENT_SECRET)",
    )
    cf_group.add_argument(
        "--cf.username",
        dest="username",
        help="Username for the password grant (env CF_USERNAME)",
    )
    cf_group.add_argument(
        "--cf.password",
        dest="password",
        help="Password (env CF_PASSWORD)",
    )
    cf_group.add_argument(
        "--cf.api-workers",
        dest="workers",
        type=int,
        metavar="N",
        help="Maximum concurrent API requests (env CF_API_WORKERS, default: 4)",
    )
    cf_group.add_argument(
        "--skip-ssl-verify",
        dest="skip_ssl_verify",
        action="store_true",
        default=None,
        help="Disable TLS certificate verification (env CF_SKIP_SSL_VALIDATION)",
    )

    # --------------------------------------------------------
    # Metrics
    # --------------------------------------------------------
    metrics_group = parser.add_argument_group("Metrics")

    metrics_group.add_argument(
        "--filter.collectors",
        dest="filter_collectors",
        metavar="LIST",
        help="Comma separated collector categories (env FILTER_COLLECTORS, "
             "default: all but events)",
    )
    metrics_group.add_argument(
        "--metrics.namespace",
        dest="namespace",
        help="Metric name prefix (env METRICS_NAMESPACE, default: cf)",
    )
    metrics_group.add_argument(
        "--metrics.environment",
        dest="environment",
        help="Value of the environment label (env METRICS_ENVIRONMENT)",
    )
    metrics_group.add_argument(
        "--metrics.deployment",
        dest="deployment",
        help="Value of the deployment label (env METRICS_DEPLOYMENT)",
    )
    metrics_group.add_argument(
        "--scrape.timeout",
        dest="scrape_timeout",
        type=float,
        metavar="SECONDS",
        help="Deadline of the API fetches of one scrape (env SCRAPE_TIMEOUT_SECONDS)",
    )

    # --------------------------------------------------------
    # Web
    # --------------------------------------------------------
    web_group = parser.add_argument_group("Web")

    web_group.add_argument(
        "--web.listen-address",
        dest="listen_address",
        metavar="HOST:PORT",
        help="Address to listen on (env WEB_LISTEN_ADDRESS, default: :9193)",
    )
    web_group.add_argument(
        "--web.telemetry-path",
        dest="telemetry_path",
        metavar="PATH",
        help="Path exposing metrics (env WEB_TELEMETRY_PATH, default: /metrics)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (env LOG_LEVEL, default: INFO)",
    )
    logging_group.add_argument(
        "--log-format",
        type=str.lower,
        choices=LOG_FORMATS,
        help="Logging format (env LOG_FORMAT, default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Args:
        args: Parsed arguments

    Returns:
        List of validation errors
    """
    errors = []

    if args.workers is not None and args.workers < 1:
        errors.append("--cf.api-workers must be at least 1")

    if args.scrape_timeout is not None and args.scrape_timeout <= 0:
        errors.append("--scrape.timeout must be positive")

    return errors


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(
    args: argparse.Namespace,
    base: Optional[ExporterConfig] = None,
) -> ExporterConfig:
    """
    Build exporter configuration from CLI arguments.

    Args:
        args: Parsed arguments
        base: Configuration the flags override (default: from environment)

    Returns:
        ExporterConfig instance
    """
    config = base if base is not None else ExporterConfig.from_env()
    cf = config.cf

    if args.api_url is not None:
        cf.url = args.api_url
    if args.client_id is not None:
        cf.client_id = args.client_id
    if args.client_secret is not None:
        cf.client_secret = args.client_secret
    if args.username is not None:
        cf.username = args.username
    if args.password is not None:
        cf.password = args.password
    if args.skip_ssl_verify:
        cf.skip_ssl_validation = True

    if args.workers is not None:
        config.workers = args.workers
    if args.filter_collectors is not None:
        config.filter_collectors = args.filter_collectors
    if args.namespace is not None:
        config.namespace = args.namespace
    if args.environment is not None:
        config.environment = args.environment
    if args.deployment is not None:
        config.deployment = args.deployment
    if args.scrape_timeout is not None:
        config.scrape_timeout_seconds = args.scrape_timeout
    if args.listen_address is not None:
        config.listen_address = args.listen_address
    if args.telemetry_path is not None:
        config.telemetry_path = args.telemetry_path
    if args.log_level is not None:
        config.log_level = args.log_level
    if args.log_format is not None:
        config.log_format = args.log_format

    return config


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(config: ExporterConfig) -> int:
    """
    Async main entry point.

    Args:
        config: Validated configuration

    Returns:
        Exit code
    """
    fetcher = Fetcher(config.workers, config.cf, config.build_filter())

    try:
        await run_server(config, fetcher)
        return 0
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=True)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    config = build_config(args)

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    logger = setup_logging(config.log_level, config.log_format)
    logger.info(
        f"Starting cf-inventory-exporter {__version__} "
        f"(collectors: {', '.join(c.value for c in config.build_filter().enabled_categories)})"
    )

    try:
        return asyncio.run(async_main(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
