"""
Exporter Package.

Configuration, HTTP exposition and command-line entry point.
"""

from .config import ExporterConfig
from .api import ExporterAPI, create_app, run_server


__all__ = [
    "ExporterConfig",
    "ExporterAPI",
    "create_app",
    "run_server",
]
