"""
Collectors - Metadata Labels.

============================================================
PURPOSE
============================================================
Renders user-defined labels of organizations, spaces and
applications as info-style metrics (value always 1).

- Organization labels on organization samples
- Space labels, joined with the owning organization
- Application labels plus inherited organization labels
  (key org_<k>) and space labels (key space_<k>)

============================================================
RELATIONSHIP GAPS
============================================================
A space whose organization, or an application whose space
or organization, cannot be resolved is skipped with one
warning. Gaps never fail the scrape on their own.

============================================================
SCRAPE HEALTH
============================================================
Every call counts as one scrape. A scrape fails when:
- the snapshot carries a top-level error (no walk)
- the walk raises (no detail samples)
- an input category did not fetch successfully (partial
  detail samples are still emitted)

Timestamp and duration gauges are updated on every call.

============================================================
"""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric

from core.exceptions import RenderError
from fetcher.models import TaskStatus
from models import (
    CFObjects,
    CategoryStore,
    RelationshipRef,
    RelationshipState,
    Resource,
)

from .base import BaseCollector, ScrapeContext


logger = logging.getLogger(__name__)


INPUT_CATEGORIES = ("organizations", "spaces", "applications")

ORG_LABELS = ["organization_id", "organization_name", "label_key", "label_value"]
SPACE_LABELS = [
    "space_id", "space_name",
    "organization_id", "organization_name",
    "label_key", "label_value",
]
APP_LABELS = [
    "application_id", "application_name",
    "organization_id", "organization_name",
    "space_id", "space_name",
    "label_key", "label_value",
]

# Presence set: label tuple -> nothing, insertion ordered
Samples = Dict[Tuple[str, ...], None]


# ============================================================
# METADATA COLLECTOR
# ============================================================

class MetadataCollector(BaseCollector):
    """
    Label propagation over the organization / space /
    application hierarchy.

    Scrape counters are owned by the instance and persist
    across scrapes.
    """

    def __init__(self):
        super().__init__("metadata")
        self._scrapes_total = 0.0
        self._scrape_errors_total = 0.0

    @property
    def scrapes_total(self) -> float:
        with self._lock:
            return self._scrapes_total

    @property
    def scrape_errors_total(self) -> float:
        with self._lock:
            return self._scrape_errors_total

    def collect(self, context: ScrapeContext) -> Iterator[Metric]:
        """
        Render the metadata metrics of one scrape.

        Args:
            context: Scrape context holding the snapshot

        Yields:
            Detail families (unless the scrape failed before or
            during the walk), then the scrape health families
        """
        objs = context.objects
        details: List[Metric] = []
        failed = False

        if objs.error is not None:
            logger.error(f"Metadata scrape skipped, snapshot failed: {objs.error}")
            failed = True
        else:
            try:
                details = self._walk(context)
            except Exception as e:
                error = RenderError(f"metadata walk failed: {e}", cause=e)
                logger.error(f"Metadata scrape failed: {error}")
                details = []
                failed = True
            else:
                incomplete = self._incomplete_inputs(objs)
                if incomplete:
                    logger.warning(
                        f"Metadata rendered from incomplete categories: {', '.join(incomplete)}"
                    )
                    failed = True
                elif objs.fetch_error is not None:
                    logger.warning(f"Metadata rendered from incomplete snapshot: {objs.fetch_error}")
                    failed = True

        with self._lock:
            self._scrapes_total += 1
            if failed:
                self._scrape_errors_total += 1
            scrapes = self._scrapes_total
            errors = self._scrape_errors_total

        yield from details
        yield from self._health(context, failed, scrapes, errors)

    # --------------------------------------------------------
    # Detail walk
    # --------------------------------------------------------

    def _walk(self, context: ScrapeContext) -> List[Metric]:
        objs = context.objects
        orgs = objs.organizations
        spaces = objs.spaces

        org_samples: Samples = {}
        space_samples: Samples = {}
        app_samples: Samples = {}

        for org in orgs:
            for key, value in org.labels.items():
                org_samples[(org.guid, org.name, key, value)] = None

        for space in spaces:
            org, reason = _resolve(space.relationship("organization"), orgs, "organization")
            if org is None:
                logger.warning(f"Skipping space {space.guid}: {reason}")
                continue

            for key, value in space.labels.items():
                space_samples[(space.guid, space.name, org.guid, org.name, key, value)] = None

        for app in objs.applications:
            space, reason = _resolve(app.relationship("space"), spaces, "space")
            org = None
            if space is not None:
                org, reason = _resolve(space.relationship("organization"), orgs, "organization")
                if org is None:
                    reason = f"space {space.guid}: {reason}"
            if space is None or org is None:
                logger.warning(f"Skipping application {app.guid}: {reason}")
                continue

            prefix = (app.guid, app.name, org.guid, org.name, space.guid, space.name)
            for key, value in app.labels.items():
                app_samples[prefix + (key, value)] = None
            for key, value in org.labels.items():
                app_samples[prefix + (f"org_{key}", value)] = None
            for key, value in space.labels.items():
                app_samples[prefix + (f"space_{key}", value)] = None

        return [
            self._family(
                context, "organization",
                "Cloud Foundry Organization metadata labels with a constant '1' value.",
                ORG_LABELS, org_samples,
            ),
            self._family(
                context, "space",
                "Cloud Foundry Space metadata labels with a constant '1' value.",
                SPACE_LABELS, space_samples,
            ),
            self._family(
                context, "application",
                "Cloud Foundry Application metadata labels with a constant '1' value.",
                APP_LABELS, app_samples,
            ),
        ]

    def _family(
        self,
        context: ScrapeContext,
        subsystem: str,
        documentation: str,
        labels: List[str],
        samples: Samples,
    ) -> GaugeMetricFamily:
        family = GaugeMetricFamily(
            context.metric_name(subsystem, "metadata"),
            documentation,
            labels=labels + context.const_label_names,
        )
        for key in samples:
            family.add_metric(list(key) + context.const_label_values, 1.0)
        return family

    def _incomplete_inputs(self, objs: CFObjects) -> List[str]:
        incomplete = []
        for name in INPUT_CATEGORIES:
            outcome = objs.outcomes.get(name)
            if outcome is not None and outcome.status != TaskStatus.SUCCEEDED:
                incomplete.append(name)
        return incomplete

    # --------------------------------------------------------
    # Scrape health
    # --------------------------------------------------------

    def _health(
        self,
        context: ScrapeContext,
        failed: bool,
        scrapes: float,
        errors: float,
    ) -> Iterator[Metric]:
        names = context.const_label_names
        values = context.const_label_values

        counter = CounterMetricFamily(
            context.metric_name("metadata_scrapes_total"),
            "Total number of scrapes for Cloud Foundry Metadata.",
            labels=names,
        )
        counter.add_metric(values, scrapes)
        yield counter

        counter = CounterMetricFamily(
            context.metric_name("metadata_scrape_errors_total"),
            "Total number of scrape errors of Cloud Foundry Metadata.",
            labels=names,
        )
        counter.add_metric(values, errors)
        yield counter

        gauge = GaugeMetricFamily(
            context.metric_name("last_metadata_scrape_error"),
            "Whether the last scrape of Metadata metrics from Cloud Foundry "
            "resulted in an error (1 for error, 0 for success).",
            labels=names,
        )
        gauge.add_metric(values, 1.0 if failed else 0.0)
        yield gauge

        gauge = GaugeMetricFamily(
            context.metric_name("last_metadata_scrape_timestamp"),
            "Number of seconds since 1970 since last scrape of Metadata "
            "metrics from Cloud Foundry.",
            labels=names,
        )
        gauge.add_metric(values, context.clock.timestamp())
        yield gauge

        gauge = GaugeMetricFamily(
            context.metric_name("last_metadata_scrape_duration_seconds"),
            "Duration of the last scrape of Metadata metrics from Cloud Foundry.",
            labels=names,
        )
        gauge.add_metric(values, float(context.objects.took))
        yield gauge


def _resolve(
    ref: RelationshipRef,
    store: CategoryStore,
    kind: str,
) -> Tuple[Optional[Resource], str]:
    """Resolve a to-one relationship, returning the target or why it is missing."""
    if ref.state == RelationshipState.ABSENT:
        return None, f"no {ref.name} relationship"
    if ref.state == RelationshipState.EMPTY:
        return None, f"empty {ref.name} relationship"

    target = store.get(ref.guid)
    if target is None:
        return None, f"{kind} {ref.guid} not found"
    return target, ""


__all__ = [
    "MetadataCollector",
    "INPUT_CATEGORIES",
]
