"""
Prometheus Metrics — digest post-processing observability.

Exposes counters and histograms for:
- Links annotated / redirected
- Excerpts and text blocks trimmed
- Hosts swapped per area
- Stage failures and regex fallbacks
- Stage processing latency

Usage
-----
    from digest_postprocessing.processing.metrics import record_links_annotated, timed_stage

    with timed_stage("html"):
        ...

    record_links_annotated(12)
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

LINKS_ANNOTATED: Counter = Counter(
    "digest_links_annotated_total",
    "Internal links that received digest tracking parameters",
)

LINKS_REDIRECTED: Counter = Counter(
    "digest_links_redirected_total",
    "Excerpt links rewritten to the content redirector",
)

EXCERPTS_TRIMMED: Counter = Counter(
    "digest_excerpts_trimmed_total",
    "Excerpts trimmed, by body type (html / text)",
    ["body"],
)

HOSTS_SWAPPED: Counter = Counter(
    "digest_hosts_swapped_total",
    "Hostnames rewritten to the per-message target domain, by area",
    ["area"],
)

STAGE_FAILURES: Counter = Counter(
    "digest_stage_failures_total",
    "Stages aborted by an unexpected error (message still delivered)",
    ["stage"],
)

REGEX_FALLBACKS: Counter = Counter(
    "digest_regex_fallbacks_total",
    "Messages processed without a DOM because the HTML parser was unavailable",
)

STAGE_LATENCY: Histogram = Histogram(
    "digest_stage_processing_seconds",
    "Processing time per pipeline stage in seconds",
    ["stage"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)


# ---------------------------------------------------------------------------
# Convenience helpers
# ---------------------------------------------------------------------------

def record_links_annotated(count: int) -> None:
    if count:
        LINKS_ANNOTATED.inc(count)


def record_links_redirected(count: int) -> None:
    if count:
        LINKS_REDIRECTED.inc(count)


def record_excerpts_trimmed(body: str, count: int) -> None:
    if count:
        EXCERPTS_TRIMMED.labels(body=body).inc(count)


def record_hosts_swapped(area: str, count: int) -> None:
    if count:
        HOSTS_SWAPPED.labels(area=area).inc(count)


def record_stage_failure(stage: str) -> None:
    STAGE_FAILURES.labels(stage=stage).inc()


def record_regex_fallback() -> None:
    REGEX_FALLBACKS.inc()


@contextmanager
def timed_stage(stage: str) -> Generator[None, None, None]:
    """
    Context manager that records stage processing latency.

    Usage::

        with timed_stage("text"):
            new_text, trimmed, count = trim_text_body(text, config)
    """
    with STAGE_LATENCY.labels(stage=stage).time():
        yield
