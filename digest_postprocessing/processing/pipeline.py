"""
Pipeline Orchestrator — main entry point for digest post-processing.

Called once per digest, after the host has built the bodies and before the
message is finalized for delivery. Executes:

    HTML part (single parse)
        1. Topic count (before any mutation)
        2. Link annotation (isdigest / u / dayofweek / email_id)
        3. Content redirector for excerpt links
        4. Excerpt trimming (only when >1 or unknown topics)
        5. Domain swap (links, resource attributes)
    Text part
        6. Text trimming (own topic count)
        7. Domain swap (URLs)
    Headers
        8. Domain swap (list headers, Message-ID)

Every stage group fails independently: an error leaves that part of the
message exactly as the host built it, and nothing is ever raised to the
caller: a post-processing failure never blocks delivery.
"""
import logging
import time
from typing import Optional

from bs4 import FeatureNotFound

from digest_postprocessing.links.content_redirector import redirect_excerpt_links
from digest_postprocessing.links.domain_swap import DomainSwapper, pick_target_domain, swap_headers
from digest_postprocessing.links.link_annotator import annotate_links, annotate_links_regex
from digest_postprocessing.links.url_utils import generate_email_id
from digest_postprocessing.models.digest_config import DigestConfig
from digest_postprocessing.models.email_message import EmailMessage, Recipient
from digest_postprocessing.models.report import DigestReport
from digest_postprocessing.models.tracking import TrackingContext
from digest_postprocessing.processing.html_document import parse_html, serialize_html
from digest_postprocessing.processing.metrics import (
    record_excerpts_trimmed,
    record_hosts_swapped,
    record_links_annotated,
    record_links_redirected,
    record_regex_fallback,
    record_stage_failure,
    timed_stage,
)
from digest_postprocessing.trimming.excerpt_trimmer import trim_excerpts
from digest_postprocessing.trimming.text_trimmer import trim_text_body
from digest_postprocessing.trimming.topic_counter import count_topics_html

logger = logging.getLogger(__name__)


def transform_digest(
    message: EmailMessage,
    recipient: Recipient,
    config: Optional[DigestConfig] = None,
) -> EmailMessage:
    """
    Post-process a digest message in place.

    Args:
        message: Digest built by the host; either body may be absent.
        recipient: Digest recipient (id + email).
        config: Configuration snapshot. Defaults to DigestConfig.from_env().

    Returns:
        The same message object, mutated.
    """
    try:
        run_digest_pipeline(message, recipient, config)
    except Exception as e:  # noqa: BLE001
        logger.warning("Digest post-processing failed: %s: %s", type(e).__name__, e)
    return message


def run_digest_pipeline(
    message: EmailMessage,
    recipient: Recipient,
    config: Optional[DigestConfig] = None,
) -> DigestReport:
    """
    Same as transform_digest, returning a DigestReport of what was done.
    """
    start_time = time.monotonic()

    if config is None:
        config = DigestConfig.from_env()

    # Per-message state: never shared between calls.
    email_id = generate_email_id()
    target_domain = pick_target_domain(config)
    swapper = DomainSwapper(config.origin_domain, target_domain) if target_domain else None
    tracking = TrackingContext(user_id=recipient.id, email_id=email_id)

    report = DigestReport(email_id=email_id, target_domain=target_domain)

    # ==================================================================
    # HTML part
    # ==================================================================
    if message.html_body:
        try:
            with timed_stage("html"):
                _process_html_part(message, recipient, tracking, swapper, config, report)
        except Exception as e:  # noqa: BLE001
            logger.warning("Digest HTML processing failed, original body kept: %s: %s", type(e).__name__, e)
            report.warnings.append(f"html: {type(e).__name__}: {e}")
            record_stage_failure("html")

    # ==================================================================
    # Text part
    # ==================================================================
    if message.text_body:
        try:
            with timed_stage("text"):
                _process_text_part(message, swapper, config, report)
        except Exception as e:  # noqa: BLE001
            logger.warning("Digest text processing failed, original body kept: %s: %s", type(e).__name__, e)
            report.warnings.append(f"text: {type(e).__name__}: {e}")
            record_stage_failure("text")

    # ==================================================================
    # Headers
    # ==================================================================
    if swapper is not None and (config.headers_enabled or config.message_id_enabled):
        try:
            with timed_stage("headers"):
                header_swaps, message_id_swaps = swap_headers(message, swapper, config)
            report.add_swaps("headers", header_swaps)
            report.add_swaps("message_id", message_id_swaps)
            record_hosts_swapped("headers", header_swaps)
            record_hosts_swapped("message_id", message_id_swaps)
        except Exception as e:  # noqa: BLE001
            logger.warning("Digest header swap failed: %s: %s", type(e).__name__, e)
            report.warnings.append(f"headers: {type(e).__name__}: {e}")
            record_stage_failure("headers")

    report.duration_ms = int((time.monotonic() - start_time) * 1000)
    logger.info(
        "Digest %s processed in %d ms: topics=%s/%s annotated=%d redirected=%d trimmed=%d+%d swapped=%s",
        email_id,
        report.duration_ms,
        report.html_topic_count,
        report.text_topic_count,
        report.links_annotated,
        report.links_redirected,
        report.excerpts_trimmed,
        report.text_blocks_trimmed,
        report.hosts_swapped,
    )
    return report


# ======================================================================
# HTML
# ======================================================================

def _process_html_part(
    message: EmailMessage,
    recipient: Recipient,
    tracking: TrackingContext,
    swapper: Optional[DomainSwapper],
    config: DigestConfig,
    report: DigestReport,
) -> None:
    markup = message.html_body or ""

    try:
        doc = parse_html(markup, config.html_parser)
    except FeatureNotFound:
        logger.warning(
            "HTML parser '%s' unavailable — regex link annotation only, no trimming/redirects",
            config.html_parser,
        )
        _process_html_without_dom(message, recipient, tracking, swapper, config, report)
        return

    # Stage 1: count before anything can change the structure used for counting
    topic_count = count_topics_html(doc, config)
    report.html_topic_count = topic_count

    changed = 0

    # Stage 2: internal link annotation
    if config.link_annotation_enabled:
        report.links_annotated = annotate_links(doc, recipient, tracking.email_id, config)
        record_links_annotated(report.links_annotated)
        changed += report.links_annotated

    # Stage 3: content redirector
    if config.redirector_active:
        report.links_redirected = redirect_excerpt_links(doc, tracking, config)
        record_links_redirected(report.links_redirected)
        changed += report.links_redirected

    # Stage 4: excerpt trimming
    if config.html_trim_active:
        report.excerpts_trimmed = trim_excerpts(doc, topic_count, config)
        record_excerpts_trimmed("html", report.excerpts_trimmed)
        changed += report.excerpts_trimmed

    # Stage 5: domain swap
    if swapper is not None:
        if config.html_links_enabled:
            swapped = swapper.swap_html_links(doc, config.never_touch_substrings)
            report.add_swaps("html_links", swapped)
            record_hosts_swapped("html_links", swapped)
            changed += swapped
        if config.resource_attributes_enabled:
            swapped = swapper.swap_resource_attributes(doc, config.never_touch_substrings)
            report.add_swaps("resource_attributes", swapped)
            record_hosts_swapped("resource_attributes", swapped)
            changed += swapped

    if changed:
        # Serialize first; the body is replaced only once this succeeded.
        message.html_body = serialize_html(doc)
        report.html_changed = True


def _process_html_without_dom(
    message: EmailMessage,
    recipient: Recipient,
    tracking: TrackingContext,
    swapper: Optional[DomainSwapper],
    config: DigestConfig,
    report: DigestReport,
) -> None:
    report.regex_fallback = True
    record_regex_fallback()

    markup = message.html_body or ""
    new_markup = markup

    if config.link_annotation_enabled:
        new_markup, report.links_annotated = annotate_links_regex(
            new_markup, recipient, tracking.email_id, config
        )
        record_links_annotated(report.links_annotated)

    if swapper is not None and config.html_links_enabled:
        new_markup, swapped = swapper.swap_href_attributes_regex(new_markup, config.never_touch_substrings)
        report.add_swaps("html_links", swapped)
        record_hosts_swapped("html_links", swapped)

    if new_markup != markup:
        message.html_body = new_markup
        report.html_changed = True


# ======================================================================
# Text
# ======================================================================

def _process_text_part(
    message: EmailMessage,
    swapper: Optional[DomainSwapper],
    config: DigestConfig,
    report: DigestReport,
) -> None:
    text = message.text_body or ""
    new_text = text

    if config.text_trim_active:
        new_text, report.text_blocks_trimmed, report.text_topic_count = trim_text_body(new_text, config)
        record_excerpts_trimmed("text", report.text_blocks_trimmed)

    if swapper is not None and config.text_links_enabled:
        new_text, swapped = swapper.swap_text(new_text, config.never_touch_substrings)
        report.add_swaps("text_links", swapped)
        record_hosts_swapped("text_links", swapped)

    if new_text != text:
        message.text_body = new_text
        report.text_changed = True
