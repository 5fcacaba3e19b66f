"""
Content Redirector — routes excerpt-body links through the first-party
``/content?u=<token>`` endpoint so mail clients only show local links.

Each redirected URL carries attribution: ``email_id`` plus the configured
tracking parameters valued ``<user_id>-<topic_id>-<email_id>``. The topic id
comes from the first strategy that finds one:
    a. ancestor-or-self ``data-topic-id``
    b. nearest preceding topic-name element holding a /t/ link
    c. nearest preceding /t/ anchor anywhere in the document
"""
import bisect
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup, Tag

from digest_postprocessing.config.constants import PARAM_EMAIL_ID, TOPIC_ID_ATTRIBUTE
from digest_postprocessing.links.url_utils import (
    absolute_url,
    append_query_params,
    base64url_encode,
    contains_any,
    extract_topic_id,
    is_http_url,
    is_special_href,
    missing_params,
    url_host,
)
from digest_postprocessing.models.digest_config import DigestConfig
from digest_postprocessing.models.tracking import TrackingContext
from digest_postprocessing.processing.html_document import (
    DocumentOrder,
    anchors_with_href,
    has_never_touch_link,
    select_all,
    select_excerpt_nodes,
)

logger = logging.getLogger(__name__)


# ======================================================================
# Topic context
# ======================================================================

@dataclass
class _PositionedIds:
    """Topic ids keyed by document position, for nearest-preceding lookups."""

    positions: List[int] = field(default_factory=list)
    topic_ids: List[str] = field(default_factory=list)

    def add(self, position: int, topic_id: str) -> None:
        self.positions.append(position)
        self.topic_ids.append(topic_id)

    def nearest_before(self, position: int) -> Optional[str]:
        idx = bisect.bisect_left(self.positions, position)
        return self.topic_ids[idx - 1] if idx > 0 else None


class TopicContextIndex:
    """
    Snapshot of topic-bearing elements, built BEFORE any href is rewritten
    so redirected anchors cannot hide their own topic context.
    """

    def __init__(self, doc: BeautifulSoup, config: DigestConfig):
        self.order = DocumentOrder(doc)
        self.origin_domain = config.origin_domain
        self.headings = _PositionedIds()
        self.anchors = _PositionedIds()

        for el in self.order.sort(select_all(doc, config.topic_name_selectors)):
            topic_id = self._first_link_topic_id(el)
            if topic_id:
                self.headings.add(self.order.position(el), topic_id)

        for a in anchors_with_href(doc):
            topic_id = extract_topic_id(str(a["href"]), self.origin_domain)
            if topic_id:
                self.anchors.add(self.order.position(a), topic_id)

    def _first_link_topic_id(self, element: Tag) -> Optional[str]:
        anchors = anchors_with_href(element)
        if element.name == "a" and element.get("href") is not None:
            anchors.insert(0, element)
        for a in anchors:
            topic_id = extract_topic_id(str(a["href"]), self.origin_domain)
            if topic_id:
                return topic_id
        return None

    # --- strategies -------------------------------------------------

    def from_ancestor_attribute(self, anchor: Tag) -> Optional[str]:
        for el in [anchor, *anchor.parents]:
            value = str(el.get(TOPIC_ID_ATTRIBUTE, "")).strip() if isinstance(el, Tag) else ""
            if value.isdigit():
                return value
        return None

    def from_preceding_heading(self, anchor: Tag) -> Optional[str]:
        return self.headings.nearest_before(self.order.position(anchor))

    def from_preceding_anchor(self, anchor: Tag) -> Optional[str]:
        return self.anchors.nearest_before(self.order.position(anchor))

    def topic_id_for(self, anchor: Tag) -> Optional[str]:
        strategies: Tuple[Callable[[Tag], Optional[str]], ...] = (
            self.from_ancestor_attribute,
            self.from_preceding_heading,
            self.from_preceding_anchor,
        )
        for strategy in strategies:
            topic_id = strategy(anchor)
            if topic_id:
                return topic_id
        return None


# ======================================================================
# URL building
# ======================================================================

def normalize_affiliate_path(path: str, query: str) -> Tuple[str, str]:
    """
    Move a query string erroneously glued to the path (``/p/&tag=x``) into
    the query component.
    """
    idx = path.find("/&")
    if idx < 0:
        return path, query
    moved = path[idx + 2:]
    fixed_path = path[: idx + 1]
    if not moved:
        return fixed_path, query
    return fixed_path, (f"{query}&{moved}" if query else moved)


def build_tracked_url(url: str, tracking: TrackingContext, config: DigestConfig) -> str:
    """Absolute destination with affiliate fix-up and attribution params."""
    parts = urlsplit(url)
    path, query = normalize_affiliate_path(parts.path, parts.query)

    if tracking.has_email_id:
        pairs = [(PARAM_EMAIL_ID, str(tracking.email_id))]
        pairs.extend((name, tracking.value()) for name in config.tracking_param_names)
        query = append_query_params(query, missing_params(query, pairs))

    return urlunsplit(parts._replace(path=path, query=query))


def make_redirector_href(url: str, config: DigestConfig) -> str:
    return f"{config.redirector_path}?{config.redirector_param}={base64url_encode(url)}"


def is_redirector_url(url: str, config: DigestConfig) -> bool:
    try:
        path = urlsplit(url).path
    except ValueError:
        return False
    return url_host(url) == config.origin_domain.lower() and path == config.redirector_path


def redirect_target_for(href: Optional[str], config: DigestConfig) -> Optional[str]:
    """Absolute http(s) URL to redirect, or None if the href must stay."""
    h = (href or "").strip()
    if not h or is_special_href(h):
        return None
    if contains_any(h, config.never_touch_substrings):
        return None
    abs_url = absolute_url(h, config.origin_domain)
    if not abs_url or not is_http_url(abs_url):
        return None
    if is_redirector_url(abs_url, config):
        return None
    return abs_url


# ======================================================================
# Stage
# ======================================================================

def redirect_excerpt_links(
    doc: BeautifulSoup,
    tracking: TrackingContext,
    config: DigestConfig,
) -> int:
    """
    Rewrite every eligible link inside excerpt nodes to the redirector.

    Excerpts holding a never-touch link are left alone entirely.

    Returns:
        Number of hrefs rewritten.
    """
    index = TopicContextIndex(doc, config)
    excerpts = select_excerpt_nodes(doc, config.excerpt_selectors, index.order)
    changed = 0

    for node in excerpts:
        if has_never_touch_link(node, config.never_touch_substrings):
            logger.debug("Excerpt holds a protected link — not redirecting")
            continue

        for a in anchors_with_href(node):
            try:
                target = redirect_target_for(str(a["href"]), config)
                if target is None:
                    continue
                context = tracking.with_topic(index.topic_id_for(a))
                a["href"] = make_redirector_href(build_tracked_url(target, context, config), config)
                changed += 1
            except Exception as e:  # noqa: BLE001
                logger.debug("Redirect skipped for %r: %s", a.get("href"), e)

    return changed
