"""
Topic Counter — unique topics rendered ABOVE the "Popular Posts" section.

HTML: ordered strategies, first present result wins:
    1. Topic-name elements → TopicKey (data-topic-id > /t/ link id > title)
    2. data-topic-id attributes
    3. /t/<slug>/<id> anchors
    4. Excerpt nodes present but no ids → 1 topic

Nothing found → None ("unknown"), which callers treat as more than one topic
so trimming is never silently skipped.

Text: ids from /t/ paths in the blocks above the marker; otherwise the
number of bare topic-URL blocks (≥2 means multiple); none in scope → 0,
so a text part without topics above the marker is never trimmed.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Set, Tuple

from bs4 import BeautifulSoup, Tag

from digest_postprocessing.config.constants import (
    POPULAR_MARKER_MAX_CHARS,
    POPULAR_MARKER_TAGS,
    TEXT_TOPIC_ID_REGEX,
    TEXT_TOPIC_URL_REGEX,
    TOPIC_ID_ATTRIBUTE,
)
from digest_postprocessing.links.url_utils import extract_topic_id, normalize_spaces
from digest_postprocessing.models.digest_config import DigestConfig
from digest_postprocessing.models.tracking import TopicKey
from digest_postprocessing.processing.html_document import (
    DocumentOrder,
    anchors_with_href,
    select_all,
    select_excerpt_nodes,
)

logger = logging.getLogger(__name__)

_BLANK_LINES = re.compile(r"\n(?:[ \t]*\n)+")


def indicates_multiple(topic_count: Optional[int]) -> bool:
    """Unknown counts as multiple (fail-open toward trimming)."""
    return topic_count is None or topic_count > 1


# ======================================================================
# Boundary
# ======================================================================

def marker_matches(text: Optional[str], markers: Sequence[str]) -> bool:
    t = normalize_spaces(text).casefold()
    return bool(t) and any(m.casefold() in t for m in markers)


def find_popular_boundary(doc: BeautifulSoup, markers: Sequence[str]) -> Optional[Tag]:
    """First short heading/emphasis/cell element naming the popular section."""
    if not markers:
        return None
    for el in doc.find_all(POPULAR_MARKER_TAGS):
        text = normalize_spaces(el.get_text(" "))
        if len(text) > POPULAR_MARKER_MAX_CHARS:
            continue
        if marker_matches(text, markers):
            return el
    return None


# ======================================================================
# HTML strategies
# ======================================================================

@dataclass
class _CountScope:
    doc: BeautifulSoup
    order: DocumentOrder
    boundary: Optional[Tag]
    config: DigestConfig

    def before(self, elements: Sequence[Tag]) -> List[Tag]:
        return [el for el in elements if self.order.is_before(el, self.boundary)]


def _attribute_topic_id(element: Tag) -> Optional[str]:
    value = str(element.get(TOPIC_ID_ATTRIBUTE, "")).strip()
    return value if value.isdigit() else None


def topic_key_for(element: Tag, origin_domain: str) -> Optional[TopicKey]:
    """TopicKey for one topic-name element: attribute id, link id, then title."""
    topic_id = _attribute_topic_id(element)
    if topic_id:
        return TopicKey.from_id(topic_id)

    anchors = anchors_with_href(element)
    if element.name == "a" and element.get("href") is not None:
        anchors.insert(0, element)
    for a in anchors:
        topic_id = extract_topic_id(str(a["href"]), origin_domain)
        if topic_id:
            return TopicKey.from_id(topic_id)

    title = normalize_spaces(element.get_text(" ")).casefold()
    return TopicKey.from_title(title) if title else None


def _count_topic_name_elements(scope: _CountScope) -> Optional[int]:
    keys: Set[TopicKey] = set()
    for el in scope.before(select_all(scope.doc, scope.config.topic_name_selectors)):
        key = topic_key_for(el, scope.config.origin_domain)
        if key is not None:
            keys.add(key)
    return len(keys) or None


def _count_topic_id_attributes(scope: _CountScope) -> Optional[int]:
    ids = {
        _attribute_topic_id(el)
        for el in scope.before(scope.doc.find_all(attrs={TOPIC_ID_ATTRIBUTE: True}))
    }
    ids.discard(None)
    return len(ids) or None


def _count_topic_anchors(scope: _CountScope) -> Optional[int]:
    ids = {
        extract_topic_id(str(a["href"]), scope.config.origin_domain)
        for a in scope.before(anchors_with_href(scope.doc))
    }
    ids.discard(None)
    return len(ids) or None


def _excerpt_presence(scope: _CountScope) -> Optional[int]:
    # Several excerpt blocks without any id are still one topic.
    excerpts = scope.before(
        select_excerpt_nodes(scope.doc, scope.config.excerpt_selectors, scope.order)
    )
    return 1 if excerpts else None


HTML_COUNT_STRATEGIES: Tuple[Tuple[str, Callable[[_CountScope], Optional[int]]], ...] = (
    ("topic_name_elements", _count_topic_name_elements),
    ("topic_id_attributes", _count_topic_id_attributes),
    ("topic_anchors", _count_topic_anchors),
    ("excerpt_presence", _excerpt_presence),
)


def count_topics_html(doc: BeautifulSoup, config: DigestConfig) -> Optional[int]:
    """
    Count unique topics before the "Popular Posts" boundary.

    Args:
        doc: Parsed digest HTML (not yet mutated by any stage).
        config: Digest configuration snapshot.

    Returns:
        Topic count ≥1, or None when unknown.
    """
    try:
        order = DocumentOrder(doc)
        boundary = find_popular_boundary(doc, config.popular_markers)
        scope = _CountScope(doc=doc, order=order, boundary=boundary, config=config)

        for name, strategy in HTML_COUNT_STRATEGIES:
            count = strategy(scope)
            if count is not None:
                logger.debug("HTML topic count %d via %s", count, name)
                return count
        return None
    except Exception as e:  # noqa: BLE001
        logger.warning("HTML topic counting failed, assuming multiple topics: %s", e)
        return None


# ======================================================================
# Plain text
# ======================================================================

def split_text_blocks(text: str) -> List[str]:
    """Blank-line-delimited blocks (CRLF/CR normalized to LF)."""
    t = text.replace("\r\n", "\n").replace("\r", "\n")
    return _BLANK_LINES.split(t)


def looks_like_topic_url(block: Optional[str]) -> bool:
    return bool(TEXT_TOPIC_URL_REGEX.search(block or ""))


def count_topics_text(blocks: Sequence[str], markers: Sequence[str]) -> Optional[int]:
    """
    Count unique topics in the text blocks above the popular-section marker.

    Returns:
        Number of unique ids; else the number of topic-URL blocks (0 when
        there are none). None only when counting itself failed.
    """
    try:
        cutoff = next(
            (i for i, b in enumerate(blocks) if markers and marker_matches(b, markers)),
            len(blocks),
        )
        scoped = list(blocks[:cutoff])

        ids = set(TEXT_TOPIC_ID_REGEX.findall("\n\n".join(scoped)))
        if ids:
            return len(ids)

        return sum(1 for b in scoped if looks_like_topic_url(b))
    except Exception as e:  # noqa: BLE001
        logger.warning("Text topic counting failed, assuming multiple topics: %s", e)
        return None
