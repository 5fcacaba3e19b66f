"""
HTML Document helpers — parse, select excerpts, document order, text nodes.

The document is parsed into an owned BeautifulSoup tree once per message,
mutated through Tag / NavigableString handles, and serialized back.
"""
import logging
from typing import Dict, Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString
from soupsieve import SelectorSyntaxError

from digest_postprocessing.config.constants import NON_CONTENT_TAGS
from digest_postprocessing.links.url_utils import contains_any

logger = logging.getLogger(__name__)


def parse_html(markup: str, parser: str = "html.parser") -> BeautifulSoup:
    """
    Parse the HTML body.

    Raises:
        bs4.FeatureNotFound: If the requested parser backend is not installed.
    """
    return BeautifulSoup(markup, parser)


def serialize_html(doc: BeautifulSoup) -> str:
    return str(doc)


# ======================================================================
# Document order
# ======================================================================

class DocumentOrder:
    """
    Position of every element in document (start-tag) order.

    Built before a mutation stage and used only while the tree structure is
    unchanged.
    """

    def __init__(self, doc: BeautifulSoup):
        self._positions: Dict[int, int] = {
            id(el): i for i, el in enumerate(doc.find_all(True))
        }

    def position(self, element: Tag) -> int:
        return self._positions.get(id(element), -1)

    def sort(self, elements: Iterable[Tag]) -> List[Tag]:
        return sorted(elements, key=self.position)

    def is_before(self, element: Tag, boundary: Optional[Tag]) -> bool:
        """
        True if *element* starts before *boundary* and does not contain it.
        Everything is "before" a missing boundary.
        """
        if boundary is None:
            return True
        if self.position(element) >= self.position(boundary):
            return False
        return not any(parent is element for parent in boundary.parents)


# ======================================================================
# Selection
# ======================================================================

def select_all(doc: BeautifulSoup, selectors: Sequence[str]) -> List[Tag]:
    """Union of all selector matches, deduplicated, in selector order."""
    seen: set = set()
    found: List[Tag] = []
    for selector in selectors:
        try:
            matches = doc.select(selector)
        except SelectorSyntaxError as e:
            logger.warning("Invalid CSS selector '%s': %s", selector, e)
            continue
        for el in matches:
            if id(el) not in seen:
                seen.add(id(el))
                found.append(el)
    return found


def select_excerpt_nodes(
    doc: BeautifulSoup,
    selectors: Sequence[str],
    order: Optional[DocumentOrder] = None,
) -> List[Tag]:
    """
    Excerpt nodes in document order; an excerpt nested inside another
    excerpt collapses into the outer one.
    """
    nodes = select_all(doc, selectors)
    ids = {id(n) for n in nodes}
    outermost = [
        n for n in nodes
        if not any(id(parent) in ids for parent in n.parents)
    ]
    order = order or DocumentOrder(doc)
    return order.sort(outermost)


def anchors_with_href(node: Tag) -> List[Tag]:
    return node.find_all("a", href=True)


def has_never_touch_link(node: Tag, never_touch: Sequence[str]) -> bool:
    """Any anchor inside (or being) *node* carries a never-touch substring."""
    anchors = anchors_with_href(node)
    if node.name == "a" and node.get("href") is not None:
        anchors.append(node)
    return any(contains_any(str(a.get("href", "")), never_touch) for a in anchors)


# ======================================================================
# Text nodes
# ======================================================================

def is_content_text(node) -> bool:
    """Visible text: not a comment/doctype/CDATA, not inside script/style."""
    if not isinstance(node, NavigableString) or isinstance(node, PreformattedString):
        return False
    return not any(parent.name in NON_CONTENT_TAGS for parent in node.parents)


def text_nodes(node: Tag) -> List[NavigableString]:
    return [d for d in node.descendants if is_content_text(d)]
