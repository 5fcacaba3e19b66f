"""
Excerpt Trimmer (HTML) — forward, markup-preserving truncation.

Trimming edits text nodes in place and removes whole nodes after the cut,
so tags are never split and the tree re-serializes well-formed.

    Phase A  cut at the first <br> / end of <p>/<li> that comes before the
             budget and is followed by more content.
    Phase B  if still over budget, keep whole text nodes while they fit and
             truncate the first one that does not at a word boundary + "…".

After a cut, either every following node is removed up to the excerpt root,
or (keep_trailing_media_on_cut) only following text nodes.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PageElement

from digest_postprocessing.config.constants import (
    BLOCK_BREAK_TAGS,
    BREAK_TAGS,
    ELLIPSIS,
    INLINE_TAGS,
    MEDIA_TAGS,
    SENTENCE_END_CHARS,
)
from digest_postprocessing.links.url_utils import normalize_spaces
from digest_postprocessing.models.digest_config import DigestConfig
from digest_postprocessing.processing.html_document import (
    has_never_touch_link,
    select_excerpt_nodes,
    text_nodes,
)
from digest_postprocessing.trimming.topic_counter import indicates_multiple

logger = logging.getLogger(__name__)


# ======================================================================
# Plain-string helpers (shared with the text trimmer)
# ======================================================================

def close_with_ellipsis(text: str) -> str:
    t = text.rstrip()
    return t if t.endswith(ELLIPSIS) else t + ELLIPSIS


def ends_mid_sentence(text: str) -> bool:
    t = text.rstrip()
    return bool(t) and t[-1] not in SENTENCE_END_CHARS


def cut_length(text: str, max_chars: int) -> int:
    """
    Length of the prefix of normalized *text* kept so that prefix + "…"
    fits in *max_chars*. The cut lands on the last space before the limit
    (hard cut when the prefix holds no space).
    """
    limit = max(max_chars - 1, 0)
    cut = text[:limit]
    at_word_end = len(text) > limit and text[limit] == " "
    if not at_word_end:
        idx = cut.rfind(" ")
        if idx != -1:
            cut = cut[:idx]
    return len(cut.rstrip())


def smart_trim_plain(text: str, max_chars: int) -> str:
    """Normalize *text* and, if too long, cut at a word boundary + "…"."""
    t = normalize_spaces(text)
    if len(t) <= max_chars:
        return t
    return close_with_ellipsis(t[: cut_length(t, max_chars)])


# ======================================================================
# Node removal
# ======================================================================

def remove_everything_after(container: Tag, point: PageElement) -> None:
    """
    Remove all nodes after *point* up to *container*: walk upward and, at
    each level, drop the current node's later siblings.
    """
    cur: Optional[PageElement] = point
    while cur is not None and cur is not container:
        parent = cur.parent
        if parent is None:
            break
        sib = cur.next_sibling
        while sib is not None:
            nxt = sib.next_sibling
            sib.extract()
            sib = nxt
        cur = parent


def _remove_text_nodes(nodes: Sequence[NavigableString]) -> None:
    for tn in nodes:
        tn.extract()


def _is_inside(node: PageElement, ancestor: Tag) -> bool:
    return any(parent is ancestor for parent in node.parents)


@dataclass
class _TextSpan:
    index: int      # position in the text-node list
    start: int      # offset in the joined text
    text: str       # normalized node text

    @property
    def end(self) -> int:
        return self.start + len(self.text)


def _separated(prev: NavigableString, cur: NavigableString) -> bool:
    """True when a non-inline element opens or closes between two text nodes."""
    for parent in prev.parents:
        if _is_inside(cur, parent):
            break
        if parent.name not in INLINE_TAGS:
            return True
    for el in prev.next_elements:
        if el is cur:
            break
        if isinstance(el, Tag) and el.name not in INLINE_TAGS:
            return True
    return False


def _text_spans(nodes: Sequence[NavigableString]) -> Tuple[str, List[_TextSpan]]:
    """
    Normalized text of *nodes* and where each node sits in it.

    Two nodes are joined by a space only when the raw text has whitespace at
    the seam or block-level markup separates them; "dd<b>ee</b>ff" stays one
    word.
    """
    parts: List[str] = []
    spans: List[_TextSpan] = []
    pos = 0
    gap = False
    prev: Optional[NavigableString] = None

    for i, tn in enumerate(nodes):
        raw = str(tn)
        norm = normalize_spaces(raw)
        if not norm:
            gap = gap or bool(raw)
            continue
        if prev is not None and (gap or raw[0].isspace() or _separated(prev, tn)):
            parts.append(" ")
            pos += 1
        spans.append(_TextSpan(index=i, start=pos, text=norm))
        parts.append(norm)
        pos += len(norm)
        gap = raw[-1].isspace()
        prev = tn

    return "".join(parts), spans


def _joined_text(nodes: Sequence[NavigableString]) -> str:
    return _text_spans(nodes)[0]


def excerpt_text(node: Tag) -> str:
    """Normalized visible text of an excerpt."""
    return _joined_text(text_nodes(node))


# ======================================================================
# Phase A: visual break
# ======================================================================

@dataclass
class _BreakPoint:
    element: Tag
    kept: int                   # text nodes kept (prefix of the node list)
    remove_element: bool        # <br> itself goes; a <p>/<li> stays


def _break_points(container: Tag, nodes: Sequence[NavigableString]) -> List[_BreakPoint]:
    """<br> elements and <p>/<li> ends, in document order."""
    index = {id(tn): i for i, tn in enumerate(nodes)}
    points: List[_BreakPoint] = []
    open_blocks: List[Tag] = []
    kept = 0

    for d in container.descendants:
        while open_blocks and not _is_inside(d, open_blocks[-1]):
            points.append(_BreakPoint(open_blocks.pop(), kept, remove_element=False))
        if id(d) in index:
            kept = index[id(d)] + 1
        elif isinstance(d, Tag):
            if d.name in BREAK_TAGS:
                points.append(_BreakPoint(d, kept, remove_element=True))
            elif d.name in BLOCK_BREAK_TAGS:
                open_blocks.append(d)

    while open_blocks:
        points.append(_BreakPoint(open_blocks.pop(), kept, remove_element=False))
    return points


def _media_follows(container: Tag, point: Tag) -> bool:
    elements = container.find_all(True)
    positions = {id(el): i for i, el in enumerate(elements)}
    end = max([positions[id(point)]] + [positions[id(el)] for el in point.find_all(True)])
    return any(positions[id(m)] > end for m in container.find_all(MEDIA_TAGS))


def _find_visual_break(
    container: Tag,
    nodes: Sequence[NavigableString],
    max_chars: int,
    keep_media: bool,
) -> Optional[_BreakPoint]:
    for point in _break_points(container, nodes):
        before = _joined_text(nodes[: point.kept])
        if not before:
            continue
        if len(before) >= max_chars:
            break
        text_follows = bool(_joined_text(nodes[point.kept:]))
        if text_follows or (not keep_media and _media_follows(container, point.element)):
            return point
    return None


def _close_last_kept(nodes: Sequence[NavigableString]) -> None:
    """Append "…" to the last non-blank kept node when it ends mid-sentence."""
    for tn in reversed(nodes):
        raw = str(tn)
        if not raw.strip():
            continue
        if ends_mid_sentence(raw):
            tn.replace_with(NavigableString(close_with_ellipsis(raw)))
        return


def _cut_at_break(container: Tag, nodes: List[NavigableString], point: _BreakPoint, keep_media: bool) -> None:
    kept, trailing = nodes[: point.kept], nodes[point.kept:]
    if keep_media:
        _remove_text_nodes(trailing)
    else:
        remove_everything_after(container, point.element)
        if point.remove_element:
            point.element.extract()
    _close_last_kept(kept)


# ======================================================================
# Phase B: budget cut
# ======================================================================

def _cut_at_budget(container: Tag, nodes: List[NavigableString], max_chars: int, keep_media: bool) -> bool:
    joined, spans = _text_spans(nodes)
    if len(joined) <= max_chars:
        return False

    target = cut_length(joined, max_chars)
    for span in spans:
        if target > span.end:
            continue
        tn = nodes[span.index]
        kept = span.text[: max(target - span.start, 0)]
        lead = " " if (span is not spans[0] and str(tn)[:1].isspace()) else ""
        replacement = NavigableString(lead + close_with_ellipsis(kept))
        tn.replace_with(replacement)
        if keep_media:
            _remove_text_nodes(nodes[span.index + 1:])
        else:
            remove_everything_after(container, replacement)
        return True
    return False


# ======================================================================
# Public API
# ======================================================================

def trim_html_node_in_place(node: Tag, max_chars: int, keep_media: bool = False) -> bool:
    """
    Forward-trim one excerpt node to *max_chars* of normalized text.

    Returns:
        True if the node was modified.
    """
    nodes = text_nodes(node)
    if not nodes or max_chars <= 0:
        return False
    if len(_joined_text(nodes)) <= max_chars:
        return False

    changed = False
    point = _find_visual_break(node, nodes, max_chars, keep_media)
    if point is not None:
        _cut_at_break(node, nodes, point, keep_media)
        changed = True
        nodes = text_nodes(node)
        if len(_joined_text(nodes)) <= max_chars:
            return True

    return _cut_at_budget(node, nodes, max_chars, keep_media) or changed


def trim_excerpts(
    doc: BeautifulSoup,
    topic_count: Optional[int],
    config: DigestConfig,
) -> int:
    """
    Trim every unprotected excerpt node when the digest has several topics
    (or an unknown count).

    Returns:
        Number of excerpt nodes modified.
    """
    if not indicates_multiple(topic_count):
        logger.debug("Single-topic digest — excerpts left intact")
        return 0

    trimmed = 0
    for node in select_excerpt_nodes(doc, config.excerpt_selectors):
        if has_never_touch_link(node, config.never_touch_substrings):
            continue
        try:
            if trim_html_node_in_place(node, config.html_max_chars, config.keep_trailing_media_on_cut):
                trimmed += 1
        except Exception as e:  # noqa: BLE001
            logger.warning("Excerpt trim failed, node left as is: %s", e)
    return trimmed
