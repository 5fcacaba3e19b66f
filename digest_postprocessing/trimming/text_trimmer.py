"""
Text Trimmer — block-based truncation of the plain-text digest part.

Only topic-body blocks are touched: a block is eligible when it directly
follows a block that looks like a bare topic URL and holds no protected
keyword. Headers, footers and unsubscribe blocks are never trimmed.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from digest_postprocessing.config.constants import TEXT_NEVER_TRIM_KEYWORDS
from digest_postprocessing.links.url_utils import normalize_spaces
from digest_postprocessing.models.digest_config import DigestConfig
from digest_postprocessing.trimming.excerpt_trimmer import (
    close_with_ellipsis,
    ends_mid_sentence,
    smart_trim_plain,
)
from digest_postprocessing.trimming.topic_counter import (
    count_topics_text,
    indicates_multiple,
    looks_like_topic_url,
    split_text_blocks,
)

logger = logging.getLogger(__name__)


def is_protected_block(block: str, never_touch: Sequence[str] = ()) -> bool:
    lowered = block.lower()
    keywords = list(TEXT_NEVER_TRIM_KEYWORDS) + list(never_touch)
    return any(kw.lower() in lowered for kw in keywords if kw)


def is_eligible_block(blocks: Sequence[str], i: int, never_touch: Sequence[str] = ()) -> bool:
    block = blocks[i]
    if not block.strip():
        return False
    if is_protected_block(block, never_touch):
        return False
    return i > 0 and looks_like_topic_url(blocks[i - 1])


def _cut_at_line_break(block: str, max_chars: int) -> Optional[str]:
    """
    Keep whole lines up to the last line break before the budget, if any
    content follows it. Returns None when no such break exists.
    """
    lines = block.strip().split("\n")
    best: Optional[str] = None
    for i in range(1, len(lines)):
        before = "\n".join(lines[:i]).rstrip()
        if not normalize_spaces(before):
            continue
        if len(normalize_spaces(before)) >= max_chars:
            break
        if normalize_spaces("\n".join(lines[i:])):
            best = before
    if best is None:
        return None
    return close_with_ellipsis(best) if ends_mid_sentence(best) else best


def trim_text_block(block: str, max_chars: int) -> str:
    """Trim one block to *max_chars* of normalized text (unchanged if it fits)."""
    if len(normalize_spaces(block)) <= max_chars:
        return block
    cut = _cut_at_line_break(block, max_chars)
    if cut is not None:
        return cut
    return smart_trim_plain(block, max_chars)


def trim_text_body(text: str, config: DigestConfig) -> Tuple[str, int, Optional[int]]:
    """
    Trim eligible blocks of the plain-text body.

    Returns:
        (new_text, blocks_trimmed, text_topic_count). The text is returned
        unchanged (same object) when nothing was trimmed.
    """
    blocks: List[str] = split_text_blocks(text)
    topic_count = count_topics_text(blocks, config.popular_markers)
    if not indicates_multiple(topic_count):
        logger.debug("Single-topic text part — not trimming")
        return text, 0, topic_count

    trimmed_blocks = list(blocks)
    trimmed = 0
    for i, block in enumerate(blocks):
        if not is_eligible_block(blocks, i, config.never_touch_substrings):
            continue
        new_block = trim_text_block(block, config.text_max_chars)
        if new_block != block:
            trimmed_blocks[i] = new_block
            trimmed += 1

    if not trimmed:
        return text, 0, topic_count
    return "\n\n".join(trimmed_blocks), trimmed, topic_count
