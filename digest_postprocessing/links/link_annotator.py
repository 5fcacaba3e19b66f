"""
Link Annotator — appends digest tracking parameters to internal links.

Internal = root-relative or hosted on the origin domain. Parameters are
appended only when their key is absent, so re-processing is idempotent:

    isdigest=1, u=<user id>, dayofweek=<base64url(email)>, email_id=<20 digits>

A regex-only variant covers the case where the HTML parser backend is not
available; it touches nothing but href attributes.
"""
import html
import logging
import re
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup

from digest_postprocessing.config.constants import (
    PARAM_DAY_OF_WEEK,
    PARAM_EMAIL_ID,
    PARAM_IS_DIGEST,
    PARAM_USER,
)
from digest_postprocessing.links.url_utils import (
    append_query_params,
    base64url_encode,
    contains_any,
    is_origin_url,
    is_root_relative,
    is_special_href,
    missing_params,
)
from digest_postprocessing.models.digest_config import DigestConfig
from digest_postprocessing.models.email_message import Recipient

logger = logging.getLogger(__name__)


def digest_link_params(recipient: Recipient, email_id: Optional[str]) -> List[Tuple[str, str]]:
    """Ordered tracking pairs for one recipient / message."""
    pairs: List[Tuple[str, str]] = [
        (PARAM_IS_DIGEST, "1"),
        (PARAM_USER, str(recipient.id)),
    ]
    if recipient.email:
        pairs.append((PARAM_DAY_OF_WEEK, base64url_encode(recipient.email)))
    if email_id:
        pairs.append((PARAM_EMAIL_ID, email_id))
    return pairs


def is_internal_href(href: str, origin_domain: str) -> bool:
    return is_root_relative(href) or is_origin_url(href, origin_domain)


def annotate_href(
    href: Optional[str],
    params: Sequence[Tuple[str, str]],
    origin_domain: str,
    never_touch: Sequence[str],
) -> Optional[str]:
    """
    Annotated href, or None when the href must stay as it is
    (external, special, protected, malformed, or already annotated).
    """
    h = (href or "").strip()
    if not h or is_special_href(h):
        return None
    if not is_internal_href(h, origin_domain):
        return None
    if contains_any(h, never_touch):
        return None

    try:
        parts = urlsplit(h)
    except ValueError as e:
        logger.debug("Skipping malformed href %r: %s", h, e)
        return None

    missing = missing_params(parts.query, params)
    if not missing:
        return None
    return urlunsplit(parts._replace(query=append_query_params(parts.query, missing)))


def annotate_links(
    doc: BeautifulSoup,
    recipient: Recipient,
    email_id: Optional[str],
    config: DigestConfig,
) -> int:
    """
    Annotate every internal ``<a href>`` in *doc* in place.

    Returns:
        Number of hrefs rewritten.
    """
    params = digest_link_params(recipient, email_id)
    changed = 0

    for a in doc.find_all("a", href=True):
        try:
            new_href = annotate_href(
                str(a["href"]), params, config.origin_domain, config.never_touch_substrings
            )
        except Exception as e:  # noqa: BLE001
            logger.debug("Link annotation skipped for %r: %s", a.get("href"), e)
            continue
        if new_href is None:
            continue
        a["href"] = new_href
        changed += 1

    return changed


# ======================================================================
# Regex fallback (no DOM)
# ======================================================================

# Without a DOM any href already carrying one of these is left as is.
_ANNOTATED_MARKERS: Tuple[str, ...] = (f"{PARAM_IS_DIGEST}=", f"{PARAM_EMAIL_ID}=")


def _href_attribute_pattern(origin_domain: str) -> "re.Pattern[str]":
    alternatives = [r"/(?!/)[^\"']*"]
    if origin_domain:
        alternatives.insert(0, rf"https?://{re.escape(origin_domain)}(?:[/?#][^\"']*)?")
    return re.compile(
        r"""(href\s*=\s*)(["'])(""" + "|".join(alternatives) + r""")\2""",
        re.IGNORECASE,
    )


def annotate_links_regex(
    markup: str,
    recipient: Recipient,
    email_id: Optional[str],
    config: DigestConfig,
) -> Tuple[str, int]:
    """
    Annotate internal href attributes directly in the markup.

    Returns:
        (new_markup, number_of_hrefs_rewritten)
    """
    params = digest_link_params(recipient, email_id)
    changed = 0

    def _rewrite(match: "re.Match[str]") -> str:
        nonlocal changed
        prefix, quote_char, raw = match.group(1), match.group(2), match.group(3)
        href = html.unescape(raw)
        if contains_any(href, _ANNOTATED_MARKERS):
            return match.group(0)
        new_href = annotate_href(href, params, config.origin_domain, config.never_touch_substrings)
        if new_href is None:
            return match.group(0)
        changed += 1
        return f"{prefix}{quote_char}{html.escape(new_href, quote=True)}{quote_char}"

    new_markup = _href_attribute_pattern(config.origin_domain).sub(_rewrite, markup)
    return new_markup, changed
