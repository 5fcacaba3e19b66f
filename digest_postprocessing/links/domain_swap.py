"""
Domain Swap Engine — per-message hostname substitution.

One target domain is picked per message and reused for every area (HTML
links, resource attributes, text URLs, list headers, Message-ID). A host
matches when it equals the origin or ends with "." + origin; exactly that
suffix is replaced, so ``cdn.example.com`` → ``cdn.mirror.net`` while
``notexample.com`` is left alone. Only the host changes: scheme, userinfo,
port, path, query and fragment are kept byte for byte.
"""
import logging
import re
import secrets
from typing import Optional, Sequence, Tuple
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from digest_postprocessing.config.constants import (
    LINK_REL_SWAPPABLE,
    MESSAGE_ID_HEADER,
    RESOURCE_URL_ATTRIBUTES,
    SRCSET_TAGS,
    SWAPPABLE_HEADERS,
)
from digest_postprocessing.links.url_utils import contains_any, host_matches
from digest_postprocessing.models.digest_config import DigestConfig
from digest_postprocessing.models.email_message import EmailMessage

logger = logging.getLogger(__name__)

TEXT_URL_REGEX = re.compile(r"\bhttps?://[^\s<>\"']+", re.IGNORECASE)
MESSAGE_ID_HOST_REGEX = re.compile(r"@([A-Za-z0-9.-]+)")
SRCSET_CANDIDATE_REGEX = re.compile(r"(^|,)(\s*)([^\s,]+)")
HREF_ATTRIBUTE_REGEX = re.compile(r"""(href\s*=\s*)(["'])(.*?)\2""", re.IGNORECASE | re.DOTALL)


def pick_target_domain(config: DigestConfig) -> Optional[str]:
    """Uniform random target for this message, or None when swapping is off."""
    if not config.domain_swap_active:
        return None
    return secrets.choice(list(config.target_domains))


class DomainSwapper:
    """Host rewriter bound to one (origin, target) pair for one message."""

    def __init__(self, origin_domain: str, target_domain: str):
        self.origin = origin_domain.lower()
        self.target = target_domain

    # ------------------------------------------------------------------
    # Hosts & URLs
    # ------------------------------------------------------------------

    def swap_host(self, host: str) -> Optional[str]:
        if not host_matches(host, self.origin):
            return None
        h = host.rstrip(".")
        return h[: len(h) - len(self.origin)] + self.target

    def _swap_netloc(self, netloc: str) -> Optional[str]:
        userinfo, at, hostport = netloc.rpartition("@")
        if hostport.startswith("["):
            return None  # IPv6 literal
        host, colon, port = hostport.partition(":")
        new_host = self.swap_host(host)
        if new_host is None:
            return None
        return f"{userinfo}{at}{new_host}{colon}{port}"

    def swap_url(self, url: Optional[str]) -> Optional[str]:
        """
        Swapped URL, or None when the URL is not an absolute http(s) /
        protocol-relative URL on the origin (or is malformed).
        """
        u = url or ""
        stripped = u.strip()
        try:
            parts = urlsplit(stripped)
        except ValueError:
            return None
        if not parts.netloc:
            return None
        if parts.scheme.lower() not in ("http", "https") and not (
            not parts.scheme and stripped.startswith("//")
        ):
            return None

        new_netloc = self._swap_netloc(parts.netloc)
        if new_netloc is None:
            return None

        # Replace the netloc in place so nothing else is re-encoded.
        idx = u.find("//") + 2
        return u[:idx] + new_netloc + u[idx + len(parts.netloc):]

    # ------------------------------------------------------------------
    # Text & headers
    # ------------------------------------------------------------------

    def swap_text(self, text: str, never_touch: Sequence[str] = ()) -> Tuple[str, int]:
        count = 0

        def _replace(match: "re.Match[str]") -> str:
            nonlocal count
            url = match.group(0)
            if contains_any(url, never_touch):
                return url
            swapped = self.swap_url(url)
            if swapped is None:
                return url
            count += 1
            return swapped

        return TEXT_URL_REGEX.sub(_replace, text), count

    def swap_message_id(self, value: str) -> Tuple[str, int]:
        match = MESSAGE_ID_HOST_REGEX.search(value)
        if not match:
            return value, 0
        new_host = self.swap_host(match.group(1))
        if new_host is None:
            return value, 0
        return value[: match.start(1)] + new_host + value[match.end(1):], 1

    def swap_srcset(self, srcset: str) -> Tuple[str, int]:
        count = 0

        def _replace(match: "re.Match[str]") -> str:
            nonlocal count
            swapped = self.swap_url(match.group(3))
            if swapped is None:
                return match.group(0)
            count += 1
            return match.group(1) + match.group(2) + swapped

        return SRCSET_CANDIDATE_REGEX.sub(_replace, srcset), count

    # ------------------------------------------------------------------
    # HTML
    # ------------------------------------------------------------------

    def _swap_attribute(self, element, attribute: str, never_touch: Sequence[str]) -> int:
        value = element.get(attribute)
        if not isinstance(value, str) or contains_any(value, never_touch):
            return 0
        swapped = self.swap_url(value)
        if swapped is None:
            return 0
        element[attribute] = swapped
        return 1

    def swap_html_links(self, doc: BeautifulSoup, never_touch: Sequence[str] = ()) -> int:
        return sum(
            self._swap_attribute(el, "href", never_touch)
            for el in doc.find_all(["a", "area"], href=True)
        )

    def swap_resource_attributes(self, doc: BeautifulSoup, never_touch: Sequence[str] = ()) -> int:
        count = 0
        for tag, attributes in RESOURCE_URL_ATTRIBUTES.items():
            for el in doc.find_all(tag):
                for attribute in attributes:
                    count += self._swap_attribute(el, attribute, never_touch)

        for el in doc.find_all("link", href=True):
            rel = el.get("rel") or []
            rels = [r.lower() for r in (rel.split() if isinstance(rel, str) else rel)]
            if any(r in LINK_REL_SWAPPABLE for r in rels):
                count += self._swap_attribute(el, "href", never_touch)

        for el in doc.find_all(SRCSET_TAGS, srcset=True):
            srcset = el.get("srcset")
            if not isinstance(srcset, str) or contains_any(srcset, never_touch):
                continue
            new_srcset, swapped = self.swap_srcset(srcset)
            if swapped:
                el["srcset"] = new_srcset
                count += swapped
        return count

    def swap_href_attributes_regex(self, markup: str, never_touch: Sequence[str] = ()) -> Tuple[str, int]:
        """href swap without a DOM (parser backend unavailable)."""
        count = 0

        def _replace(match: "re.Match[str]") -> str:
            nonlocal count
            href = match.group(3)
            if contains_any(href, never_touch):
                return match.group(0)
            swapped = self.swap_url(href)
            if swapped is None:
                return match.group(0)
            count += 1
            return f"{match.group(1)}{match.group(2)}{swapped}{match.group(2)}"

        return HREF_ATTRIBUTE_REGEX.sub(_replace, markup), count


def swap_headers(message: EmailMessage, swapper: DomainSwapper, config: DigestConfig) -> Tuple[int, int]:
    """
    Swap hosts in the list headers and/or Message-ID.

    Returns:
        (list_header_swaps, message_id_swaps)
    """
    header_swaps = 0
    if config.headers_enabled:
        for name in SWAPPABLE_HEADERS:
            value = message.get_header(name)
            if not value:
                continue
            new_value, swapped = swapper.swap_text(value)
            if swapped:
                message.set_header(name, new_value)
                header_swaps += swapped

    message_id_swaps = 0
    if config.message_id_enabled:
        value = message.get_header(MESSAGE_ID_HEADER)
        if value:
            new_value, message_id_swaps = swapper.swap_message_id(value)
            if message_id_swaps:
                message.set_header(MESSAGE_ID_HEADER, new_value)

    return header_swaps, message_id_swaps
