"""
URL Utilities — resolution, host matching, topic-path parsing and tokens.

All helpers are pure and never raise on malformed input: they return None /
False / the input unchanged so a single bad link cannot abort a loop.
"""
import base64
import binascii
import re
import secrets
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import parse_qsl, quote, urlsplit

from digest_postprocessing.config.constants import (
    EMAIL_ID_DIGITS,
    SPECIAL_HREF_PREFIXES,
    TOPIC_PATH_REGEX,
)

_WHITESPACE = re.compile(r"\s+")


# ======================================================================
# Text
# ======================================================================

def normalize_spaces(text: Optional[str]) -> str:
    """Collapse ALL whitespace (newlines included) into single spaces."""
    return _WHITESPACE.sub(" ", text or "").strip()


def contains_any(haystack: Optional[str], needles: Iterable[str]) -> bool:
    h = haystack or ""
    return any(n in h for n in needles if n)


# ======================================================================
# Tokens & identifiers
# ======================================================================

def base64url_encode(value: str) -> str:
    """Unpadded URL-safe base64 of the UTF-8 bytes."""
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii").rstrip("=")


def base64url_decode(token: str) -> Optional[str]:
    """Inverse of base64url_encode. Returns None for an invalid token."""
    padded = token + "=" * (-len(token) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None


def generate_email_id() -> str:
    """Fresh 20-digit zero-padded decimal identifier."""
    return str(secrets.randbelow(10 ** EMAIL_ID_DIGITS)).rjust(EMAIL_ID_DIGITS, "0")


# ======================================================================
# Hrefs
# ======================================================================

def base_url(origin_domain: str) -> str:
    return f"https://{origin_domain}" if origin_domain else ""


def is_special_href(href: str) -> bool:
    """mailto:/tel:/sms: and in-page fragment links."""
    return href.lower().startswith(SPECIAL_HREF_PREFIXES)


def is_root_relative(href: str) -> bool:
    return href.startswith("/") and not href.startswith("//")


def absolute_url(href: Optional[str], origin_domain: str) -> Optional[str]:
    """Resolve root-relative and protocol-relative hrefs against the origin."""
    h = (href or "").strip()
    if not h:
        return None
    if h.startswith("//"):
        return "https:" + h
    if h.startswith("/"):
        if not origin_domain:
            return None
        return base_url(origin_domain) + h
    return h


def url_host(url: str) -> Optional[str]:
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def is_http_url(url: Optional[str]) -> bool:
    if not url:
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(parts.netloc)


def is_origin_url(url: str, origin_domain: str) -> bool:
    """Absolute http(s) URL whose host is exactly the origin."""
    if not origin_domain or not is_http_url(url):
        return False
    return url_host(url) == origin_domain.lower()


def host_matches(host: Optional[str], domain: str) -> bool:
    """Host equals the domain or is a subdomain of it (dot boundary)."""
    if not host or not domain:
        return False
    h = host.lower().rstrip(".")
    d = domain.lower()
    return h == d or h.endswith("." + d)


# ======================================================================
# Topic paths
# ======================================================================

def extract_topic_id(href: Optional[str], origin_domain: str = "") -> Optional[str]:
    """
    Numeric topic id from a ``/t/<optional-slug>/<digits>`` href.

    Only paths on the origin (root-relative, origin-hosted or host-less)
    count; a /t/ path on a foreign host is not one of our topics.
    """
    h = (href or "").strip()
    if "/t/" not in h.lower():
        return None

    if is_http_url(h) or h.startswith("//"):
        host = url_host(h if not h.startswith("//") else "https:" + h)
        if origin_domain and host != origin_domain.lower():
            return None
        try:
            path = urlsplit(h).path
        except ValueError:
            return None
    else:
        path = h

    match = TOPIC_PATH_REGEX.search(path)
    return match.group(1) if match else None


# ======================================================================
# Query strings
# ======================================================================

def query_keys(query: str) -> List[str]:
    return [k for k, _ in parse_qsl(query, keep_blank_values=True)]


def append_query_params(query: str, pairs: Sequence[Tuple[str, str]]) -> str:
    """
    Append encoded pairs to *query* without re-encoding existing pairs.
    """
    encoded = "&".join(f"{quote(k, safe='')}={quote(v, safe='')}" for k, v in pairs)
    if not encoded:
        return query
    if not query:
        return encoded
    return query.rstrip("&") + "&" + encoded


def missing_params(query: str, pairs: Sequence[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """Pairs whose key is not yet present in *query* (first wins within *pairs*)."""
    present = set(query_keys(query))
    result: List[Tuple[str, str]] = []
    for key, value in pairs:
        if key in present:
            continue
        present.add(key)
        result.append((key, value))
    return result
