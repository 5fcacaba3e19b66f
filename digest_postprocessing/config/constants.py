"""
Constants used across the digest post-processing pipeline.
Defaults for DigestConfig plus fixed patterns that are not configurable.
"""
import re
from typing import Dict, List, Tuple

# =============================================================================
# Excerpt & topic-name selectors (digest templates)
# =============================================================================
DEFAULT_EXCERPT_SELECTORS: List[str] = [
    ".digest-post-excerpt",
    ".post-excerpt",
    ".excerpt",
    ".topic-excerpt",
    "div[itemprop='articleBody']",
]

DEFAULT_TOPIC_NAME_SELECTORS: List[str] = [
    ".digest-topic-name",
    ".digest-topic-title",
    ".topic-title",
    ".topic-name",
]

# Attribute carrying the topic id in digest templates
TOPIC_ID_ATTRIBUTE: str = "data-topic-id"

# =============================================================================
# Never-touch protection (unsubscribe / preferences)
# =============================================================================
DEFAULT_NEVER_TOUCH_SUBSTRINGS: List[str] = [
    "/email/unsubscribe",
    "/my/preferences",
]

TEXT_NEVER_TRIM_KEYWORDS: List[str] = [
    "unsubscribe",
    "/email/unsubscribe",
    "preferences",
    "/my/preferences",
]

# =============================================================================
# "Popular Posts" boundary
# =============================================================================
DEFAULT_POPULAR_MARKERS: List[str] = [
    "popular posts",
    "popular topics",
]

POPULAR_MARKER_TAGS: List[str] = [
    "h1", "h2", "h3", "h4", "h5", "h6",
    "strong", "b", "td", "th", "p", "div", "span",
]

# Section headers are short; longer matches are body text or wrappers.
POPULAR_MARKER_MAX_CHARS: int = 60

# =============================================================================
# Topic paths
# =============================================================================
TOPIC_PATH_REGEX = re.compile(r"/t/(?:[^/\s?#]+/)?(\d+)", re.IGNORECASE)
TEXT_TOPIC_ID_REGEX = re.compile(r"/t/(?:[^/\s]+/)?(\d+)", re.IGNORECASE)
TEXT_TOPIC_URL_REGEX = re.compile(r"(?:^|\s)(?:https?://\S+)?/t/[^ \n]+", re.IGNORECASE)

# =============================================================================
# Link annotation
# =============================================================================
SPECIAL_HREF_PREFIXES: Tuple[str, ...] = ("mailto:", "tel:", "sms:", "#")

PARAM_IS_DIGEST: str = "isdigest"
PARAM_USER: str = "u"
PARAM_DAY_OF_WEEK: str = "dayofweek"
PARAM_EMAIL_ID: str = "email_id"

EMAIL_ID_DIGITS: int = 20

# =============================================================================
# Content redirector
# =============================================================================
DEFAULT_REDIRECTOR_PATH: str = "/content"
DEFAULT_REDIRECTOR_PARAM: str = "u"
DEFAULT_TRACKING_PARAM_NAMES: List[str] = ["subid"]

# =============================================================================
# Trimming
# =============================================================================
ELLIPSIS: str = "…"
SENTENCE_END_CHARS: str = ".!?:" + ELLIPSIS

BREAK_TAGS: List[str] = ["br"]
BLOCK_BREAK_TAGS: List[str] = ["p", "li"]
MEDIA_TAGS: List[str] = ["img", "picture", "figure", "video", "audio", "iframe", "svg", "embed", "object"]
NON_CONTENT_TAGS: List[str] = ["script", "style"]

# Text on either side of these tags runs on without a space ("dd<b>ee</b>ff").
INLINE_TAGS: List[str] = [
    "a", "abbr", "b", "bdi", "bdo", "cite", "code", "data", "del", "dfn", "em",
    "font", "i", "ins", "kbd", "mark", "q", "s", "samp", "small", "span",
    "strike", "strong", "sub", "sup", "time", "u", "var",
]

# =============================================================================
# Domain swap
# =============================================================================
# tag -> attributes holding a single URL
RESOURCE_URL_ATTRIBUTES: Dict[str, List[str]] = {
    "img": ["src"],
    "video": ["src", "poster"],
    "audio": ["src"],
    "iframe": ["src"],
    "script": ["src"],
    "source": ["src"],
    "embed": ["src"],
    "form": ["action"],
}

SRCSET_TAGS: List[str] = ["img", "source"]
LINK_REL_SWAPPABLE: List[str] = ["stylesheet", "icon"]

SWAPPABLE_HEADERS: List[str] = [
    "List-Unsubscribe",
    "List-Help",
    "List-Subscribe",
    "List-Owner",
    "List-Archive",
    "List-Post",
]

MESSAGE_ID_HEADER: str = "Message-ID"

# =============================================================================
# HTML parsing
# =============================================================================
DEFAULT_HTML_PARSER: str = "html.parser"
