"""
JSON Schema for the digest configuration snapshot.

Each property is validated independently (see DigestConfig): a value that
fails its property schema is replaced by the DISABLED_VALUES entry, so an
unreadable option switches its feature off instead of failing the message.
"""

_BOOL: dict = {"type": "boolean"}
_CHARS: dict = {"type": "integer", "minimum": 0}
_STRINGS: dict = {"type": "array", "items": {"type": "string", "minLength": 1}}
_DOMAIN: dict = {
    "type": "string",
    "pattern": r"^$|^[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)*$",
}
_PATH: dict = {"type": "string", "pattern": r"^/[^?#\s]*$"}
_PARAM: dict = {"type": "string", "pattern": r"^[A-Za-z0-9_.-]+$"}

# =============================================================================
# Digest configuration schema
# =============================================================================
DIGEST_CONFIG_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "origin_domain": _DOMAIN,
        "target_domains": {"type": "array", "items": {**_DOMAIN, "minLength": 1}},
        # Stage switches
        "link_annotation_enabled": _BOOL,
        "content_redirector_enabled": _BOOL,
        "trim_html_enabled": _BOOL,
        "trim_text_enabled": _BOOL,
        # Domain swap areas
        "html_links_enabled": _BOOL,
        "text_links_enabled": _BOOL,
        "resource_attributes_enabled": _BOOL,
        "headers_enabled": _BOOL,
        "message_id_enabled": _BOOL,
        # Trimming budgets
        "html_max_chars": _CHARS,
        "text_max_chars": _CHARS,
        # Selectors & substrings
        "excerpt_selectors": _STRINGS,
        "topic_name_selectors": _STRINGS,
        "never_touch_substrings": _STRINGS,
        "popular_markers": _STRINGS,
        # Redirector
        "tracking_param_names": {"type": "array", "items": _PARAM},
        "redirector_path": _PATH,
        "redirector_param": _PARAM,
        "keep_trailing_media_on_cut": _BOOL,
        "html_parser": {"type": "string", "enum": ["html.parser", "lxml", "html5lib"]},
    },
}

# Values used when an option is present but unreadable.
DISABLED_VALUES: dict = {
    "origin_domain": "",
    "target_domains": [],
    "link_annotation_enabled": False,
    "content_redirector_enabled": False,
    "trim_html_enabled": False,
    "trim_text_enabled": False,
    "html_links_enabled": False,
    "text_links_enabled": False,
    "resource_attributes_enabled": False,
    "headers_enabled": False,
    "message_id_enabled": False,
    "html_max_chars": 0,
    "text_max_chars": 0,
    "excerpt_selectors": [],
    "topic_name_selectors": [],
    "popular_markers": [],
    "tracking_param_names": [],
    "keep_trailing_media_on_cut": False,
    # Redirector endpoint and parser have no "off" value; an unreadable
    # endpoint disables the redirector instead (see DigestConfig).
    "redirector_path": "",
    "redirector_param": "",
    "html_parser": "html.parser",
}
