"""
Environment settings loaded from .env file.

Raw values are collected as-is; DigestConfig validates them, so a malformed
variable disables its feature instead of raising at import time.
"""
import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str) -> Optional[Any]:
    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return raw  # left for schema validation to reject


def _env_int(name: str) -> Optional[Any]:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return raw


def _env_list(name: str) -> Optional[List[str]]:
    raw = os.getenv(name)
    if raw is None:
        return None
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    return raw.strip() if raw is not None else None


# --- Logging ---
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# --- Runner I/O ---
DIGEST_IO_DIR: str = os.getenv("DIGEST_IO_DIR", "digest_io")


def digest_settings_from_env() -> Dict[str, Any]:
    """
    Collect the DIGEST_* environment variables into a raw option mapping.

    Unset variables are omitted so DigestConfig defaults apply.
    """
    raw: Dict[str, Any] = {
        # --- Origin / swap targets ---
        "origin_domain": _env_str("DIGEST_ORIGIN_DOMAIN"),
        "target_domains": _env_list("DIGEST_TARGET_DOMAINS"),
        # --- Stage switches ---
        "link_annotation_enabled": _env_bool("DIGEST_LINK_ANNOTATION_ENABLED"),
        "content_redirector_enabled": _env_bool("DIGEST_CONTENT_REDIRECTOR_ENABLED"),
        "trim_html_enabled": _env_bool("DIGEST_TRIM_HTML_ENABLED"),
        "trim_text_enabled": _env_bool("DIGEST_TRIM_TEXT_ENABLED"),
        # --- Domain swap areas ---
        "html_links_enabled": _env_bool("DIGEST_SWAP_HTML_LINKS"),
        "text_links_enabled": _env_bool("DIGEST_SWAP_TEXT_LINKS"),
        "resource_attributes_enabled": _env_bool("DIGEST_SWAP_RESOURCE_ATTRIBUTES"),
        "headers_enabled": _env_bool("DIGEST_SWAP_HEADERS"),
        "message_id_enabled": _env_bool("DIGEST_SWAP_MESSAGE_ID"),
        # --- Trimming ---
        "html_max_chars": _env_int("DIGEST_HTML_MAX_CHARS"),
        "text_max_chars": _env_int("DIGEST_TEXT_MAX_CHARS"),
        "keep_trailing_media_on_cut": _env_bool("DIGEST_KEEP_TRAILING_MEDIA"),
        # --- Redirector ---
        "tracking_param_names": _env_list("DIGEST_TRACKING_PARAMS"),
        "redirector_path": _env_str("DIGEST_REDIRECTOR_PATH"),
        "redirector_param": _env_str("DIGEST_REDIRECTOR_PARAM"),
        # --- Parsing ---
        "html_parser": _env_str("DIGEST_HTML_PARSER"),
    }
    return {key: value for key, value in raw.items() if value is not None}
