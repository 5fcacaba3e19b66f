"""
DigestConfig — immutable configuration snapshot passed into every call.

Raw options (from a dict or the environment) are checked one by one against
DIGEST_CONFIG_SCHEMA before pydantic sees them. An option that fails is
replaced by its disabled value and logged. An absent stage switch or budget
is disabled too; absent selectors, markers and redirector settings take the
defaults below. A bad value never makes construction fail.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from jsonschema import ValidationError, validate
from pydantic import BaseModel, ConfigDict, model_validator

from digest_postprocessing.config.constants import (
    DEFAULT_EXCERPT_SELECTORS,
    DEFAULT_HTML_PARSER,
    DEFAULT_NEVER_TOUCH_SUBSTRINGS,
    DEFAULT_POPULAR_MARKERS,
    DEFAULT_REDIRECTOR_PARAM,
    DEFAULT_REDIRECTOR_PATH,
    DEFAULT_TOPIC_NAME_SELECTORS,
    DEFAULT_TRACKING_PARAM_NAMES,
)
from digest_postprocessing.config.schemas import DIGEST_CONFIG_SCHEMA, DISABLED_VALUES

logger = logging.getLogger(__name__)


class DigestConfig(BaseModel):
    """Read-only options for one digest post-processing call."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    origin_domain: str = ""
    target_domains: Tuple[str, ...] = ()

    # Stage switches (off unless configured)
    link_annotation_enabled: bool = False
    content_redirector_enabled: bool = False
    trim_html_enabled: bool = False
    trim_text_enabled: bool = False

    # Domain swap areas
    html_links_enabled: bool = False
    text_links_enabled: bool = False
    resource_attributes_enabled: bool = False
    headers_enabled: bool = False
    message_id_enabled: bool = False

    # Trimming
    html_max_chars: int = 0
    text_max_chars: int = 0
    keep_trailing_media_on_cut: bool = False

    excerpt_selectors: Tuple[str, ...] = tuple(DEFAULT_EXCERPT_SELECTORS)
    topic_name_selectors: Tuple[str, ...] = tuple(DEFAULT_TOPIC_NAME_SELECTORS)
    never_touch_substrings: Tuple[str, ...] = tuple(DEFAULT_NEVER_TOUCH_SUBSTRINGS)
    popular_markers: Tuple[str, ...] = tuple(DEFAULT_POPULAR_MARKERS)

    # Redirector
    tracking_param_names: Tuple[str, ...] = tuple(DEFAULT_TRACKING_PARAM_NAMES)
    redirector_path: str = DEFAULT_REDIRECTOR_PATH
    redirector_param: str = DEFAULT_REDIRECTOR_PARAM

    html_parser: str = DEFAULT_HTML_PARSER

    @model_validator(mode="before")
    @classmethod
    def _disable_unreadable_options(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            logger.warning("Digest config is not a mapping (%s) — using defaults", type(data).__name__)
            return {}

        properties: Dict[str, dict] = DIGEST_CONFIG_SCHEMA["properties"]
        cleaned: Dict[str, Any] = {}
        for key, value in data.items():
            schema = properties.get(key)
            if schema is None:
                continue
            if isinstance(value, tuple):
                value = list(value)
            try:
                validate(value, schema)
            except ValidationError as e:
                fallback = _disabled_value(key)
                logger.warning(
                    "Unreadable digest option %s=%r (%s) — using %r",
                    key, value, e.message, fallback,
                )
                value = fallback
            cleaned[key] = value
        return cleaned

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "DigestConfig":
        return cls.model_validate(dict(raw or {}))

    @classmethod
    def from_env(cls) -> "DigestConfig":
        """Build the snapshot from DIGEST_* environment variables."""
        from digest_postprocessing.config.settings import digest_settings_from_env

        return cls.model_validate(digest_settings_from_env())

    # ------------------------------------------------------------------
    # Derived switches
    # ------------------------------------------------------------------

    @property
    def redirector_active(self) -> bool:
        return bool(
            self.content_redirector_enabled
            and self.origin_domain
            and self.redirector_path
            and self.redirector_param
        )

    @property
    def html_trim_active(self) -> bool:
        return self.trim_html_enabled and self.html_max_chars > 0

    @property
    def text_trim_active(self) -> bool:
        return self.trim_text_enabled and self.text_max_chars > 0

    @property
    def domain_swap_active(self) -> bool:
        return bool(self.origin_domain and self.target_domains) and any(
            (
                self.html_links_enabled,
                self.text_links_enabled,
                self.resource_attributes_enabled,
                self.headers_enabled,
                self.message_id_enabled,
            )
        )


def _disabled_value(key: str) -> Any:
    if key == "never_touch_substrings":
        # Protection must never be switched off by a typo.
        return list(DEFAULT_NEVER_TOUCH_SUBSTRINGS)
    return DISABLED_VALUES[key]
