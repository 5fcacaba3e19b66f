"""
Unit tests for DigestConfig — defaults, unreadable options, environment.
"""
import pytest
from pydantic import ValidationError

from digest_postprocessing.config.constants import DEFAULT_NEVER_TOUCH_SUBSTRINGS
from digest_postprocessing.models.digest_config import DigestConfig


class TestDefaults:
    def test_default_values(self):
        config = DigestConfig()
        assert config.html_max_chars == 0
        assert config.text_max_chars == 0
        assert config.tracking_param_names == ("subid",)
        assert config.redirector_path == "/content"
        assert config.redirector_param == "u"
        assert config.never_touch_substrings == tuple(DEFAULT_NEVER_TOUCH_SUBSTRINGS)

    def test_absent_stages_are_disabled(self):
        config = DigestConfig.from_mapping({"origin_domain": "forum.example.com"})
        assert not config.link_annotation_enabled
        assert not config.redirector_active
        assert not config.html_trim_active
        assert not config.text_trim_active
        assert not config.domain_swap_active

    def test_enabled_stages(self):
        config = DigestConfig.from_mapping({
            "origin_domain": "forum.example.com",
            "content_redirector_enabled": True,
            "trim_html_enabled": True,
            "html_max_chars": 300,
        })
        assert config.redirector_active
        assert config.html_trim_active
        assert not config.text_trim_active

    def test_redirector_needs_origin(self):
        assert not DigestConfig.from_mapping({"content_redirector_enabled": True}).redirector_active

    def test_frozen(self):
        config = DigestConfig()
        with pytest.raises(ValidationError):
            config.html_max_chars = 10

    def test_unknown_keys_ignored(self):
        config = DigestConfig.from_mapping({"foo": "bar", "html_max_chars": 120})
        assert config.html_max_chars == 120

    def test_sequences_become_tuples(self):
        config = DigestConfig.from_mapping({"target_domains": ("a.net", "b.net")})
        assert config.target_domains == ("a.net", "b.net")


class TestUnreadableOptions:
    """An option that fails validation disables its feature; nothing raises."""

    def test_budget_not_an_int(self):
        config = DigestConfig.from_mapping({"html_max_chars": "abc"})
        assert config.html_max_chars == 0
        assert not config.html_trim_active

    def test_negative_budget(self):
        config = DigestConfig.from_mapping({"text_max_chars": -5})
        assert not config.text_trim_active

    def test_switch_not_a_bool(self):
        config = DigestConfig.from_mapping({"trim_text_enabled": "yes"})
        assert config.trim_text_enabled is False

    def test_bad_target_domain(self):
        config = DigestConfig.from_mapping({
            "origin_domain": "forum.example.com",
            "target_domains": ["bad domain!"],
            "html_links_enabled": True,
        })
        assert config.target_domains == ()
        assert not config.domain_swap_active

    def test_bad_redirector_path(self):
        config = DigestConfig.from_mapping({"origin_domain": "forum.example.com", "redirector_path": "content"})
        assert config.redirector_path == ""
        assert not config.redirector_active

    def test_never_touch_falls_back_to_defaults(self):
        config = DigestConfig.from_mapping({"never_touch_substrings": "nope"})
        assert config.never_touch_substrings == tuple(DEFAULT_NEVER_TOUCH_SUBSTRINGS)

    def test_unknown_parser(self):
        config = DigestConfig.from_mapping({"html_parser": "made-up"})
        assert config.html_parser == "html.parser"

    def test_not_a_mapping(self):
        config = DigestConfig.model_validate(["not", "a", "mapping"])
        assert config == DigestConfig()

    def test_other_options_unaffected(self):
        config = DigestConfig.from_mapping({"html_max_chars": "abc", "text_max_chars": 80})
        assert config.text_max_chars == 80


class TestFromEnv:
    def test_reads_digest_variables(self, monkeypatch):
        monkeypatch.setenv("DIGEST_ORIGIN_DOMAIN", "forum.example.com")
        monkeypatch.setenv("DIGEST_TARGET_DOMAINS", "a.example.net, b.example.net")
        monkeypatch.setenv("DIGEST_HTML_MAX_CHARS", "120")
        monkeypatch.setenv("DIGEST_SWAP_HEADERS", "true")
        monkeypatch.setenv("DIGEST_TRACKING_PARAMS", "subid,ref")

        config = DigestConfig.from_env()

        assert config.origin_domain == "forum.example.com"
        assert config.target_domains == ("a.example.net", "b.example.net")
        assert config.html_max_chars == 120
        assert config.headers_enabled is True
        assert config.tracking_param_names == ("subid", "ref")
        assert config.domain_swap_active

    def test_unreadable_variable_disables_feature(self, monkeypatch):
        monkeypatch.setenv("DIGEST_TRIM_TEXT_ENABLED", "maybe")
        monkeypatch.setenv("DIGEST_TEXT_MAX_CHARS", "lots")

        config = DigestConfig.from_env()

        assert config.trim_text_enabled is False
        assert config.text_max_chars == 0

    def test_unset_variables_disable_stages(self, monkeypatch):
        monkeypatch.delenv("DIGEST_HTML_MAX_CHARS", raising=False)
        monkeypatch.delenv("DIGEST_TRIM_HTML_ENABLED", raising=False)
        config = DigestConfig.from_env()
        assert config.html_max_chars == 0
        assert not config.html_trim_active
