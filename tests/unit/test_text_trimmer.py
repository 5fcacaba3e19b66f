"""
Unit tests for the plain-text trimmer.
"""
from digest_postprocessing.models.digest_config import DigestConfig
from digest_postprocessing.trimming.text_trimmer import (
    is_eligible_block,
    is_protected_block,
    trim_text_block,
    trim_text_body,
)

LONG = " ".join(["word"] * 100)
URL_1 = "https://forum.example.com/t/first-topic/101"
URL_2 = "https://forum.example.com/t/second-topic/202"


class TestEligibility:
    def test_block_after_topic_url(self):
        blocks = ["Header", URL_1, "Body text"]
        assert is_eligible_block(blocks, 2)
        assert not is_eligible_block(blocks, 0)
        assert not is_eligible_block(blocks, 1)

    def test_protected_keywords(self):
        assert is_protected_block("Click here to UNSUBSCRIBE")
        assert is_protected_block("Change your preferences")
        assert is_protected_block("custom footer", never_touch=("custom footer",))
        assert not is_protected_block("Plain body")

    def test_protected_block_never_eligible(self):
        blocks = [URL_1, "To unsubscribe visit the link"]
        assert not is_eligible_block(blocks, 1)

    def test_blank_block_not_eligible(self):
        assert not is_eligible_block([URL_1, "   "], 1)


class TestTrimTextBlock:
    def test_fits(self):
        assert trim_text_block("Short body.", 50) == "Short body."

    def test_last_line_break_before_budget(self):
        block = f"Line one.\nLine two.\n{LONG}"
        assert trim_text_block(block, 50) == "Line one.\nLine two."

    def test_line_break_cut_mid_sentence(self):
        block = f"Line without an end\n{LONG}"
        assert trim_text_block(block, 50) == "Line without an end…"

    def test_no_usable_line_break(self):
        trimmed = trim_text_block(LONG, 50)
        assert len(trimmed) <= 50
        assert trimmed.endswith("…")
        assert "\n" not in trimmed


class TestTrimTextBody:
    def test_trims_topic_bodies_only(self, config, multi_topic_text):
        new_text, trimmed, topic_count = trim_text_body(multi_topic_text, config)

        assert topic_count == 2
        assert trimmed == 1
        blocks = new_text.split("\n\n")
        assert len(blocks[2]) <= config.text_max_chars
        assert blocks[2].endswith("…")
        assert blocks[4] == "Short body."
        assert blocks[-1] == "To unsubscribe visit https://forum.example.com/email/unsubscribe/abc123"

    def test_single_topic_untouched(self, config):
        text = "\n\n".join(["Header", URL_1, LONG * 4])
        new_text, trimmed, topic_count = trim_text_body(text, config)
        assert topic_count == 1
        assert trimmed == 0
        assert new_text is text

    def test_counts_url_blocks_without_ids(self):
        config = DigestConfig.from_mapping({"text_max_chars": 50})
        text = "\n\n".join(["Header", "/t/slug-only", LONG])
        # One url block without an id still counts as one topic.
        assert trim_text_body(text, config)[1] == 0

        text = "\n\n".join([URL_1, LONG, URL_2, LONG])
        new_text, trimmed, _ = trim_text_body(text, config)
        assert trimmed == 2

    def test_id_before_slug_urls(self, config):
        text = "\n\n".join([
            "Forum digest for you",
            "https://forum.example.com/t/123-some-slug",
            LONG * 4,
            "https://forum.example.com/t/456-other-slug",
            "Short body.",
        ])
        new_text, trimmed, topic_count = trim_text_body(text, config)

        assert topic_count == 2
        assert trimmed == 1
        blocks = new_text.split("\n\n")
        assert len(blocks[2]) <= config.text_max_chars
        assert blocks[2].endswith("…")
        assert blocks[4] == "Short body."

    def test_topics_only_in_popular_section(self, config):
        text = "\n\n".join([
            "Popular Posts",
            "https://forum.example.com/t/popular-topic/303",
            LONG * 4,
        ])
        new_text, trimmed, topic_count = trim_text_body(text, config)

        assert topic_count == 0
        assert trimmed == 0
        assert new_text is text

    def test_nothing_to_trim_returns_same_object(self, config):
        text = "\n\n".join([URL_1, "Short.", URL_2, "Also short."])
        new_text, trimmed, _ = trim_text_body(text, config)
        assert trimmed == 0
        assert new_text is text
