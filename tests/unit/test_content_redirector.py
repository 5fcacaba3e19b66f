"""
Unit tests for the content redirector.
"""
from urllib.parse import parse_qsl, urlsplit

import pytest

from digest_postprocessing.links.content_redirector import (
    TopicContextIndex,
    build_tracked_url,
    make_redirector_href,
    normalize_affiliate_path,
    redirect_excerpt_links,
    redirect_target_for,
)
from digest_postprocessing.links.url_utils import base64url_decode
from digest_postprocessing.models.tracking import TrackingContext

ORIGIN = "forum.example.com"
EMAIL_ID = "00000000000000000042"


def _decoded(href: str) -> str:
    assert href.startswith("/content?u=")
    return base64url_decode(href[len("/content?u="):])


def _query(url: str) -> dict:
    return dict(parse_qsl(urlsplit(url).query))


@pytest.fixture
def tracking():
    return TrackingContext(user_id=7, email_id=EMAIL_ID)


class TestAffiliatePath:
    def test_moves_glued_query(self):
        assert normalize_affiliate_path("/product/&tag=abc-20", "") == ("/product/", "tag=abc-20")

    def test_merges_with_existing_query(self):
        assert normalize_affiliate_path("/p/&tag=x", "a=1") == ("/p/", "a=1&tag=x")

    def test_untouched_path(self):
        assert normalize_affiliate_path("/p/q", "a=1") == ("/p/q", "a=1")


class TestBuildTrackedUrl:
    def test_adds_email_id_and_tracking(self, config, tracking):
        url = build_tracked_url("https://shop.example.org/p/&tag=x", tracking.with_topic("101"), config)
        assert url == f"https://shop.example.org/p/?tag=x&email_id={EMAIL_ID}&subid=7-101-{EMAIL_ID}"

    def test_unknown_topic_leaves_gap(self, config, tracking):
        url = build_tracked_url("https://shop.example.org/", tracking, config)
        assert _query(url)["subid"] == f"7--{EMAIL_ID}"

    def test_no_email_id_no_params(self, config):
        url = build_tracked_url("https://shop.example.org/p?a=1", TrackingContext(user_id=7, email_id=None), config)
        assert url == "https://shop.example.org/p?a=1"

    def test_existing_param_kept(self, config, tracking):
        url = build_tracked_url("https://shop.example.org/?subid=keep", tracking, config)
        assert _query(url) == {"subid": "keep", "email_id": EMAIL_ID}


class TestRedirectTarget:
    def test_relative_resolved_against_origin(self, config):
        assert redirect_target_for("/t/a/1", config) == f"https://{ORIGIN}/t/a/1"

    def test_already_redirected(self, config):
        assert redirect_target_for("/content?u=abc", config) is None
        assert redirect_target_for("https://FORUM.example.com/content?u=abc", config) is None

    def test_ineligible(self, config):
        assert redirect_target_for("mailto:x@example.org", config) is None
        assert redirect_target_for("javascript:void(0)", config) is None
        assert redirect_target_for(f"https://{ORIGIN}/email/unsubscribe/x", config) is None
        assert redirect_target_for(None, config) is None

    def test_redirector_href(self, config):
        assert make_redirector_href("a@b.com", config) == "/content?u=YUBiLmNvbQ"


class TestTopicContext:
    def test_ancestor_attribute(self, soup, config):
        doc = soup('<div data-topic-id="55"><div class="excerpt"><a href="https://ext.org/a">x</a></div></div>')
        assert TopicContextIndex(doc, config).topic_id_for(doc.a) == "55"

    def test_preceding_heading(self, soup, config):
        doc = soup(
            '<h2 class="topic-title"><a href="/t/one/66">One</a></h2>'
            '<div class="excerpt"><a href="https://ext.org/a">x</a></div>'
        )
        anchor = doc.select_one(".excerpt a")
        assert TopicContextIndex(doc, config).topic_id_for(anchor) == "66"

    def test_nearest_heading_wins(self, soup, config):
        doc = soup(
            '<h2 class="topic-title"><a href="/t/one/66">One</a></h2>'
            '<h2 class="topic-title"><a href="/t/two/67">Two</a></h2>'
            '<div class="excerpt"><a href="https://ext.org/a">x</a></div>'
        )
        anchor = doc.select_one(".excerpt a")
        assert TopicContextIndex(doc, config).topic_id_for(anchor) == "67"

    def test_preceding_anchor(self, soup, config):
        doc = soup('<p><a href="/t/any/77">t</a></p><div class="excerpt"><a href="https://ext.org/a">x</a></div>')
        anchor = doc.select_one(".excerpt a")
        assert TopicContextIndex(doc, config).topic_id_for(anchor) == "77"

    def test_no_context(self, soup, config):
        doc = soup('<div class="excerpt"><a href="https://ext.org/a">x</a></div><p><a href="/t/later/88">t</a></p>')
        anchor = doc.select_one(".excerpt a")
        assert TopicContextIndex(doc, config).topic_id_for(anchor) is None


class TestRedirectExcerptLinks:
    def test_rewrites_excerpt_links_only(self, soup, config, tracking, multi_topic_html):
        doc = soup(multi_topic_html)

        assert redirect_excerpt_links(doc, tracking, config) == 1

        partner = doc.select(".digest-post-excerpt a")[0]
        destination = _decoded(partner["href"])
        assert destination.startswith("https://partner.example.org/article?")
        assert _query(destination) == {"email_id": EMAIL_ID, "subid": f"7-202-{EMAIL_ID}"}
        # Links outside excerpts are not redirected.
        assert doc.h2.a["href"] == "/t/first-topic/101"

    def test_internal_excerpt_link_redirected_absolute(self, soup, config, tracking):
        doc = soup('<div class="excerpt" data-topic-id="5"><a href="/t/other/9">see</a></div>')
        redirect_excerpt_links(doc, tracking, config)
        assert _decoded(doc.a["href"]).startswith(f"https://{ORIGIN}/t/other/9?email_id={EMAIL_ID}")

    def test_protected_excerpt_skipped(self, soup, config, tracking):
        doc = soup(
            '<div class="excerpt"><a href="https://ext.org/a">x</a>'
            f'<a href="https://{ORIGIN}/my/preferences">prefs</a></div>'
        )
        assert redirect_excerpt_links(doc, tracking, config) == 0
        assert doc.a["href"] == "https://ext.org/a"

    def test_nested_excerpts_rewritten_once(self, soup, config, tracking):
        doc = soup('<div class="excerpt"><div class="post-excerpt"><a href="https://ext.org/a">x</a></div></div>')
        assert redirect_excerpt_links(doc, tracking, config) == 1

    def test_second_pass_changes_nothing(self, soup, config, tracking, multi_topic_html):
        doc = soup(multi_topic_html)
        redirect_excerpt_links(doc, tracking, config)
        assert redirect_excerpt_links(doc, tracking, config) == 0
