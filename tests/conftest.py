"""
Shared test fixtures for the digest post-processing test suite.
"""
import pytest
from bs4 import BeautifulSoup

from digest_postprocessing.models.digest_config import DigestConfig
from digest_postprocessing.models.email_message import EmailMessage, Recipient

ORIGIN = "forum.example.com"
MIRROR = "mirror.example.net"

LOREM = " ".join(["Lorem ipsum dolor sit amet consectetur adipiscing elit sed do eiusmod tempor"] * 8)

# Every stage on, with the usual 300-character budgets.
STAGES = {
    "link_annotation_enabled": True,
    "content_redirector_enabled": True,
    "trim_html_enabled": True,
    "trim_text_enabled": True,
    "html_max_chars": 300,
    "text_max_chars": 300,
}


# ==========================================================================
# Configuration & recipient
# ==========================================================================

@pytest.fixture
def config():
    return DigestConfig.from_mapping({"origin_domain": ORIGIN, **STAGES})


@pytest.fixture
def swap_config():
    return DigestConfig.from_mapping({
        "origin_domain": ORIGIN,
        **STAGES,
        "target_domains": [MIRROR],
        "html_links_enabled": True,
        "text_links_enabled": True,
        "resource_attributes_enabled": True,
        "headers_enabled": True,
        "message_id_enabled": True,
    })


@pytest.fixture
def recipient():
    return Recipient(id=7, email="a@b.com")


@pytest.fixture
def soup():
    def _parse(markup: str) -> BeautifulSoup:
        return BeautifulSoup(markup, "html.parser")
    return _parse


# ==========================================================================
# HTML digests
# ==========================================================================

@pytest.fixture
def multi_topic_html():
    """Two topics above "Popular Posts", one popular topic and a footer."""
    return (
        "<html><body>"
        '<h2 class="digest-topic-name"><a href="/t/first-topic/101">First topic</a></h2>'
        '<div class="digest-post-excerpt">'
        "<p>Short opening paragraph about the first topic.</p>"
        f"<p>{LOREM}</p>"
        "</div>"
        f'<h2 class="digest-topic-name"><a href="https://{ORIGIN}/t/second-topic/202">Second topic</a></h2>'
        '<div class="digest-post-excerpt">'
        '<p>Read <a href="https://partner.example.org/article">the partner write-up</a> first. '
        f"{LOREM}</p>"
        "</div>"
        "<h3>Popular Posts</h3>"
        '<p><a href="/t/popular-topic/303">Popular topic</a></p>'
        f'<p><a href="https://{ORIGIN}/email/unsubscribe/abc123">Unsubscribe</a></p>'
        "</body></html>"
    )


@pytest.fixture
def single_topic_html():
    return (
        "<html><body>"
        '<h2 class="digest-topic-name"><a href="/t/only-topic/101">Only topic</a></h2>'
        '<div class="digest-post-excerpt">'
        "<p>Short opening paragraph.</p>"
        f"<p>{LOREM}</p>"
        "</div>"
        "<h3>Popular Posts</h3>"
        '<p><a href="/t/popular-topic/303">Popular topic</a></p>'
        "</body></html>"
    )


# ==========================================================================
# Text digests
# ==========================================================================

@pytest.fixture
def multi_topic_text():
    return "\n\n".join([
        "Forum digest for you",
        f"https://{ORIGIN}/t/first-topic/101",
        LOREM,
        f"https://{ORIGIN}/t/second-topic/202",
        "Short body.",
        "Popular Posts",
        f"https://{ORIGIN}/t/popular-topic/303",
        f"To unsubscribe visit https://{ORIGIN}/email/unsubscribe/abc123",
    ])


@pytest.fixture
def digest_message(multi_topic_html, multi_topic_text):
    return EmailMessage(
        html_body=multi_topic_html,
        text_body=multi_topic_text,
        headers={
            "List-Unsubscribe": f"<https://{ORIGIN}/email/unsubscribe/abc123>",
            "Message-ID": f"<digest.7.1700000000@{ORIGIN}>",
            "Subject": "Forum digest",
        },
    )
