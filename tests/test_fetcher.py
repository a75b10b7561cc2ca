from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests
from bs4 import BeautifulSoup

from pagepersona.config import ScraperConfig
from pagepersona.errors import (
    AccessForbiddenError,
    ConnectionRefusedFetchError,
    ContentFetchError,
    ErrorCode,
    FetchTimeoutError,
    HostNotFoundError,
    InvalidUrlError,
    PageNotFoundError,
    PrivateUrlError,
)
from pagepersona.services.fetcher import (
    UNTITLED_PAGE,
    ContentFetcher,
    collapse_whitespace,
    is_private_hostname,
    normalize_target_url,
    truncate_content,
)

ARTICLE_TEXT = "Retail stores are adopting self-checkout across the country. " * 4

PAGE = f"""
<html>
    <head>
        <title>Self-checkout everywhere</title>
        <meta name="description" content="How stores are changing">
        <meta name="author" content="Jane Writer">
        <meta property="article:published_time" content="2024-10-05T09:00:00Z">
    </head>
    <body>
        <header>Site header</header>
        <nav>Home | About</nav>
        <main><p>Short intro.</p></main>
        <article>
            <p>{ARTICLE_TEXT}</p>
            <div class="ads">Buy now!</div>
            <script>var tracking = true;</script>
        </article>
        <aside>Related links</aside>
        <footer>Copyright</footer>
    </body>
</html>
"""


class DummyResponse:
    def __init__(self, text: str, status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code


def _fetcher_with(get, **config) -> ContentFetcher:
    fetcher = ContentFetcher(ScraperConfig(**config))
    fetcher._session = SimpleNamespace(get=get)
    return fetcher


def test_fetch_extracts_title_content_and_metadata() -> None:
    requested: list[tuple[str, float]] = []

    def fake_get(url, timeout):
        requested.append((url, timeout))
        return DummyResponse(PAGE)

    result = _fetcher_with(fake_get).fetch("example.com/story")

    assert requested == [("https://example.com/story", 10.0)]
    assert result.url == "https://example.com/story"
    assert result.title == "Self-checkout everywhere"
    assert result.content == ARTICLE_TEXT.strip()
    assert "Buy now" not in result.content
    assert "tracking" not in result.content
    assert result.metadata.description == "How stores are changing"
    assert result.metadata.author == "Jane Writer"
    assert result.metadata.publish_date == "2024-10-05T09:00:00Z"
    assert result.metadata.word_count == len(ARTICLE_TEXT.split())


def test_fetch_truncates_long_content_but_counts_all_words() -> None:
    long_text = "word " * 500
    html = f"<html><body><article>{long_text}</article></body></html>"

    result = _fetcher_with(lambda url, timeout: DummyResponse(html), max_content_length=100).fetch(
        "https://example.com"
    )

    assert result.content.endswith("...")
    assert len(result.content) <= 103
    assert result.metadata.word_count == 500


def test_extract_content_falls_back_to_body_for_short_containers() -> None:
    body_text = "Plain body paragraph without any semantic container. " * 3
    soup = BeautifulSoup(f"<html><body><main>Tiny</main><p>{body_text}</p></body></html>", "lxml")

    content = ContentFetcher.extract_content(soup)

    assert content.startswith("Tiny")
    assert body_text.strip() in content


def test_extract_title_fallbacks() -> None:
    h1 = BeautifulSoup("<html><body><h1>Heading</h1></body></html>", "lxml")
    og = BeautifulSoup('<html><head><meta property="og:title" content="OG Title"></head></html>', "lxml")
    empty = BeautifulSoup("<html><body><p>text</p></body></html>", "lxml")

    assert ContentFetcher.extract_title(h1) == "Heading"
    assert ContentFetcher.extract_title(og) == "OG Title"
    assert ContentFetcher.extract_title(empty) == UNTITLED_PAGE


def test_metadata_fallbacks() -> None:
    html = """
    <html><body>
        <a rel="author" href="/me">Sam Author</a>
        <time datetime="2024-01-02">Jan 2</time>
    </body></html>
    """
    soup = BeautifulSoup(html, "lxml")
    content = "x" * 250

    metadata = ContentFetcher.extract_metadata(soup, content)

    assert metadata.description == "x" * 200 + "..."
    assert metadata.author == "Sam Author"
    assert metadata.publish_date == "2024-01-02"


def test_find_published_date_uses_text_regex() -> None:
    text = "Updated 2023. Published at October 5, 2024. PUBLISHED ON 2024-09-30 should not match first."

    assert ContentFetcher.find_published_date(text) == "October 5, 2024"
    assert ContentFetcher.find_published_date("no dates here") is None


def test_truncate_content_prefers_word_boundary() -> None:
    assert truncate_content("short", 10) == "short"
    assert truncate_content("hello world foo", 13) == "hello world..."
    assert truncate_content("ab cdefghijklmnop", 10) == "ab cdefghi..."


def test_collapse_whitespace_keeps_paragraph_breaks() -> None:
    text = "  First   line\n  continues\n\n\n\n   Second\tparagraph  "

    assert collapse_whitespace(text) == "First line continues\n\nSecond paragraph"


@pytest.mark.parametrize(
    "url",
    [
        "http://localhost:8000/admin",
        "127.0.0.1",
        "https://10.1.2.3/",
        "https://172.20.0.1/",
        "http://192.168.1.1/router",
        "http://[::1]/",
        "http://169.254.169.254/latest/meta-data",
        "http://2130706433/",
        "http://0x7f000001/",
        "http://017700000001/",
        "http://127.1/",
        "http://localhost.:8080/",
        "http://[::ffff:127.0.0.1]/",
    ],
)
def test_private_urls_are_rejected_without_a_request(url: str) -> None:
    def fail_get(url, timeout):
        raise AssertionError("Should not request private URLs")

    fetcher = _fetcher_with(fail_get)

    with pytest.raises(PrivateUrlError) as excinfo:
        fetcher.fetch(url)

    assert excinfo.value.error_code is ErrorCode.INVALID_URL


def test_is_private_hostname_allows_public_hosts() -> None:
    assert is_private_hostname("example.com") is False
    assert is_private_hostname("172.32.0.1") is False
    assert is_private_hostname("8.8.8.8") is False
    assert is_private_hostname("134744072") is False
    assert is_private_hostname("1password.com") is False


def test_normalize_target_url() -> None:
    assert normalize_target_url("Example.com") == "https://example.com/"
    assert normalize_target_url("http://example.com/a?b=1") == "http://example.com/a?b=1"

    with pytest.raises(InvalidUrlError):
        normalize_target_url("   ")
    with pytest.raises(InvalidUrlError):
        normalize_target_url("https://")


@pytest.mark.parametrize(
    ("exception", "expected", "code"),
    [
        (
            requests.ConnectionError("Failed to resolve 'nope.invalid' (Name or service not known)"),
            HostNotFoundError,
            ErrorCode.SCRAPING_FAILED,
        ),
        (requests.ConnectionError("[Errno 111] Connection refused"), ConnectionRefusedFetchError, ErrorCode.NETWORK_ERROR),
        (requests.Timeout("read timed out"), FetchTimeoutError, ErrorCode.NETWORK_ERROR),
        (requests.TooManyRedirects("Exceeded 30 redirects"), ContentFetchError, ErrorCode.SCRAPING_FAILED),
    ],
)
def test_request_errors_are_mapped(exception, expected, code) -> None:
    def fake_get(url, timeout):
        raise exception

    with pytest.raises(expected) as excinfo:
        _fetcher_with(fake_get).fetch("https://example.com")

    assert excinfo.value.error_code is code


@pytest.mark.parametrize(
    ("status", "expected", "message"),
    [
        (403, AccessForbiddenError, "Access forbidden"),
        (404, PageNotFoundError, "Page not found"),
        (500, ContentFetchError, "HTTP 500"),
    ],
)
def test_http_errors_are_mapped(status, expected, message) -> None:
    fetcher = _fetcher_with(lambda url, timeout: DummyResponse("<html></html>", status_code=status))

    with pytest.raises(expected, match=message):
        fetcher.fetch("https://example.com")


def test_session_sends_browser_user_agent() -> None:
    fetcher = ContentFetcher(ScraperConfig(user_agent="TestAgent/1.0"))

    assert fetcher._session.headers["User-Agent"] == "TestAgent/1.0"
    assert "text/html" in fetcher._session.headers["Accept"]
