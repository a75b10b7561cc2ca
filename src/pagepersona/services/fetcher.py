"""Fetch external pages and turn them into :class:`ScrapedContent`."""

from __future__ import annotations

import ipaddress
import logging
import re
import socket
from typing import Iterable
from urllib.parse import urlsplit

import requests
from bs4 import BeautifulSoup

from pagepersona.cache import normalize_url
from pagepersona.config import ScraperConfig
from pagepersona.errors import (
    AccessForbiddenError,
    ConnectionRefusedFetchError,
    ContentFetchError,
    FetchTimeoutError,
    HostNotFoundError,
    InvalidUrlError,
    PageNotFoundError,
    PrivateUrlError,
)
from pagepersona.models import ContentMetadata, ScrapedContent, count_words

__all__ = [
    "ContentFetcher",
    "TRUNCATION_MARKER",
    "UNTITLED_PAGE",
    "collapse_whitespace",
    "extract_content",
    "extract_metadata",
    "extract_title",
    "find_published_date",
    "is_private_hostname",
    "normalize_target_url",
    "truncate_content",
]

logger = logging.getLogger(__name__)

UNTITLED_PAGE = "Untitled Page"
TRUNCATION_MARKER = "..."
MIN_CONTAINER_TEXT = 100
DESCRIPTION_FALLBACK_LENGTH = 200

DEFAULT_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
}

UNWANTED_SELECTOR = "script, style, noscript, nav, header, footer, aside, .advertisement, .ads, .sidebar"

CONTENT_SELECTORS = (
    "main",
    "article",
    ".content",
    ".main-content",
    ".post-content",
    ".entry-content",
    "#content",
    "#main",
)

_PRIVATE_HOST_PATTERNS = (
    re.compile(r"^localhost$", re.IGNORECASE),
    re.compile(r"\.localhost$", re.IGNORECASE),
    re.compile(r"^127\."),
    re.compile(r"^10\."),
    re.compile(r"^172\.(1[6-9]|2[0-9]|3[01])\."),
    re.compile(r"^192\.168\."),
    re.compile(r"^::1$"),
    re.compile(r"^fc00:", re.IGNORECASE),
    re.compile(r"^fe80:", re.IGNORECASE),
)

_DNS_FAILURE_HINTS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "failed to resolve",
    "nameresolutionerror",
    "temporary failure in name resolution",
    "no address associated with hostname",
)


def _numeric_ipv4(hostname: str) -> ipaddress.IPv4Address | None:
    """Parse the decimal, hex, octal and short IPv4 forms a resolver accepts."""

    if not hostname or not hostname[0].isdigit():
        return None
    try:
        return ipaddress.IPv4Address(socket.inet_aton(hostname))
    except OSError:
        return None


def is_private_hostname(hostname: str) -> bool:
    """Return ``True`` when ``hostname`` points at a private or loopback address.

    A trailing root dot is ignored and numeric hosts such as ``2130706433``
    or ``0x7f000001`` are read the way the system resolver reads them.
    """

    hostname = hostname.strip().strip("[]").lower().rstrip(".")
    if any(pattern.search(hostname) for pattern in _PRIVATE_HOST_PATTERNS):
        return True

    try:
        address: ipaddress.IPv4Address | ipaddress.IPv6Address | None = ipaddress.ip_address(hostname)
    except ValueError:
        address = _numeric_ipv4(hostname)
    if address is None:
        return False

    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped

    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_unspecified
        or address.is_reserved
        or address.is_multicast
    )


def normalize_target_url(url: str) -> str:
    """Validate ``url`` for fetching and return its canonical form.

    A missing scheme defaults to ``https://``. Private and loopback hosts are
    rejected before any request is made.
    """

    candidate = (url or "").strip()
    if not candidate:
        raise InvalidUrlError()

    if not candidate.lower().startswith(("http://", "https://")):
        candidate = f"https://{candidate}"

    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
        parts.port  # noqa: B018 - raises ValueError for a malformed port
    except ValueError as exc:
        raise InvalidUrlError() from exc

    if not hostname or " " in hostname:
        raise InvalidUrlError()

    if is_private_hostname(hostname):
        raise PrivateUrlError()

    return normalize_url(candidate)


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs to one space and blank-line runs to one blank line."""

    paragraphs = re.split(r"\n[ \t\r\f\v]*\n", text)
    cleaned = (re.sub(r"\s+", " ", paragraph).strip() for paragraph in paragraphs)
    return "\n\n".join(paragraph for paragraph in cleaned if paragraph)


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def extract_title(soup: BeautifulSoup) -> str:
    """Return the best available page title."""

    candidates: Iterable[str] = (
        soup.title.get_text(strip=True) if soup.title else "",
        soup.h1.get_text(" ", strip=True) if soup.h1 else "",
        _meta_content(soup, property="og:title"),
        _meta_content(soup, name="title"),
    )
    for candidate in candidates:
        if candidate:
            return candidate
    return UNTITLED_PAGE


def extract_content(soup: BeautifulSoup) -> str:
    """Strip page chrome and return the main readable text.

    Each likely content container is tried and the longest text wins. When no
    container yields at least ``MIN_CONTAINER_TEXT`` characters the whole body
    is used instead. ``soup`` is modified in place.
    """

    for tag in soup.select(UNWANTED_SELECTOR):
        if tag.decomposed:
            continue
        tag.decompose()

    content = ""
    for selector in CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        text = collapse_whitespace(element.get_text())
        if len(text) > len(content):
            content = text

    if len(content) < MIN_CONTAINER_TEXT:
        body = soup.body or soup
        content = collapse_whitespace(body.get_text())

    return content


def find_published_date(text: str) -> str | None:
    """Attempt to extract a published date string from page text."""

    month_pattern = (
        r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|jun(?:e)?|"
        r"jul(?:y)?|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|"
        r"dec(?:ember)?)"
    )

    date_pattern = re.compile(
        rf"""(?ix)
        published
        (?:\s+(?:at|on))?
        [\s,:\-–—]*?
        (?P<date>
            \d{{4}}[\/-]\d{{1,2}}[\/-]\d{{1,2}}
            |
            \d{{1,2}}[\/-]\d{{1,2}}[\/-]\d{{2,4}}
            |
            {month_pattern}\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,\s*)?\d{{4}}
            |
            \d{{1,2}}(?:st|nd|rd|th)?\s+{month_pattern}\s+\d{{4}}
        )
        """,
    )

    match = date_pattern.search(text)
    if match:
        return match.group("date").strip().rstrip(".,;!?")

    return None


def extract_metadata(soup: BeautifulSoup, content: str) -> ContentMetadata:
    """Collect best-effort metadata; ``content`` is the untruncated page text."""

    description = (
        _meta_content(soup, name="description")
        or _meta_content(soup, property="og:description")
        or (content[:DESCRIPTION_FALLBACK_LENGTH] + TRUNCATION_MARKER if content else "")
    )

    rel_author = soup.find(attrs={"rel": "author"})
    author = (
        _meta_content(soup, name="author")
        or _meta_content(soup, property="article:author")
        or (rel_author.get_text(strip=True) if rel_author else "")
    )

    time_tag = soup.find("time", attrs={"datetime": True})
    publish_date = (
        _meta_content(soup, property="article:published_time")
        or _meta_content(soup, name="date")
        or ((time_tag.get("datetime") or "").strip() if time_tag else "")
        or find_published_date(content)
    )

    return ContentMetadata(
        description=description or None,
        author=author or None,
        publish_date=publish_date or None,
        word_count=count_words(content),
    )


def truncate_content(content: str, max_length: int) -> str:
    """Limit ``content`` to ``max_length`` characters plus a truncation marker.

    The cut moves back to the last space when that space lies within the final
    20% of the window; otherwise the text is cut hard.
    """

    if len(content) <= max_length:
        return content

    truncated = content[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.8:
        truncated = truncated[:last_space]

    return truncated + TRUNCATION_MARKER


def _is_dns_failure(exc: BaseException) -> bool:
    message = str(exc).lower()
    return any(hint in message for hint in _DNS_FAILURE_HINTS)


class ContentFetcher:
    """Fetch a URL and extract its readable content."""

    def __init__(self, config: ScraperConfig | None = None, session: requests.Session | None = None) -> None:
        self.config = config or ScraperConfig()
        self._session = session or requests.Session()
        self._session.headers.update(DEFAULT_HEADERS)
        self._session.headers["User-Agent"] = self.config.user_agent

    normalize_target_url = staticmethod(normalize_target_url)
    is_private_hostname = staticmethod(is_private_hostname)
    extract_title = staticmethod(extract_title)
    extract_content = staticmethod(extract_content)
    extract_metadata = staticmethod(extract_metadata)
    collapse_whitespace = staticmethod(collapse_whitespace)
    truncate_content = staticmethod(truncate_content)
    find_published_date = staticmethod(find_published_date)

    def fetch(self, url: str) -> ScrapedContent:
        """Download ``url`` and return its normalised content.

        Raises a :class:`~pagepersona.errors.ContentFetchError` subclass that
        describes why the page could not be used.
        """

        target = self.normalize_target_url(url)
        logger.info("Fetching %s", target)

        html = self._download(target)
        return self.parse(html, target)

    def parse(self, html: str, url: str) -> ScrapedContent:
        """Build :class:`ScrapedContent` from an HTML document."""

        soup = BeautifulSoup(html, "lxml")
        title = self.extract_title(soup)
        content = self.extract_content(soup)
        metadata = self.extract_metadata(soup, content)

        logger.info("Extracted %d words from %s", metadata.word_count, url)

        return ScrapedContent(
            title=title,
            content=self.truncate_content(content, self.config.max_content_length),
            url=url,
            metadata=metadata,
        )

    def _download(self, url: str) -> str:
        try:
            response = self._session.get(url, timeout=self.config.request_timeout)
        except requests.Timeout as exc:
            logger.warning("Timed out fetching %s: %s", url, exc)
            raise FetchTimeoutError() from exc
        except requests.ConnectionError as exc:
            logger.warning("Connection error fetching %s: %s", url, exc)
            if _is_dns_failure(exc):
                raise HostNotFoundError() from exc
            raise ConnectionRefusedFetchError() from exc
        except requests.RequestException as exc:
            logger.warning("Request for %s failed: %s", url, exc)
            raise ContentFetchError(f"Failed to scrape webpage: {exc}") from exc

        status = response.status_code
        if status == 403:
            raise AccessForbiddenError()
        if status == 404:
            raise PageNotFoundError()
        if not 200 <= status < 300:
            raise ContentFetchError(f"Failed to scrape webpage: HTTP {status}")

        return response.text
