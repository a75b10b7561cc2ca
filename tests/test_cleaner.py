from __future__ import annotations

import logging

from pagepersona.config import CleanerConfig
from pagepersona.services.cleaner import (
    TRUNCATION_SEPARATOR,
    clean_text,
    clean_text_for_llm,
    estimate_tokens,
    extract_text_from_html,
    looks_like_html,
    smart_truncate,
)

PARAGRAPH = "The museum reopens on Saturday with a new gallery devoted to early flight."

PAGE = f"""
<html>
  <head><title>Museum news</title><style>body {{ color: red; }}</style></head>
  <body>
    <header>Site header</header>
    <nav>Home Visit Shop</nav>
    <div class="cookie-consent">We use cookies</div>
    <div id="cookie-wall">Manage preferences</div>
    <div class="popup-newsletter">Join now</div>
    <article>
      <h1>Reopening</h1>
      <p>{PARAGRAPH}</p>
      <script>track();</script>
    </article>
    <aside class="related-articles">More stories</aside>
    <footer>Footer links</footer>
  </body>
</html>
"""


def test_looks_like_html() -> None:
    assert looks_like_html("<p>Hello</p>") is True
    assert looks_like_html("Plain text with 3 < 4 comparisons") is False


def test_extract_text_from_html_drops_page_chrome() -> None:
    text = extract_text_from_html(PAGE)

    assert PARAGRAPH in text
    for noise in ("Site header", "Home Visit Shop", "We use cookies", "Manage preferences", "Join now"):
        assert noise not in text
    assert "More stories" not in text
    assert "Footer links" not in text
    assert "track()" not in text
    assert "color: red" not in text


def test_clean_text_removes_links_and_boilerplate_sentences() -> None:
    raw = (
        f"{PARAGRAPH}\n"
        "Visit https://example.com/tickets or www.example.com for tickets, or email info@example.com today.\n"
        "By continuing you agree to our cookie policy and tracking.\n"
        "Please read the terms and conditions before booking.\n"
        "Follow us on every social network we could find!\n"
        "Sponsored content from our partners.\n"
        "All rights reserved by Example Museum Trust\n"
    )

    cleaned = clean_text(raw)

    assert cleaned.startswith(PARAGRAPH)
    assert "https://" not in cleaned
    assert "www.example.com" not in cleaned
    assert "info@example.com" not in cleaned
    assert "cookie policy" not in cleaned
    assert "terms and conditions" not in cleaned
    assert "Follow us" not in cleaned
    assert "Sponsored content" not in cleaned
    assert "All rights reserved" not in cleaned


def test_clean_text_drops_navigation_lines() -> None:
    raw = "\n".join(
        [
            "Home",
            "||| Home ||| News |||",
            "LATEST HEADLINES TODAY",
            PARAGRAPH,
        ]
    )

    assert clean_text(raw) == PARAGRAPH


def test_clean_text_normalises_whitespace_and_punctuation() -> None:
    raw = f"   {PARAGRAPH}\t\t  Really!!!\n\n\n\n   Second paragraph follows here,, slowly.....\n-----\n"

    cleaned = clean_text(raw)

    assert cleaned == f"{PARAGRAPH} Really!\nSecond paragraph follows here, slowly..."


def test_clean_text_decodes_entities() -> None:
    cleaned = clean_text("Tea &amp; cake&nbsp;&mdash; isn&#x27;t it &quot;lovely&quot;?")

    assert cleaned == "Tea & cake — isn't it \"lovely\"?"


def test_smart_truncate_keeps_start_and_tail() -> None:
    text = "A" * 600 + "B" * 400 + "C" * 200

    truncated = smart_truncate(text, 1000, 0.8)

    head, tail = truncated.split(TRUNCATION_SEPARATOR)
    assert head == "A" * 600 + "B" * 200
    assert tail == "C" * 100
    assert smart_truncate("short", 1000, 0.8) == "short"


def test_estimate_tokens() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_clean_text_for_llm_reports_metrics(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="pagepersona.services.cleaner"):
        cleaned = clean_text_for_llm(PAGE, include_headings=True)

    assert PARAGRAPH in cleaned.text
    assert cleaned.headings == ["Reopening"]
    assert cleaned.metrics.original_length == len(PAGE)
    assert cleaned.metrics.cleaned_length == len(cleaned.text)
    assert cleaned.metrics.was_truncated is False
    assert cleaned.metrics.token_reduction > 0
    assert 0 < cleaned.metrics.reduction_percent < 100
    assert "Cleaned" in caplog.text


def test_clean_text_for_llm_truncates_long_input() -> None:
    text = " ".join(["A long sentence about history."] * 100)

    cleaned = clean_text_for_llm(text, CleanerConfig(max_chars=500, preserve_start_ratio=0.6))

    assert cleaned.metrics.was_truncated is True
    assert TRUNCATION_SEPARATOR in cleaned.text
    assert len(cleaned.text) == 300 + len(TRUNCATION_SEPARATOR) + 100
    assert cleaned.text.endswith("history.")
