import allure

from newsdesk.ingestion.cleaning import (
    first_image_src,
    html_to_text,
    is_safe_url,
    normalize_link,
    og_image_hint,
    sanitize_html,
)

pytestmark = [
    allure.epic("Ingestion"),
    allure.feature("Normalizer"),
]


def test_html_to_text_removes_tags_and_scripts() -> None:
    raw = (
        "<html><body><script>alert('x')</script>"
        "<h1>Title</h1><p>Hello <b>world</b></p></body></html>"
    )
    assert html_to_text(raw) == "Title Hello world"


def test_normalize_link_strips_tracking_params_and_fragment() -> None:
    raw = "https://example.com/news?id=2&utm_source=rss&fbclid=abc&mc_eid=9#comments"
    assert normalize_link(raw) == "https://example.com/news?id=2"


def test_normalize_link_keeps_untracked_query_verbatim() -> None:
    raw = "https://example.com/search?q=a+b&page=2"
    assert normalize_link(raw) == raw


def test_normalize_link_returns_relative_input_unchanged() -> None:
    assert normalize_link("/relative/path#x") == "/relative/path#x"


def test_sanitize_html_drops_scripts_and_disallowed_attributes() -> None:
    raw = (
        '<div onclick="x()"><p style="color:red">Hi <script>alert(1)</script>'
        '<iframe src="https://evil.example"></iframe><strong>there</strong></p></div>'
    )

    cleaned = sanitize_html(raw)

    assert cleaned == "<p>Hi <strong>there</strong></p>"


def test_sanitize_html_hardens_links_and_rejects_unsafe_schemes() -> None:
    cleaned = sanitize_html(
        '<a href="https://example.com/a">ok</a> <a href="javascript:alert(1)">bad</a>',
    )

    assert cleaned is not None
    assert 'href="https://example.com/a"' in cleaned
    assert 'target="_blank"' in cleaned
    assert 'rel="noopener noreferrer"' in cleaned
    assert "javascript:" not in cleaned
    assert cleaned.count('target="_blank"') == 1


def test_sanitize_html_removes_images_without_safe_src() -> None:
    cleaned = sanitize_html(
        '<p><img src="data:image/png;base64,xx"><img src="https://x.io/a.png"></p>',
    )

    assert cleaned == '<p><img src="https://x.io/a.png"/></p>'


def test_sanitize_html_returns_none_for_blank_input() -> None:
    assert sanitize_html("   ") is None
    assert sanitize_html(None) is None


def test_image_hints() -> None:
    html = '<meta property="og:image" content="https://x.io/og.png"><img src="https://x.io/b.png">'

    assert og_image_hint(html) == "https://x.io/og.png"
    assert first_image_src(html) == "https://x.io/b.png"
    assert first_image_src("<p>no images</p>") is None


def test_is_safe_url() -> None:
    assert is_safe_url("https://example.com")
    assert not is_safe_url("ftp://example.com")
    assert not is_safe_url("https://")
