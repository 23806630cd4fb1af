"""HTML cleaning, sanitization, and URL normalization utilities."""

from __future__ import annotations

import html
import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from bs4 import BeautifulSoup, Comment, Tag

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")

TRACKING_PARAMS = frozenset({"gclid", "fbclid"})
TRACKING_PREFIXES = ("utm_", "mc_")

ALLOWED_TAGS = frozenset(
    {
        "p",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "ul",
        "ol",
        "li",
        "blockquote",
        "pre",
        "code",
        "strong",
        "em",
        "b",
        "i",
        "a",
        "img",
        "br",
        "hr",
        "span",
    },
)
ALLOWED_ATTRIBUTES: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "title"}),
    "img": frozenset({"src", "alt", "title"}),
    "span": frozenset({"class"}),
    "code": frozenset({"class"}),
}
# Removed along with everything inside them.
DROPPED_TAGS = frozenset(
    {"script", "style", "iframe", "object", "embed", "noscript", "form", "template"},
)
ALLOWED_URL_SCHEMES = frozenset({"http", "https"})
URL_ATTRIBUTES = frozenset({"href", "src"})
EXTERNAL_LINK_REL = "noopener noreferrer"


def html_to_text(raw_html: str) -> str:
    """Convert HTML markup into normalized plain text."""

    if not raw_html:
        return ""
    no_scripts = _SCRIPT_STYLE_RE.sub(" ", raw_html)
    stripped = _TAG_RE.sub(" ", no_scripts)
    unescaped = html.unescape(stripped)
    normalized = _WHITESPACE_RE.sub(" ", unescaped)
    return normalized.strip()


def normalize_link(raw_link: str) -> str:
    """Strip tracking query parameters and the fragment from a link.

    Unparseable input is returned unchanged.
    """

    candidate = raw_link.strip()
    try:
        parts = urlsplit(candidate)
        query = parse_qsl(parts.query, keep_blank_values=True)
    except ValueError:
        return raw_link
    if not parts.scheme or not parts.netloc:
        return raw_link
    kept = [(key, value) for key, value in query if not _is_tracking_param(key)]
    new_query = parts.query if len(kept) == len(query) else urlencode(kept)
    return urlunsplit(parts._replace(query=new_query, fragment=""))


def _is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered in TRACKING_PARAMS or lowered.startswith(TRACKING_PREFIXES)


def sanitize_html(raw_html: str | None) -> str | None:
    """Reduce markup to the structural allow-list used for stored item content.

    Links are forced to open in a new context without a referrer, and only
    http/https URLs survive in href/src attributes.
    """

    if not raw_html or not raw_html.strip():
        return None

    soup = BeautifulSoup(raw_html, "html.parser")
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()
    for element in soup.find_all(True):
        if element.decomposed:
            continue
        name = element.name.lower()
        if name in DROPPED_TAGS:
            element.decompose()
            continue
        if name not in ALLOWED_TAGS:
            element.unwrap()
            continue
        _filter_attributes(element, name)
        if name == "img" and not element.get("src"):
            element.decompose()
            continue
        if name == "a" and element.get("href"):
            element["target"] = "_blank"
            element["rel"] = EXTERNAL_LINK_REL

    cleaned = str(soup).strip()
    return cleaned or None


def _filter_attributes(element: Tag, name: str) -> None:
    allowed = ALLOWED_ATTRIBUTES.get(name, frozenset())
    for attribute in list(element.attrs):
        if attribute not in allowed:
            del element.attrs[attribute]
            continue
        if attribute in URL_ATTRIBUTES and not is_safe_url(str(element.attrs[attribute])):
            del element.attrs[attribute]


def is_safe_url(value: str) -> bool:
    """Return True for absolute http(s) URLs."""

    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    return parts.scheme.lower() in ALLOWED_URL_SCHEMES and bool(parts.netloc)


def first_image_src(raw_html: str | None) -> str | None:
    """Return the src of the first <img> in a fragment."""

    if not raw_html or "<img" not in raw_html.lower():
        return None
    soup = BeautifulSoup(raw_html, "html.parser")
    for image in soup.find_all("img"):
        src = (image.get("src") or "").strip()
        if src:
            return src
    return None


def og_image_hint(raw_html: str | None) -> str | None:
    """Return an open-graph image declared via <meta property="og:image">."""

    if not raw_html or "og:image" not in raw_html:
        return None
    soup = BeautifulSoup(raw_html, "html.parser")
    for meta in soup.find_all("meta"):
        prop = (meta.get("property") or meta.get("name") or "").strip().lower()
        if prop == "og:image":
            content = (meta.get("content") or "").strip()
            if content:
                return content
    return None
