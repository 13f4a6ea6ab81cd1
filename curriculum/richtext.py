# curriculum/richtext.py
from __future__ import annotations

from html import escape
from typing import Dict

from bs4 import BeautifulSoup
from bs4.dammit import EntitySubstitution
from bs4.element import PreformattedString
from bs4.formatter import HTMLFormatter

ALLOWED_TAGS = {
    "p", "br", "b", "strong", "i", "em", "u", "ul", "ol", "li",
    "blockquote", "h1", "h2", "h3", "h4", "span", "div", "a", "img",
}
ALLOWED_ATTRS: Dict[str, set] = {
    "*": {"class"},
    "a": {"href"},
    "img": {"src", "alt"},
}
URL_ATTRS = {"href", "src"}
ALLOWED_SCHEMES = {"http", "https", "mailto"}
# Element bodies that are dropped together with the tag.
DROP_CONTENT_TAGS = ["script", "style", "iframe", "object", "embed", "template"]

SCRIPTURE_CLASS = "border-l-4 border-primary bg-blue-50 p-4 my-6 italic font-serif"
SCRIPTURE_PLACEHOLDER = "Enter your scripture quote here..."

# Escape only &, < and > in text; void elements render as <br>, not <br/>.
_FORMATTER = HTMLFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
)


def _safe_url(value: str) -> bool:
    """
    Accept http(s)/mailto URLs, fragments and relative references.
    Protocol-relative forms ("//host", "/\\host", "\\host") point at another site and are refused.
    """
    # Browsers ignore whitespace and control characters inside a URL.
    v = "".join(ch for ch in value if ch > " ")
    if not v or v.startswith(("//", "/\\", "\\")):
        return False
    scheme, sep, _ = v.partition(":")
    if not sep or any(ch in scheme for ch in "/?#"):
        return True
    return scheme.lower() in ALLOWED_SCHEMES


def _clean_attrs(tag) -> None:
    allowed = ALLOWED_ATTRS["*"] | ALLOWED_ATTRS.get(tag.name, set())
    for name, value in list(tag.attrs.items()):
        if name not in allowed or (name in URL_ATTRS and not _safe_url(value)):
            del tag.attrs[name]


def sanitize_html(html: str) -> str:
    """
    Filter lesson HTML through a tag/attribute allow-list.
    Unknown tags are unwrapped (their text is kept), script-like elements are
    removed with their content, comments are dropped and unsafe URLs removed.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser", multi_valued_attributes=None)

    for tag in soup.find_all(DROP_CONTENT_TAGS):
        if not tag.decomposed:
            tag.decompose()
    # Comments, doctypes, CDATA and processing instructions.
    for node in soup.find_all(string=lambda s: isinstance(s, PreformattedString)):
        node.extract()
    for tag in soup.find_all(True):
        if tag.name in ALLOWED_TAGS:
            _clean_attrs(tag)
        else:
            tag.unwrap()

    return soup.decode(formatter=_FORMATTER)


def scripture_quote(selection: str = "") -> str:
    """Styled quotation block wrapping the selected text, or a placeholder when nothing is selected."""
    text = selection.strip() if selection else ""
    body = escape(text, quote=False) if text else SCRIPTURE_PLACEHOLDER
    return f'<blockquote class="{SCRIPTURE_CLASS}">{body}</blockquote>'
