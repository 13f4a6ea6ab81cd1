# curriculum/tests/test_richtext.py
from curriculum.richtext import SCRIPTURE_PLACEHOLDER, sanitize_html, scripture_quote


def test_allowed_markup_passes_through():
    html = '<p><b>Grace</b> and <em>peace</em></p><ul><li>one</li></ul>'
    assert sanitize_html(html) == html


def test_scripture_block_class_is_kept():
    html = '<blockquote class="italic font-serif">In the beginning</blockquote>'
    assert sanitize_html(html) == html


def test_unknown_tags_are_unwrapped_but_text_kept():
    assert sanitize_html("<section><p>Amen</p></section>") == "<p>Amen</p>"


def test_script_and_style_bodies_are_removed():
    html = "<p>a</p><script>alert('x')</script><style>p{}</style><p>b</p>"
    assert sanitize_html(html) == "<p>a</p><p>b</p>"


def test_event_handlers_and_unsafe_urls_are_dropped():
    html = '<img src="javascript:alert(1)" onerror="x()" alt="cross"><a href="https://example.com">ok</a>'
    assert sanitize_html(html) == '<img alt="cross"><a href="https://example.com">ok</a>'


def test_unclosed_tags_are_closed_and_text_escaped():
    assert sanitize_html("<p><b>bold & <i>mixed") == "<p><b>bold &amp; <i>mixed</i></b></p>"


def test_comments_are_dropped():
    assert sanitize_html("<p>a<!-- hidden --></p>") == "<p>a</p>"


def test_relative_image_urls_are_kept():
    html = '<img src="lessons/a.png" alt="map"><img src="/media/lessons/1/b.png">'
    assert sanitize_html(html) == html


def test_protocol_relative_urls_are_dropped():
    assert sanitize_html('<a href="//evil.com">x</a>') == "<a>x</a>"
    assert sanitize_html('<a href="/\\evil.com">x</a>') == "<a>x</a>"
    assert sanitize_html('<a href="\\\\evil.com">x</a>') == "<a>x</a>"


def test_scheme_check_ignores_hidden_whitespace_and_case():
    assert sanitize_html('<a href=" JavaScript:x()">x</a>') == "<a>x</a>"
    assert sanitize_html('<a href="java&#9;script:x()">x</a>') == "<a>x</a>"
    assert sanitize_html('<a href="MAILTO:pastor@example.com">x</a>') == '<a href="MAILTO:pastor@example.com">x</a>'
    assert sanitize_html('<a href="#verse-3">x</a>') == '<a href="#verse-3">x</a>'


def test_nested_dropped_elements():
    assert sanitize_html("<p>a</p><template><script>x()</script><p>t</p></template>") == "<p>a</p>"


def test_empty_input():
    assert sanitize_html("") == ""


def test_scripture_quote_wraps_selection():
    out = scripture_quote("  For God so loved the world  ")
    assert out.startswith("<blockquote class=")
    assert out.endswith(">For God so loved the world</blockquote>")


def test_scripture_quote_escapes_markup_and_uses_placeholder():
    assert "&lt;b&gt;" in scripture_quote("<b>x</b>")
    assert SCRIPTURE_PLACEHOLDER in scripture_quote("")
