"""
Content Cleaner Tests
=====================

Conversion of feed markup into Telegram's HTML subset.
"""

import pytest

from feedo.ingestion.content_cleaner import ContentCleaner


class TestContentCleaner:
    """Test suite for ContentCleaner."""

    @pytest.fixture
    def cleaner(self):
        return ContentCleaner()

    def test_decode_text(self, cleaner):
        assert cleaner.decode_text("  Fish &amp; Chips &#8211; today ") == "Fish & Chips – today"
        assert cleaner.decode_text(None) == ""

    def test_normalize_link(self, cleaner):
        assert cleaner.normalize_link(" https://example.com/?a=1&amp;b=2 ") == "https://example.com/?a=1&b=2"
        assert cleaner.normalize_link(None) == ""

    def test_bold_kept_other_tags_unwrapped(self, cleaner):
        result = cleaner.to_telegram_html('<p>Hello <strong>big</strong> <a href="x">world</a></p>')

        assert result == "Hello <b>big</b> world"

    def test_b_becomes_bold(self, cleaner):
        assert cleaner.to_telegram_html("<b>Bold</b> text") == "<b>Bold</b> text"

    def test_line_breaks(self, cleaner):
        assert cleaner.to_telegram_html("one<br>two<br/>three") == "one\ntwo\nthree"

    def test_collapses_blank_lines(self, cleaner):
        assert cleaner.to_telegram_html("a<br><br><br><br>b") == "a\n\nb"

    def test_escapes_text(self, cleaner):
        assert cleaner.to_telegram_html("<p>1 &lt; 2 &amp; 3 &gt; 2</p>") == "1 &lt; 2 &amp; 3 &gt; 2"

    def test_drops_scripts_and_comments(self, cleaner):
        result = cleaner.to_telegram_html("<script>alert(1)</script><!-- note -->Visible<style>p{}</style>")

        assert result == "Visible"

    def test_replaces_dash_and_nbsp(self, cleaner):
        assert cleaner.to_telegram_html("a–b\u00a0c") == "a-b c"

    def test_empty_bold_is_dropped(self, cleaner):
        assert cleaner.to_telegram_html("x<strong> </strong>y") == "x y"

    def test_empty_input(self, cleaner):
        assert cleaner.to_telegram_html("") == ""
        assert cleaner.to_telegram_html(None) == ""
        assert cleaner.extract_text("   ") == ""

    def test_extract_text_has_no_markup(self, cleaner):
        result = cleaner.extract_text("<p><strong>Big</strong> &amp; small</p>")

        assert result == "Big & small"
