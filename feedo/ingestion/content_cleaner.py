"""
Content Cleaner
===============

Text normalization for feed content.

- ``decode_text`` / ``normalize_link``: applied before items are stored
- ``to_telegram_html``: turns an item body into the small HTML subset
  Telegram accepts (bold and line breaks), escaping everything else
- ``extract_text``: plain text, used when a body has to be shortened
"""

import re
import html
from typing import List, Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.element import CData, ProcessingInstruction, Doctype

from ..utils.logging import get_logger_for_component


class ContentCleaner:
    """BeautifulSoup based cleaner producing Telegram-safe HTML."""

    # Elements removed together with their content
    DROPPED_ELEMENTS = {
        "script",
        "style",
        "iframe",
        "embed",
        "object",
        "form",
        "noscript",
        "head",
        "title",
    }

    BOLD_ELEMENTS = {"strong", "b"}

    # Character substitutions applied to every text node
    TEXT_REPLACEMENTS = {
        "\u2013": "-",
        "\u00a0": " ",
    }

    NON_CONTENT_TYPES = (Comment, CData, ProcessingInstruction, Doctype)

    MULTIPLE_NEWLINES_PATTERN = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")
    TRAILING_SPACE_PATTERN = re.compile(r"[ \t]+\n")

    def __init__(self):
        self.logger = get_logger_for_component("content_cleaner")
        self.parser = "html.parser"

    @staticmethod
    def decode_text(value: Optional[str]) -> str:
        """Decode HTML entities and trim surrounding whitespace."""
        if not value:
            return ""
        return html.unescape(value).strip()

    @staticmethod
    def normalize_link(link: Optional[str]) -> str:
        """Canonical form of an item link used for identity."""
        return ContentCleaner.decode_text(link)

    def to_telegram_html(self, html_content: Optional[str]) -> str:
        """Convert feed markup to Telegram's HTML parse mode subset.

        ``<strong>``/``<b>`` become ``<b>``, ``<br>`` becomes a newline, every
        other tag is unwrapped and literal ``<``, ``>``, ``&`` are escaped.
        """
        if not html_content or not html_content.strip():
            return ""

        soup = BeautifulSoup(html_content, self.parser)
        parts: List[str] = []
        self._render(soup, parts)
        return self._normalize_whitespace("".join(parts))

    def extract_text(self, html_content: Optional[str]) -> str:
        """Plain text of a body, with the same substitutions but no escaping."""
        if not html_content or not html_content.strip():
            return ""

        soup = BeautifulSoup(html_content, self.parser)
        parts: List[str] = []
        self._render(soup, parts, escape=False, keep_bold=False)
        return self._normalize_whitespace("".join(parts))

    def _render(self, node, parts: List[str], escape: bool = True, keep_bold: bool = True) -> None:
        for child in node.children:
            if isinstance(child, self.NON_CONTENT_TYPES):
                continue

            if isinstance(child, NavigableString):
                text = self._replace_chars(str(child))
                parts.append(html.escape(text, quote=False) if escape else text)
                continue

            if not isinstance(child, Tag):
                continue

            name = child.name.lower()
            if name in self.DROPPED_ELEMENTS:
                continue

            if name == "br":
                parts.append("\n")
            elif name in self.BOLD_ELEMENTS and keep_bold:
                inner: List[str] = []
                self._render(child, inner, escape, keep_bold)
                content = "".join(inner)
                if content.strip():
                    parts.append(f"<b>{content}</b>")
                else:
                    parts.append(content)
            else:
                self._render(child, parts, escape, keep_bold)

    def _replace_chars(self, text: str) -> str:
        for source, target in self.TEXT_REPLACEMENTS.items():
            text = text.replace(source, target)
        return text

    def _normalize_whitespace(self, text: str) -> str:
        text = self.TRAILING_SPACE_PATTERN.sub("\n", text)
        text = self.MULTIPLE_NEWLINES_PATTERN.sub("\n\n", text)
        return text.strip()
