from __future__ import annotations

import re

import fitz
from bs4 import BeautifulSoup

HTML_LIKE_TYPES = ("application/xml", "application/xhtml+xml")
STRIP_TAGS = ("script", "style", "noscript", "template")


def normalize_text(text: str) -> str:
    text = text.replace("\xa0", " ")
    text = re.sub(r"\r\n?", "\n", text)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def mime_type(content_type: str | None) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def is_html_content_type(content_type: str | None) -> bool:
    """True for types the primary fetch decodes as HTML; a missing type counts."""
    mime = mime_type(content_type)
    if not mime:
        return True
    if mime.startswith("text/") or mime in HTML_LIKE_TYPES:
        return True
    return mime.startswith("application/") and mime.endswith("+xml")


class Decoder:
    name = "base"

    def accepts(self, content_type: str, hint: str = "") -> bool:
        raise NotImplementedError

    def decode(self, body: bytes, *, encoding: str | None = None) -> str:
        raise NotImplementedError


class HtmlDecoder(Decoder):
    """Visible text of an HTML document."""

    name = "html"

    def accepts(self, content_type: str, hint: str = "") -> bool:
        return True

    def decode(self, body: bytes, *, encoding: str | None = None) -> str:
        markup = body.decode(encoding or "utf-8", errors="replace")
        soup = BeautifulSoup(markup, "html.parser")
        for tag in soup(STRIP_TAGS):
            tag.decompose()
        return normalize_text(soup.get_text("\n"))


class PdfDecoder(Decoder):
    """Plain text of every page of a PDF, in page order."""

    name = "pdf"

    def accepts(self, content_type: str, hint: str = "") -> bool:
        haystack = f"{content_type} {hint}".lower()
        return "pdf" in haystack

    def decode(self, body: bytes, *, encoding: str | None = None) -> str:
        doc = fitz.open(stream=body, filetype="pdf")
        try:
            pages = [doc.load_page(index).get_text() for index in range(doc.page_count)]
        finally:
            doc.close()
        return normalize_text("\n".join(pages))


class DecoderRegistry:
    """Ordered decoder set; the first decoder accepting a response wins."""

    def __init__(self, decoders: list[Decoder] | None = None):
        self._decoders: list[Decoder] = list(decoders) if decoders else [PdfDecoder(), HtmlDecoder()]

    def register(self, decoder: Decoder) -> None:
        self._decoders.insert(0, decoder)

    def select(self, content_type: str | None, hint: str = "") -> Decoder:
        mime = mime_type(content_type)
        for decoder in self._decoders:
            if decoder.accepts(mime, hint):
                return decoder
        return HtmlDecoder()
