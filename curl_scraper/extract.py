"""HTML parsing and embedded script-data extraction.

Built on BeautifulSoup with the standard library ``html.parser`` backend.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from .errors import HtmlParseError
from .models import HttpResponse

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
HTML_BODY_MARKERS = ("<!doctype html", "<html")
DEFAULT_SCRIPT_ID = "__NEXT_DATA__"


@dataclass
class HtmlElement:
    """Snapshot of one element and its descendants."""
    tag_name: str
    id: Optional[str]
    class_name: str
    text_content: str
    inner_html: str
    attributes: Dict[str, str] = field(default_factory=dict)
    children: List["HtmlElement"] = field(default_factory=list)

    @classmethod
    def from_tag(cls, tag: Tag) -> "HtmlElement":
        attributes = {
            name: " ".join(value) if isinstance(value, list) else value
            for name, value in tag.attrs.items()
        }
        return cls(
            tag_name=tag.name,
            id=attributes.get("id"),
            class_name=attributes.get("class", ""),
            text_content=tag.get_text(),
            inner_html=tag.decode_contents(),
            attributes=attributes,
            children=[cls.from_tag(child) for child in tag.find_all(True, recursive=False)],
        )


class ParsedDocument:
    """A parsed HTML document with DOM-style lookups."""

    def __init__(self, html: str):
        self.html = html
        self._soup = BeautifulSoup(html, "html.parser")

    @property
    def soup(self) -> BeautifulSoup:
        return self._soup

    @property
    def elements(self) -> List[HtmlElement]:
        """Top-level elements of the document."""
        return [HtmlElement.from_tag(tag) for tag in self._soup.find_all(True, recursive=False)]

    @property
    def title(self) -> Optional[str]:
        return self._soup.title.get_text(strip=True) if self._soup.title else None

    def get_by_id(self, element_id: str) -> Optional[HtmlElement]:
        tag = self._soup.find(id=element_id)
        return HtmlElement.from_tag(tag) if tag is not None else None

    def query_selector(self, selector: str) -> Optional[HtmlElement]:
        tag = self._soup.select_one(selector)
        return HtmlElement.from_tag(tag) if tag is not None else None

    def query_selector_all(self, selector: str) -> List[HtmlElement]:
        return [HtmlElement.from_tag(tag) for tag in self._soup.select(selector)]

    def get_script_data(self, script_id: str = DEFAULT_SCRIPT_ID) -> Any:
        """JSON payload of ``<script id=...>``; ``None`` when missing, not a script, or invalid."""
        tag = self._soup.find(id=script_id)
        if tag is None or tag.name != "script":
            return None
        try:
            return json.loads(tag.string or tag.get_text())
        except ValueError:
            logger.debug("Script %s does not contain valid JSON", script_id)
            return None


class HtmlExtractor:
    """Recognizes HTML responses and parses them into ``ParsedDocument`` objects."""

    @staticmethod
    def is_html_response(response: HttpResponse) -> bool:
        content_type = (response.header("content-type") or "").lower()
        if any(html_type in content_type for html_type in HTML_CONTENT_TYPES):
            return True
        body = response.body.lower()
        return any(marker in body for marker in HTML_BODY_MARKERS)

    def parse(self, response: HttpResponse) -> ParsedDocument:
        if not self.is_html_response(response):
            raise HtmlParseError(f"Response from {response.url} is not HTML")
        return ParsedDocument(response.body)

    def get_script_data(self, response: HttpResponse, script_id: str = DEFAULT_SCRIPT_ID) -> Any:
        return self.parse(response).get_script_data(script_id)


__all__ = ["HtmlElement", "ParsedDocument", "HtmlExtractor", "DEFAULT_SCRIPT_ID"]
