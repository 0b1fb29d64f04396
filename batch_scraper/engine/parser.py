"""DOM parsing helpers turning a page body into structured content."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any

from selectolax.parser import HTMLParser, Node

from ..errors import ExtractionError

MAX_FIELD_CHARS = 1_000_000
HEADING_TAGS = ("h1", "h2", "h3")

_WHITESPACE = re.compile(r"\s+")


@dataclass(slots=True)
class OpenGraph:
    title: str | None = None
    description: str | None = None
    image: str | None = None
    url: str | None = None
    type: str | None = None


@dataclass(slots=True)
class HeadingGroup:
    tag: str
    values: list[str]


@dataclass(slots=True)
class Link:
    href: str
    text: str


@dataclass(slots=True)
class Image:
    src: str
    alt: str


@dataclass(slots=True)
class ExtractedContent:
    """Structured representation of one parsed page."""

    title: str | None
    description: str | None
    og: OpenGraph
    headings: list[HeadingGroup]
    links: list[Link] = field(default_factory=list)
    images: list[Image] = field(default_factory=list)
    text: str = ""

    def structured(self) -> dict[str, Any]:
        """Everything except the full-page text, ready for a JSON column."""

        payload = asdict(self)
        payload.pop("text")
        return payload


def truncate(value: str, limit: int = MAX_FIELD_CHARS) -> str:
    return value if len(value) <= limit else value[:limit]


def collapse_whitespace(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


class HtmlExtractor:
    """Extract title, meta, Open Graph, headings, links, images and text."""

    def extract(self, html: str) -> ExtractedContent:
        try:
            return self._extract(HTMLParser(html))
        except Exception as exc:  # noqa: BLE001
            raise ExtractionError(f"Failed to parse HTML: {exc}") from exc

    def _extract(self, parser: HTMLParser) -> ExtractedContent:
        og = OpenGraph(
            title=self._meta(parser, 'meta[property="og:title"]'),
            description=self._meta(parser, 'meta[property="og:description"]'),
            image=self._meta(parser, 'meta[property="og:image"]'),
            url=self._meta(parser, 'meta[property="og:url"]'),
            type=self._meta(parser, 'meta[property="og:type"]'),
        )

        title_node = parser.css_first("title")
        title = (title_node.text().strip() if title_node is not None else "") or og.title

        description = self._meta(parser, 'meta[name="description"]') or og.description

        headings = [
            HeadingGroup(
                tag=tag,
                values=[text for text in (node.text().strip() for node in parser.css(tag)) if text],
            )
            for tag in HEADING_TAGS
        ]

        links = [
            Link(href=self._attr(node, "href"), text=node.text().strip())
            for node in parser.css("a[href]")
        ]
        images = [
            Image(src=self._attr(node, "src"), alt=self._attr(node, "alt"))
            for node in parser.css("img[src]")
        ]

        body = parser.body
        text = collapse_whitespace(body.text()) if body is not None else ""

        return ExtractedContent(
            title=title or None,
            description=description,
            og=og,
            headings=headings,
            links=links,
            images=images,
            text=text,
        )

    @staticmethod
    def _meta(parser: HTMLParser, selector: str) -> str | None:
        node = parser.css_first(selector)
        if node is None:
            return None
        return node.attributes.get("content") or None

    @staticmethod
    def _attr(node: Node, name: str) -> str:
        return node.attributes.get(name) or ""


__all__ = [
    "ExtractedContent",
    "HEADING_TAGS",
    "HeadingGroup",
    "HtmlExtractor",
    "Image",
    "Link",
    "MAX_FIELD_CHARS",
    "OpenGraph",
    "collapse_whitespace",
    "truncate",
]
