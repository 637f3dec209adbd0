from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from html.parser import HTMLParser
from typing import Dict, Iterable, List, Optional, Protocol, Set, Tuple


class Anchor(str, Enum):
    CONTAINER_START = "container_start"
    AFTER = "after"
    BODY_END = "body_end"


class Document(Protocol):
    """The slice of the DOM the widget touches."""

    def has_element(self, element_id: str) -> bool: ...

    def set_text(self, element_id: str, text: str) -> bool: ...

    def matches(self, selector: str) -> bool: ...

    def insert_html(self, html: str, *, anchor: Anchor, selector: Optional[str] = None) -> None: ...

    def has_style(self, style_id: str) -> bool: ...

    def add_style(self, style_id: str, css: str) -> None: ...


class _IdCollector(HTMLParser):
    """Collects id -> direct text content for every element carrying an id."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.found: Dict[str, str] = {}
        self._stack: List[Optional[str]] = []

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        element_id = dict(attrs).get("id")
        self._stack.append(element_id)
        if element_id:
            self.found.setdefault(element_id, "")

    def handle_endtag(self, tag: str) -> None:
        if self._stack:
            self._stack.pop()

    def handle_data(self, data: str) -> None:
        if self._stack and self._stack[-1]:
            current = self._stack[-1]
            self.found[current] = (self.found[current] + data).strip()


@dataclass
class Insertion:
    anchor: Anchor
    selector: Optional[str]
    html: str


class MemoryDocument:
    """
    Minimal document model: elements are tracked by id with their text,
    selectors are a static set describing which anchors exist on the page.
    """

    def __init__(self, *, selectors: Iterable[str] = (), elements: Optional[Dict[str, str]] = None):
        self.selectors: Set[str] = set(selectors)
        self.elements: Dict[str, str] = dict(elements or {})
        self.styles: Dict[str, str] = {}
        self.insertions: List[Insertion] = []

    def has_element(self, element_id: str) -> bool:
        return element_id in self.elements

    def text_of(self, element_id: str) -> Optional[str]:
        return self.elements.get(element_id)

    def set_text(self, element_id: str, text: str) -> bool:
        if element_id not in self.elements:
            return False
        self.elements[element_id] = str(text)
        return True

    def matches(self, selector: str) -> bool:
        return selector in self.selectors

    def insert_html(self, html: str, *, anchor: Anchor, selector: Optional[str] = None) -> None:
        if anchor is not Anchor.BODY_END and (selector is None or selector not in self.selectors):
            raise LookupError(f"anchor selector not present: {selector!r}")
        parser = _IdCollector()
        parser.feed(html)
        parser.close()
        self.elements.update(parser.found)
        self.insertions.append(Insertion(anchor=anchor, selector=selector, html=html))

    def has_style(self, style_id: str) -> bool:
        return style_id in self.styles

    def add_style(self, style_id: str, css: str) -> None:
        self.styles[style_id] = css
