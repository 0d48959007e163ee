from __future__ import annotations

import re
from dataclasses import dataclass, field

from escaping import escape, unescape
from scanner import Cursor

SNIPPET_LENGTH = 50

_TEXT_END = re.compile(r"<")


class ParseError(ValueError):
    """Raised when a document is not well-formed."""

    def __init__(
        self,
        message: str,
        tag: str | None = None,
        attribute: str | None = None,
        snippet: str = "",
        position: tuple[int, int] | None = None,
    ) -> None:
        self.message = message
        self.tag = tag
        self.attribute = attribute
        self.snippet = snippet
        self.position = position
        super().__init__(self._format())

    def _format(self) -> str:
        text = self.message
        if self.attribute is not None:
            text += f" (attribute '{self.attribute}'"
            text += f" of <{self.tag}>)" if self.tag else ")"
        elif self.tag is not None:
            text += f" (in <{self.tag}>)"
        if self.position is not None:
            text += f" at line {self.position[0]}, column {self.position[1]}"
        return f"{text} near {self.snippet!r}"


class SchemaError(ValueError):
    """Raised when a required element is missing from a document."""

    def __init__(self, name: str, parent: str | None = None) -> None:
        self.name = name
        self.parent = parent
        where = f" in <{parent}>" if parent else ""
        super().__init__(f"Missing required element <{name}>{where}.")


@dataclass
class Node:
    def text_content(self) -> str:
        raise NotImplementedError

    def to_markup(self) -> str:
        raise NotImplementedError


@dataclass
class Text(Node):
    value: str

    def text_content(self) -> str:
        return self.value

    def to_markup(self) -> str:
        return escape(self.value)


@dataclass
class Element(Node):
    name: str
    attributes: dict[str, str] = field(default_factory=dict)
    children: list[Node] = field(default_factory=list)

    def get(self, name: str, default: str | None = None) -> str | None:
        return self.attributes.get(name, default)

    def has(self, name: str) -> bool:
        return name in self.attributes

    def text_content(self) -> str:
        return "".join(child.text_content() for child in self.children)

    def elements(self) -> list[Element]:
        return [child for child in self.children if isinstance(child, Element)]

    def all(self, name: str) -> list[Element]:
        return [child for child in self.elements() if child.name == name]

    def element(self, name: str) -> Element | None:
        for child in self.elements():
            if child.name == name:
                return child
        return None

    def require(self, name: str) -> Element:
        child = self.element(name)
        if child is None:
            raise SchemaError(name, parent=self.name)
        return child

    def first_element(self) -> Element | None:
        for child in self.elements():
            return child
        return None

    def to_markup(self) -> str:
        attributes = "".join(f' {key}="{escape(value, quotes=True)}"' for key, value in self.attributes.items())
        if not self.children:
            return f"<{self.name}{attributes}/>"
        body = "".join(child.to_markup() for child in self.children)
        return f"<{self.name}{attributes}>{body}</{self.name}>"


class _EndTag:
    """Returned by the parser for a closing tag; never part of a tree."""


END_TAG = _EndTag()


class MarkupParser:
    def __init__(self, source: str) -> None:
        self.cursor = Cursor(source)

    @classmethod
    def from_source(cls, source: str) -> Element:
        return cls(source).parse_document()

    def parse_document(self) -> Element:
        self._skip_prolog()
        if self.cursor.peek() != "<":
            self._error("Expected a root element")
        node = self.parse_node()
        if not isinstance(node, Element):
            self._error("Expected a root element")
        return node

    def parse_node(self) -> Node | _EndTag:
        cursor = self.cursor
        if cursor.peek() != "<":
            return Text(unescape(cursor.scan_until(_TEXT_END)))
        cursor.skip(1)
        if cursor.peek() == "/":
            cursor.scan_until(">")
            cursor.skip(1)
            return END_TAG
        name = cursor.scan_word()
        if not name:
            self._error("Expected a tag name")
        element = Element(name=name)
        cursor.skip_whitespace()
        while cursor.peek() not in (">", "/"):
            if cursor.at_end():
                self._error("Unexpected end of input in tag", tag=name)
            self._parse_attribute(element)
        if cursor.consume() == "/":
            if cursor.consume() != ">":
                self._error('Expected ">" after "/" in empty tag', tag=name)
            return element
        while True:
            if cursor.at_end():
                self._error("Unexpected end of input, element is not closed", tag=name)
            child = self.parse_node()
            if child is END_TAG:
                break
            element.children.append(child)
        return element

    def _parse_attribute(self, element: Element) -> None:
        cursor = self.cursor
        attribute = cursor.scan_word()
        if not attribute:
            self._error("Expected an attribute name", tag=element.name)
        cursor.skip_whitespace()
        if cursor.consume() != "=":
            self._error('Expected "=" after attribute name', tag=element.name, attribute=attribute)
        cursor.skip_whitespace()
        quote = cursor.consume()
        if quote not in ('"', "'"):
            self._error("Expected single- or double-quoted attribute value", tag=element.name, attribute=attribute)
        value = cursor.scan_until(quote)
        if cursor.consume() != quote:
            self._error("Unterminated attribute value", tag=element.name, attribute=attribute)
        cursor.skip_whitespace()
        element.attributes[attribute] = unescape(value)

    def _skip_prolog(self) -> None:
        cursor = self.cursor
        cursor.skip_whitespace()
        if cursor.startswith("<?"):
            cursor.scan_until("?>")
            cursor.skip(2)
            cursor.skip_whitespace()

    def _error(self, message: str, tag: str | None = None, attribute: str | None = None) -> None:
        raise ParseError(
            message,
            tag=tag,
            attribute=attribute,
            snippet=self.cursor.snippet(SNIPPET_LENGTH),
            position=self.cursor.line_column(),
        )


def parse(source: str) -> Element:
    return MarkupParser.from_source(source)
