from __future__ import annotations

import re
from typing import Any

BODY_ESCAPES = {"<": "&lt;", ">": "&gt;", "&": "&amp;"}
ATTRIBUTE_ESCAPES = {**BODY_ESCAPES, '"': "&quot;", "'": "&apos;"}
ENTITIES = {"lt": "<", "gt": ">", "amp": "&", "quot": '"', "apos": "'"}

_BODY_PATTERN = re.compile(r"[<>&]")
_ATTRIBUTE_PATTERN = re.compile(r"[<>&\"']")
_ENTITY_PATTERN = re.compile(r"&(lt|gt|amp|quot|apos);")

# @ attribute-escaped, $ body-escaped, % verbatim, each optionally followed by
# an argument index; ~ is replaced by the id attribute of the stored object.
_PLACEHOLDER = re.compile(r"([@$%])(\d+)?|~")


def text_of(value: Any) -> str:
    """Render a Python value the way it appears in a document."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def escape(value: Any, quotes: bool = False) -> str:
    if value is None:
        return ""
    if quotes:
        return _ATTRIBUTE_PATTERN.sub(lambda m: ATTRIBUTE_ESCAPES[m.group()], text_of(value))
    return _BODY_PATTERN.sub(lambda m: BODY_ESCAPES[m.group()], text_of(value))


def unescape(value: str | None) -> str:
    if value is None:
        return ""
    return _ENTITY_PATTERN.sub(lambda m: ENTITIES[m.group(1)], value)


def render(pattern: str, *args: Any, id_fragment: str = "") -> str:
    """Fill ``pattern`` with ``args``.

    ``@`` substitutes the next argument attribute-escaped, ``$`` body-escaped
    and ``%`` verbatim (already rendered markup). A digit run after a sigil
    selects that argument by index instead and leaves the sequential position
    untouched. ``~`` becomes ``id_fragment``.
    """
    position = -1

    def substitute(match: re.Match[str]) -> str:
        nonlocal position
        sigil = match.group(1)
        if sigil is None:
            return id_fragment
        if match.group(2) is not None:
            index = int(match.group(2))
        else:
            position += 1
            index = position
        try:
            value = args[index]
        except IndexError:
            raise IndexError(f"Pattern {pattern!r} refers to argument {index}, got {len(args)}.") from None
        if sigil == "@":
            return escape(value, quotes=True)
        if sigil == "$":
            return escape(value)
        return text_of(value)

    return _PLACEHOLDER.sub(substitute, pattern)
