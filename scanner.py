from __future__ import annotations

import re

WHITESPACE = frozenset(" \t\r\n\f\v")
WORD_BREAK = re.compile(r"[\s>/=]")


class Cursor:
    """A mutable scan position over markup text.

    None of the primitives raise: running off the end of the text yields empty
    results and the parser decides whether that is an error.
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self.length = len(source)
        self.index = 0

    def peek(self) -> str:
        if self.at_end():
            return ""
        return self.source[self.index]

    def consume(self, count: int = 1) -> str:
        chars = self.source[self.index : self.index + count]
        self.index = min(self.index + count, self.length)
        return chars

    def skip(self, count: int = 1) -> None:
        self.index = min(self.index + count, self.length)

    def startswith(self, prefix: str) -> bool:
        return self.source.startswith(prefix, self.index)

    def scan_until(self, pattern: str | re.Pattern[str]) -> str:
        """Return the text up to the first match of ``pattern``.

        A plain string is matched literally. The cursor stops in front of the
        match; without a match the remainder of the text is returned.
        """
        if isinstance(pattern, str):
            stop = self.source.find(pattern, self.index)
        else:
            match = pattern.search(self.source, self.index)
            stop = -1 if match is None else match.start()
        if stop == -1:
            stop = self.length
        chars = self.source[self.index : stop]
        self.index = stop
        return chars

    def skip_whitespace(self) -> None:
        while not self.at_end() and self.source[self.index] in WHITESPACE:
            self.index += 1

    def scan_word(self) -> str:
        return self.scan_until(WORD_BREAK)

    def snippet(self, length: int) -> str:
        text = self.source[self.index : self.index + length]
        if self.length - self.index > length:
            text += "..."
        return text

    def line_column(self) -> tuple[int, int]:
        consumed = self.source[: self.index]
        line = consumed.count("\n") + 1
        column = self.index - (consumed.rfind("\n") + 1) + 1
        return line, column

    def at_end(self) -> bool:
        return self.index >= self.length
