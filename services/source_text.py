"""
Source text access for call site analysis.

Positions are 0-based (line, character) pairs; ranges are end-exclusive.
A SourceDocument converts between positions and absolute offsets so the
analyzers can scan across line boundaries.
"""

import bisect
import re
from typing import List, Optional

from core.exceptions import MalformedSourceError
from core.hierarchy_types import Position, Range


class SourceDocument:
    """Line-indexed view of a source file's text."""

    def __init__(self, text: str):
        self.text = text
        self.lines: List[str] = text.split("\n")
        self._line_offsets: List[int] = [0]
        for line in self.lines[:-1]:
            self._line_offsets.append(self._line_offsets[-1] + len(line) + 1)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    def line_at(self, line: int) -> str:
        if line < 0 or line >= len(self.lines):
            raise MalformedSourceError(f"Line {line} is out of range (0..{len(self.lines) - 1})")
        return self.lines[line]

    def offset_at(self, position: Position) -> int:
        line_text = self.line_at(position.line)
        character = min(max(position.character, 0), len(line_text))
        return self._line_offsets[position.line] + character

    def line_end_offset(self, line: int) -> int:
        return self._line_offsets[line] + len(self.line_at(line))

    def position_at(self, offset: int) -> Position:
        offset = min(max(offset, 0), len(self.text))
        line = bisect.bisect_right(self._line_offsets, offset) - 1
        return Position(line, offset - self._line_offsets[line])

    def get_text(self, text_range: Range) -> str:
        return self.text[self.offset_at(text_range.start):self.offset_at(text_range.end)]

    @property
    def end_position(self) -> Position:
        return self.position_at(len(self.text))


_CLASS_DEFINITION = re.compile(r"class\s+([^\(:]+)")


def _indentation_level(line: str) -> int:
    return len(line) - len(line.lstrip())


def find_class_name(document: SourceDocument, position: Position) -> Optional[str]:
    """
    Find the class enclosing a definition by scanning the source backward.

    Walks up from `position.line` and returns the name of the first `class`
    line that is less indented than everything seen so far, or None if the
    definition is at module level.
    """
    try:
        current_indentation = _indentation_level(document.line_at(position.line))
    except MalformedSourceError:
        return None

    for line_number in range(position.line, -1, -1):
        line = document.lines[line_number]
        stripped = line.strip()
        line_indentation = _indentation_level(line)

        if line_indentation < current_indentation and stripped.startswith("class "):
            match = _CLASS_DEFINITION.match(stripped)
            return match.group(1).strip() if match else None

        if line_indentation < current_indentation and stripped and not stripped.startswith("#"):
            current_indentation = line_indentation

    return None
