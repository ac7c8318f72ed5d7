"""
Soft wrapping of long message labels.
"""

from typing import List, Optional


class TextWrapper:
    """
    Wraps text to lines of about `width` characters.

    A line is broken at whitespace or at punctuation typical in argument
    lists. When the ideal column holds neither, the break is nudged at most
    `soft_limit` characters forward or backward; failing that it is forced
    forward to the next eligible character, unless that would leave only a
    stub behind, in which case the line is left long.
    """

    DEFAULT_WIDTH = 30
    DEFAULT_SOFT_LIMIT = 10
    DEFAULT_MARKER = "<br>"

    PUNCTUATION = frozenset("[].,:(){")

    def __init__(self, width: int = DEFAULT_WIDTH, soft_limit: int = DEFAULT_SOFT_LIMIT, marker: str = DEFAULT_MARKER):
        if width < 1 or soft_limit < 1:
            raise ValueError("width and soft_limit must be positive")
        if not marker:
            raise ValueError("marker must not be empty")
        self.width = width
        self.soft_limit = soft_limit
        self.marker = marker

    def wrap(self, text: str, width: Optional[int] = None) -> str:
        width = width or self.width
        threshold = width + self.soft_limit

        if self.marker not in text and len(text) <= threshold:
            return text

        lines: List[str] = []
        for segment in text.split(self.marker):
            lines.extend(self._wrap_segment(segment, width))

        return self.marker.join(lines)

    def _wrap_segment(self, segment: str, width: int) -> List[str]:
        lines = []
        rest = segment.strip()

        while len(rest) > width + self.soft_limit:
            cut = self._find_break(rest, width)
            if cut is None:
                break

            if rest[cut].isspace():
                head = rest[:cut].rstrip()
            else:
                head = rest[:cut + 1]
            rest = rest[cut + 1:].lstrip()

            if head:
                lines.append(head)

        if rest:
            lines.append(rest)
        return lines

    def _can_break_at(self, char: str) -> bool:
        return char.isspace() or char in self.PUNCTUATION

    def _find_break(self, text: str, width: int) -> Optional[int]:
        ideal = width
        if self._can_break_at(text[ideal]):
            return ideal

        forward = range(ideal + 1, min(ideal + self.soft_limit, len(text)))
        backward = range(ideal - 1, max(ideal - self.soft_limit, 0), -1)

        # Close to the end, prefer going back so the last line is not a stub
        if len(text) - ideal < 1.5 * self.soft_limit:
            searches = (backward, forward)
        else:
            searches = (forward, backward)

        for candidates in searches:
            for index in candidates:
                if self._can_break_at(text[index]):
                    return index

        for index in range(ideal + self.soft_limit, len(text)):
            if self._can_break_at(text[index]):
                if len(text) - index - 1 < self.soft_limit:
                    return None
                return index

        return None
