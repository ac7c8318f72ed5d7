"""
Call Site Analyzer
Derives call semantics from raw source text around a referenced name.

No parser is involved: whether a name is invoked, on what object, and with
which arguments is read directly from the characters surrounding it, so
the analysis also works on code that does not parse.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from core.exceptions import MalformedSourceError
from core.hierarchy_types import Range
from services.source_text import SourceDocument

logger = logging.getLogger(__name__)

# Qualifier meaning "the same object as the caller", never a valid identifier
SELF_SENTINEL = "<self>"

_OPENING_PARENTHESIS_AHEAD = re.compile(r"\s*\(")


def _is_qualifier_char(char: str) -> bool:
    return char == "_" or char == "." or (char.isascii() and char.isalnum())


@dataclass
class CallItemInfo:
    """What the text tells about one call site."""
    is_function_call: bool = False
    invoked_object_qualifier: str = ""
    argument_text: str = ""
    argument_range: Optional[Range] = None


class CallSiteAnalyzer:
    """
    Classifies references and extracts invoked objects and arguments.

    For `a.b.c(x, y)` with the name range covering `c`, the analysis yields
    a function call on qualifier `a.b` with argument text `x, y`.
    """

    def __init__(self, self_tokens: Iterable[str] = ("self",)):
        self.self_tokens = tuple(self_tokens)

    def analyze(
        self,
        document: SourceDocument,
        name_range: Range,
        signature_document: Optional[SourceDocument] = None,
        signature_range: Optional[Range] = None
    ) -> CallItemInfo:
        """
        Analyze the reference at `name_range` in `document`.

        If a signature location is given, `argument_text` is taken from the
        callee's declaration instead of the call site. `argument_range`
        always refers to the literal arguments in `document`.
        """
        info = CallItemInfo()

        try:
            info.is_function_call = self.is_function_call(document, name_range)

            # The rest only makes sense for functions
            if not info.is_function_call:
                return info

            info.invoked_object_qualifier = self.find_invoked_object(document, name_range)
            info.argument_text, info.argument_range = self.collect_arguments(document, name_range)
        except MalformedSourceError as e:
            logger.warning(f"⚠️ Cannot inspect call at {name_range}: {e}")
            return info

        if signature_document is not None and signature_range is not None:
            try:
                info.argument_text, _ = self.collect_arguments(signature_document, signature_range)
            except MalformedSourceError as e:
                logger.warning(f"⚠️ Cannot read signature at {signature_range}: {e}")

        return info

    def is_function_call(self, document: SourceDocument, name_range: Range) -> bool:
        """True if the name is followed, possibly after line breaks, by `(`."""
        end = document.offset_at(name_range.end)

        if document.text[end:end + 1] == "(":
            return True

        # The parenthesis may be pushed to the next line
        next_line = min(name_range.end.line + 1, document.line_count - 1)
        lookahead_end = document.line_end_offset(next_line)

        return _OPENING_PARENTHESIS_AHEAD.match(document.text[end:lookahead_end]) is not None

    def find_invoked_object(self, document: SourceDocument, name_range: Range) -> str:
        """
        Return the dotted qualifier preceding the name.

        `a.b.c()` gives `a.b`, `self.repo.save()` gives `repo` and
        `self.save()` gives the self sentinel. An unqualified name gives
        the empty string.
        """
        start = document.offset_at(name_range.start)
        text = document.text

        if start == 0 or text[start - 1] != ".":
            return ""

        # Maximal run of qualifier characters ending right before the dot
        index = start - 2
        while index >= 0 and _is_qualifier_char(text[index]):
            index -= 1
        qualifier = text[index + 1:start - 1]

        return self.normalize_qualifier(qualifier)

    def normalize_qualifier(self, qualifier: str) -> str:
        for token in self.self_tokens:
            if qualifier == token:
                return SELF_SENTINEL
            if qualifier.startswith(f"{token}."):
                return qualifier[len(token) + 1:]
        return qualifier

    def collect_arguments(self, document: SourceDocument, name_range: Range) -> tuple[str, Optional[Range]]:
        """
        Collect the text between the first `(` after the name and its match.

        Returns the text and the range spanning both parentheses. If the
        parenthesis is never closed, everything up to the end of the
        document is returned.
        """
        text = document.text
        index = max(document.offset_at(name_range.end) - 1, 0)

        depth = 0
        opened_at = None

        while index < len(text):
            char = text[index]
            if char == "(":
                if opened_at is None:
                    opened_at = index
                depth += 1
            elif char == ")" and opened_at is not None:
                depth -= 1
                if depth == 0:
                    return (
                        text[opened_at + 1:index],
                        Range(document.position_at(opened_at), document.position_at(index + 1))
                    )
            index += 1

        if opened_at is None:
            return "", None

        # Never closed, go with what was collected
        logger.debug(f"Unbalanced parentheses after {name_range}, truncating at end of document")
        return (
            text[opened_at + 1:],
            Range(document.position_at(opened_at), document.end_position)
        )
