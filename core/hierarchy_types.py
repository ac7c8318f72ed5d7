"""
Types shared with call hierarchy providers.

These mirror what a language server reports for call hierarchy requests:
items identify a function symbol, outgoing calls group every call site of
one callee under a single entry.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List


@dataclass(frozen=True, order=True)
class Position:
    line: int
    character: int

    def __str__(self) -> str:
        return f"{self.line}:{self.character}"


@dataclass(frozen=True)
class Range:
    start: Position
    end: Position

    @classmethod
    def from_coordinates(cls, start_line: int, start_char: int, end_line: int, end_char: int) -> "Range":
        return cls(Position(start_line, start_char), Position(end_line, end_char))

    def contains(self, other: "Range") -> bool:
        """True if `other` lies completely inside this range."""
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


class SymbolKind(Enum):
    FILE = "file"
    MODULE = "module"
    CLASS = "class"
    METHOD = "method"
    PROPERTY = "property"
    FUNCTION = "function"
    VARIABLE = "variable"


CALLABLE_KINDS = frozenset({SymbolKind.METHOD, SymbolKind.FUNCTION, SymbolKind.PROPERTY})


@dataclass(frozen=True)
class CallHierarchyItem:
    """A function-like symbol: its name, kind and where it is declared."""
    name: str
    kind: SymbolKind
    uri: str
    range: Range
    selection_range: Range
    detail: str = ""

    @property
    def qualified_name(self) -> str:
        return self.detail or self.name

    def identity(self) -> str:
        return f"{self.uri}#{self.name}@{self.range.start}"


@dataclass
class OutgoingCall:
    """All call sites of one callee within the caller, as grouped by the host."""
    to: CallHierarchyItem
    from_ranges: List[Range] = field(default_factory=list)
