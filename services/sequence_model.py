"""
Sequence diagram model produced by call graph traversal.
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import Optional, Tuple

from core.hierarchy_types import CallHierarchyItem, Range
from services.participant_registry import Participant, ParticipantRegistry


# ============================================================
# CALL SITES
# ============================================================

@dataclass(frozen=True)
class CallSite:
    """One concrete occurrence of a call within the caller's source."""
    target: CallHierarchyItem
    source_range: Range
    is_function_call: bool = False
    invoked_object_qualifier: str = ""
    argument_text: str = ""
    argument_range: Optional[Range] = None


# ============================================================
# MESSAGES
# ============================================================

TRUNCATION_NOTE = "further calls omitted - max depth reached"


class MessageKind(Enum):
    CALL = "call"
    RETURN = "return"
    NOTE = "note"


@dataclass(frozen=True)
class SequenceMessage:
    """One diagram statement between two participants."""
    from_participant: Participant
    to_participant: Participant
    label: str
    sequence_number: str
    kind: MessageKind = MessageKind.CALL


def format_sequence_number(parent: str, index: int) -> str:
    """`index` at root level, `parent.index` below it."""
    return str(index) if not parent else f"{parent}.{index}"


def sequence_sort_key(sequence_number: str) -> Tuple[int, ...]:
    """Component-wise key: "2.10" sorts after "2.9"."""
    return tuple(int(part) for part in sequence_number.split(".") if part)


# ============================================================
# MODEL
# ============================================================

@dataclass(frozen=True)
class SequenceModel:
    """Participants and messages of one diagram, immutable once built."""
    entry_point: CallHierarchyItem
    participants: ParticipantRegistry
    messages: Tuple[SequenceMessage, ...] = ()
    entry_class: str = ""
    workspace_root: str = ""

    @property
    def relative_entry_path(self) -> str:
        path = PurePath(self.entry_point.uri)
        if self.workspace_root and path.is_relative_to(self.workspace_root):
            return path.relative_to(self.workspace_root).as_posix()
        return path.as_posix()

    @property
    def title(self) -> str:
        function = f"{self.entry_class}.{self.entry_point.name}" if self.entry_class else self.entry_point.name
        return f"Sequence diagram of {function}() of {self.relative_entry_path}"

    def calls(self) -> Tuple[SequenceMessage, ...]:
        return tuple(m for m in self.messages if m.kind is MessageKind.CALL)

    def serialize(self, formatter=None) -> str:
        """Render the model, as a Mermaid diagram unless told otherwise."""
        if formatter is None:
            from services.diagram_formatters import MermaidFormatter
            formatter = MermaidFormatter()
        return formatter.format(self)

    def suggested_file_name(self, extension: str = "mmd") -> str:
        """Default file name made of the entry's path, class and function."""
        parts = [self.relative_entry_path]
        function = f"{self.entry_class}.{self.entry_point.name}" if self.entry_class else self.entry_point.name
        parts.append(function)

        name = "-".join(parts)
        name = re.sub(r"[/\\]+", "_", name)
        name = re.sub(r'[<>:"|?*\x00-\x1f]', "", name).strip(" .")
        return f"{name or 'sequence-diagram'}.{extension.lstrip('.')}"
