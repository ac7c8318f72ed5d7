"""
Participant Registry
Deduplicates diagram participants across the whole call graph.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class ParticipantKey:
    """Structural identity of a participant."""
    namespace: str
    class_name: str
    object_name: str


@dataclass
class Participant:
    """An object or module taking part in the interaction."""
    key: ParticipantKey
    id: str
    display_namespace: str = ""

    def __post_init__(self):
        if not self.display_namespace:
            self.display_namespace = self.key.namespace

    @property
    def display_name(self) -> str:
        if not self.display_namespace:
            return self.key.class_name
        return f"{self.display_namespace}/{self.key.class_name}"

    def alias(self, line_break: str = "\n") -> str:
        if not self.key.object_name:
            return self.display_name
        return f"{self.display_name}{line_break}:{self.key.object_name}"


def find_longest_common_prefix(values: List[str]) -> str:
    """Longest common prefix of the given strings."""
    if not values:
        return ""

    ordered = sorted(values)
    first, last = ordered[0], ordered[-1]

    length = 0
    while length < min(len(first), len(last)) and first[length] == last[length]:
        length += 1

    return first[:length]


class ParticipantRegistry:
    """
    Stores participants keyed by ParticipantKey.

    Ids (p1, p2, ...) are handed out once, in registration order, and
    never change. `finalize()` computes display namespaces once the full
    graph is known.
    """

    def __init__(self):
        self._participants: Dict[ParticipantKey, Participant] = {}
        self._finalized = False

    def __len__(self) -> int:
        return len(self._participants)

    def __contains__(self, key: ParticipantKey) -> bool:
        return key in self._participants

    def __iter__(self):
        return iter(self._participants.values())

    def register(self, key: ParticipantKey) -> Participant:
        existing = self._participants.get(key)
        if existing is not None:
            return existing

        participant = Participant(key=key, id=f"p{len(self._participants) + 1}")
        self._participants[key] = participant
        self._finalized = False
        return participant

    def get(self, key: ParticipantKey) -> Optional[Participant]:
        return self._participants.get(key)

    def all(self) -> List[Participant]:
        return list(self._participants.values())

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def finalize(self) -> None:
        """Strip the common path prefix from every participant's namespace."""
        if self._finalized:
            return

        participants = self.all()
        prefix = find_longest_common_prefix([p.key.namespace for p in participants])

        # Never cut a path component in half
        prefix = prefix[:prefix.rfind("/") + 1]

        for participant in participants:
            namespace = participant.key.namespace
            while prefix and namespace.startswith(prefix):
                namespace = namespace[len(prefix):]
            participant.display_namespace = namespace

        self._finalized = True
