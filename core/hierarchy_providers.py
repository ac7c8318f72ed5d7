"""
Call Hierarchy Providers - Strategy Pattern Implementation
Each provider answers call hierarchy requests from its own source of truth.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from core.hierarchy_types import (
    CALLABLE_KINDS,
    CallHierarchyItem,
    OutgoingCall,
    Position,
)
from services.python_call_graph import ProjectCallGraph
from services.source_text import SourceDocument, find_class_name

logger = logging.getLogger(__name__)


class CallHierarchyProvider(ABC):
    """
    Abstract Base Class for call hierarchy providers (Strategy Pattern).
    All providers must implement this interface.
    """

    @abstractmethod
    async def prepare_call_hierarchy(self, path: str, position: Position) -> List[CallHierarchyItem]:
        """
        Return the function-like items at a position.

        Args:
            path: File containing the position
            position: 0-based line and character

        Returns:
            Matching items, innermost first; empty if there is none
        """
        pass

    @abstractmethod
    async def find_function(self, path: str, qualified_name: str) -> Optional[CallHierarchyItem]:
        """Return the function or method `qualified_name` (e.g. `Class.method`) declared in `path`."""
        pass

    @abstractmethod
    async def outgoing_calls(self, item: CallHierarchyItem) -> List[OutgoingCall]:
        """Return the calls made by `item`, grouped by callee."""
        pass

    @abstractmethod
    async def source_text(self, uri: str) -> str:
        """Return the full text of the file at `uri`."""
        pass

    @abstractmethod
    async def workspace_roots(self) -> List[str]:
        """Return the folders that make up the workspace."""
        pass

    async def declaration_container_name(self, uri: str, position: Position) -> Optional[str]:
        """Name of the class enclosing the declaration at `position`, None at module level."""
        return find_class_name(SourceDocument(await self.source_text(uri)), position)

    async def entry_points(self) -> List[CallHierarchyItem]:
        """Functions worth starting a diagram from."""
        return []


class InMemoryCallHierarchyProvider(CallHierarchyProvider):
    """
    Provider over call hierarchy data supplied up front.

    Used by hosts that already hold the call hierarchy, e.g. from a
    language server session, and by tests.
    """

    def __init__(
        self,
        sources: Optional[Dict[str, str]] = None,
        calls: Optional[Dict[CallHierarchyItem, List[OutgoingCall]]] = None,
        roots: Iterable[str] = ()
    ):
        """
        Initialize the provider.

        Args:
            sources: File text keyed by uri
            calls: Outgoing calls keyed by caller item
            roots: Workspace root folders
        """
        self.sources: Dict[str, str] = dict(sources or {})
        self.calls: Dict[CallHierarchyItem, List[OutgoingCall]] = dict(calls or {})
        self.roots = list(roots)
        self.items: List[CallHierarchyItem] = []
        for caller, outgoing in self.calls.items():
            self._remember(caller)
            for call in outgoing:
                self._remember(call.to)

    def _remember(self, item: CallHierarchyItem) -> None:
        if item not in self.items:
            self.items.append(item)

    async def prepare_call_hierarchy(self, path: str, position: Position) -> List[CallHierarchyItem]:
        matches = [
            item for item in self.items
            if item.uri == path
            and item.kind in CALLABLE_KINDS
            and item.range.start.line <= position.line <= item.range.end.line
        ]
        return sorted(matches, key=lambda item: item.range.start, reverse=True)

    async def find_function(self, path: str, qualified_name: str) -> Optional[CallHierarchyItem]:
        for item in self.items:
            if item.uri == path and qualified_name in (item.detail, item.name):
                return item
        return None

    async def outgoing_calls(self, item: CallHierarchyItem) -> List[OutgoingCall]:
        return list(self.calls.get(item, []))

    async def source_text(self, uri: str) -> str:
        if uri not in self.sources:
            raise FileNotFoundError(f"No source text for {uri}")
        return self.sources[uri]

    async def workspace_roots(self) -> List[str]:
        return list(self.roots)

    async def entry_points(self) -> List[CallHierarchyItem]:
        return [item for item in self.items if self.calls.get(item)]


class PythonAstCallHierarchyProvider(CallHierarchyProvider):
    """Provider backed by a static `ast` index of a Python project."""

    def __init__(self, root: str, self_tokens: Iterable[str] = ("self", "cls")):
        """
        Initialize the provider.

        Args:
            root: Project directory to index
            self_tokens: Names referring to the instance or class inside methods
        """
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise NotADirectoryError(f"Project root is not a directory: {root}")
        self.graph = ProjectCallGraph(self.root, self_tokens=self_tokens)

    async def prepare_call_hierarchy(self, path: str, position: Position) -> List[CallHierarchyItem]:
        definition = self.graph.definition_at(path, position)
        return [definition.item] if definition else []

    async def find_function(self, path: str, qualified_name: str) -> Optional[CallHierarchyItem]:
        definition = self.graph.find_function(path, qualified_name)
        return definition.item if definition else None

    async def outgoing_calls(self, item: CallHierarchyItem) -> List[OutgoingCall]:
        return self.graph.outgoing_calls(item)

    async def source_text(self, uri: str) -> str:
        return Path(uri).read_text(encoding="utf-8", errors="replace")

    async def declaration_container_name(self, uri: str, position: Position) -> Optional[str]:
        definition = self.graph.definition_at(uri, position)
        if definition is not None and definition.item.selection_range.start == position:
            return definition.class_name
        return await super().declaration_container_name(uri, position)

    async def workspace_roots(self) -> List[str]:
        return [str(self.root)]

    async def entry_points(self) -> List[CallHierarchyItem]:
        return [definition.item for definition in self.graph.entry_points()]
