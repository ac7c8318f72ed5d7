"""
Sequence Diagram Service
Reverse engineers a sequence diagram from the call hierarchy of a function.

The GraphTraversalEngine walks the outgoing calls of an entry function
depth first, in source evaluation order, and emits call and return
messages with hierarchical sequence numbers (1, 1.1, 1.2, 2, ...).
SequenceDiagramService ties the engine to a call hierarchy provider and a
diagram formatter.
"""

import asyncio
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Dict, List, Optional, Sequence, Union

from core.call_logger import CallLogger
from core.exceptions import EntryResolutionError, SequenceDiagramError
from core.hierarchy_types import CallHierarchyItem, Position
from core.settings import Settings
from services.call_order import CallOrderReconstructor
from services.call_site_analyzer import SELF_SENTINEL, CallSiteAnalyzer
from services.diagram_formatters import get_formatter
from services.participant_registry import Participant, ParticipantKey, ParticipantRegistry
from services.sequence_model import (
    TRUNCATION_NOTE,
    CallSite,
    MessageKind,
    SequenceMessage,
    SequenceModel,
    format_sequence_number,
)
from services.skip_policy import SkipConfiguration, SkipPolicy
from services.text_wrapper import TextWrapper

logger = logging.getLogger(__name__)


# Returned by a traversal below the maximum depth when the node would
# have had further calls to show
TRUNCATED = object()


# ============================================================
# TRAVERSAL CONTEXT
# ============================================================

@dataclass
class TraversalStats:
    nodes_visited: int = 0
    calls_skipped: int = 0
    nodes_failed: int = 0


@dataclass
class TraversalContext:
    """State of one build, threaded through the recursion."""
    registry: ParticipantRegistry
    skip_policy: SkipPolicy
    workspace_root: str = ""
    cancel_event: Optional[asyncio.Event] = None
    stats: TraversalStats = field(default_factory=TraversalStats)
    class_names: Dict[str, str] = field(default_factory=dict)

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise asyncio.CancelledError("Sequence diagram generation cancelled")


def common_workspace_root(roots: Sequence[str]) -> str:
    """Common path of the workspace roots, empty if there is none."""
    roots = [str(r) for r in roots if r]
    if not roots:
        return ""
    try:
        return os.path.commonpath(roots)
    except ValueError:
        # Mixed drives or mixed absolute/relative paths
        return ""


def relative_namespace(uri: str, workspace_root: str) -> str:
    """POSIX path of `uri` relative to the workspace root; files outside stay absolute."""
    path = PurePath(uri)
    if workspace_root and path.is_relative_to(workspace_root):
        return path.relative_to(workspace_root).as_posix()
    return path.as_posix()


_WHITESPACE_RUN = re.compile(r"\s+")


# ============================================================
# TRAVERSAL ENGINE
# ============================================================

class GraphTraversalEngine:
    """
    Builds a SequenceModel by depth first traversal of outgoing calls.

    The entry is visited at depth 1. A node below `max_call_depth` descends
    into its callees; at the limit, callees are only probed for surviving
    calls and a note replaces their nested messages. Functions reached from
    several call sites are visited once per call site, only participants
    are deduplicated.
    """

    def __init__(
        self,
        provider,
        settings: Optional[Settings] = None,
        analyzer: Optional[CallSiteAnalyzer] = None,
        skip_policy: Optional[SkipPolicy] = None,
        wrapper: Optional[TextWrapper] = None,
        call_logger: Optional[CallLogger] = None
    ):
        self.provider = provider
        self.settings = settings or Settings()
        self.analyzer = analyzer or CallSiteAnalyzer(self.settings.self_tokens)
        self.skip_policy = skip_policy
        self.wrapper = wrapper or TextWrapper(
            width=self.settings.wrap_width,
            soft_limit=self.settings.soft_wrap_limit,
            marker="\n",
        )
        self.reconstructor = CallOrderReconstructor(
            provider,
            analyzer=self.analyzer,
            prefer_signatures=self.settings.show_signatures_instead_parameters,
        )
        self.log = call_logger or CallLogger()

    async def build(self, entry: CallHierarchyItem, cancel_event: Optional[asyncio.Event] = None) -> SequenceModel:
        """
        Traverse the call graph below `entry`.

        Per node failures shrink the diagram instead of aborting it; only
        cancellation through `cancel_event` raises.
        """
        roots = await self._workspace_roots()
        skip_policy = self.skip_policy or SkipPolicy(SkipConfiguration.from_settings(self.settings, roots))

        ctx = TraversalContext(
            registry=ParticipantRegistry(),
            skip_policy=skip_policy,
            workspace_root=common_workspace_root(roots),
            cancel_event=cancel_event,
        )

        self.log.reset()
        self.log.info(f"Building sequence diagram of {self.log.hi_method(entry.name)} in {entry.uri}")

        # The entry takes part even if it makes no calls
        await self._participant(entry, entry.name, ctx)

        messages = await self._traverse(entry, entry.name, "", 1, ctx)
        if messages is TRUNCATED:
            messages = []

        ctx.registry.finalize()

        logger.info(
            f"✓ Sequence diagram built: {len(ctx.registry)} participants, {len(messages)} messages "
            f"({ctx.stats.nodes_visited} nodes visited, {ctx.stats.calls_skipped} calls skipped, "
            f"{ctx.stats.nodes_failed} nodes failed)"
        )

        return SequenceModel(
            entry_point=entry,
            participants=ctx.registry,
            messages=tuple(messages),
            entry_class=await self._container_name(entry, ctx) or "",
            workspace_root=ctx.workspace_root,
        )

    async def _workspace_roots(self) -> List[str]:
        if self.settings.workspace_roots:
            return list(self.settings.workspace_roots)
        try:
            return list(await self.provider.workspace_roots())
        except Exception as e:
            logger.warning(f"⚠️ Workspace roots unavailable, paths stay absolute: {e}")
            return []

    async def _traverse(
        self,
        node: CallHierarchyItem,
        my_name: str,
        parent_sequence_number: str,
        depth: int,
        ctx: TraversalContext
    ) -> Union[List[SequenceMessage], object]:
        ctx.check_cancelled()

        if depth > self.settings.max_call_depth:
            call_sites = await self._enumerate(node, ctx, probing=True)
            return TRUNCATED if call_sites else []

        ctx.stats.nodes_visited += 1
        call_sites = await self._enumerate(node, ctx)
        if not call_sites:
            return []

        caller = await self._participant(node, my_name, ctx)
        messages: List[SequenceMessage] = []

        for index, call_site in enumerate(call_sites, start=1):
            sequence_number = format_sequence_number(parent_sequence_number, index)

            if call_site.invoked_object_qualifier == SELF_SENTINEL:
                object_name = my_name
            else:
                object_name = call_site.invoked_object_qualifier

            callee = await self._participant(call_site.target, object_name, ctx)

            self.log.info(
                f"Call {sequence_number}: {self.log.hi_object(caller.key.class_name)}.{self.log.hi_method(node.name)}"
                f" ->> {self.log.hi_object(callee.key.class_name)}.{self.log.hi_method(call_site.target.name)}"
            )

            messages.append(SequenceMessage(
                from_participant=caller,
                to_participant=callee,
                label=self._label(call_site),
                sequence_number=sequence_number,
                kind=MessageKind.CALL,
            ))

            self.log.indent()
            try:
                nested = await self._traverse(call_site.target, object_name, sequence_number, depth + 1, ctx)
            finally:
                self.log.outdent()

            if nested is TRUNCATED:
                messages.append(SequenceMessage(
                    from_participant=callee,
                    to_participant=callee,
                    label=TRUNCATION_NOTE,
                    sequence_number=sequence_number,
                    kind=MessageKind.NOTE,
                ))
            else:
                messages.extend(nested)

            messages.append(SequenceMessage(
                from_participant=callee,
                to_participant=caller,
                label=self.settings.return_message_label,
                sequence_number=sequence_number,
                kind=MessageKind.RETURN,
            ))

        return messages

    async def _enumerate(self, node: CallHierarchyItem, ctx: TraversalContext, probing: bool = False) -> List[CallSite]:
        """Ordered call sites of `node` that survive the skip policy."""
        try:
            call_sites = await self.reconstructor.order(node)
        except SequenceDiagramError as e:
            ctx.stats.nodes_failed += 1
            logger.warning(f"⚠️ {e}, treating it as a leaf")
            return []

        surviving = []
        for index, call_site in enumerate(call_sites, start=1):
            check = ctx.skip_policy.check(call_site)
            if check.skip:
                if not probing:
                    ctx.stats.calls_skipped += 1
                    self.log.info(
                        f"Call {index} from {self.log.hi_method(node.name)} to "
                        f"{self.log.hi_method(call_site.target.name)} {check.reason} and is therefore skipped"
                    )
                continue
            surviving.append(call_site)

        return surviving

    async def _participant(self, item: CallHierarchyItem, object_name: str, ctx: TraversalContext) -> Participant:
        namespace = relative_namespace(item.uri, ctx.workspace_root)
        class_name = await self._container_name(item, ctx) or PurePath(item.uri).stem
        return ctx.registry.register(ParticipantKey(namespace, class_name, object_name))

    async def _container_name(self, item: CallHierarchyItem, ctx: TraversalContext) -> Optional[str]:
        key = item.identity()
        if key not in ctx.class_names:
            try:
                name = await self.provider.declaration_container_name(item.uri, item.selection_range.start)
            except Exception as e:
                logger.warning(f"⚠️ No class name for {item.name}: {e}")
                name = None
            ctx.class_names[key] = name or ""
        return ctx.class_names[key] or None

    def _label(self, call_site: CallSite) -> str:
        name = call_site.target.name
        if self.settings.omit_message_details:
            return f"{name}()"
        arguments = _WHITESPACE_RUN.sub(" ", call_site.argument_text).strip()
        return f"{name}({self.wrapper.wrap(arguments)})"


# ============================================================
# MAIN SERVICE
# ============================================================

class SequenceDiagramService:
    """
    Generates sequence diagrams for functions served by a call hierarchy provider.

    Usage:
        service = SequenceDiagramService(provider)
        entry = await service.resolve_entry("app/orders.py", function="OrderService.place")
        model = await service.generate(entry)
        print(service.render(model))
    """

    def __init__(self, provider, settings: Optional[Settings] = None):
        self.provider = provider
        self.settings = settings or Settings()
        self.engine = GraphTraversalEngine(provider, self.settings)

    async def resolve_entry(
        self,
        path: str,
        function: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None
    ) -> CallHierarchyItem:
        """
        Find the entry function by qualified name or by (1-based) position.

        Raises:
            EntryResolutionError: if no function is found at the location
        """
        if function:
            item = await self.provider.find_function(path, function)
            if item is None:
                raise EntryResolutionError(f"No function '{function}' found in {path}")
            return item

        if line is None:
            raise EntryResolutionError("Either a function name or a line number is required")

        position = Position(max(line - 1, 0), max((column or 1) - 1, 0))
        items = await self.provider.prepare_call_hierarchy(path, position)
        if not items:
            raise EntryResolutionError(f"No function found at {path}:{line}")
        return items[0]

    async def generate(self, entry: CallHierarchyItem, cancel_event: Optional[asyncio.Event] = None) -> SequenceModel:
        return await self.engine.build(entry, cancel_event=cancel_event)

    def render(self, model: SequenceModel) -> str:
        """Diagram markup in the configured format."""
        return model.serialize(get_formatter(self.settings.diagram_format, self.settings))

    async def generate_diagram(
        self,
        path: str,
        function: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> str:
        """Resolve, traverse and render in one go."""
        entry = await self.resolve_entry(path, function=function, line=line, column=column)
        model = await self.generate(entry, cancel_event=cancel_event)
        return self.render(model)

    async def list_entry_points(self, path: Optional[str] = None) -> List[CallHierarchyItem]:
        """Functions worth starting a diagram from, limited to `path` if given."""
        entry_points = await self.provider.entry_points()
        if path is None:
            return entry_points
        wanted = str(Path(path).resolve())
        return [item for item in entry_points if str(Path(item.uri).resolve()) == wanted]
