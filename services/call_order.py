"""
Call Order Reconstructor
Restores the chronological order of the calls made by one function.

Call hierarchy providers group call sites by callee: if foo() is called
from lines 7 and 13 and bar() from line 9, they report foo -> [7, 13] and
bar -> [9]. The diagram needs foo, bar, foo instead, and a call nested in
another call's argument list must come before the outer call since
arguments are evaluated first.
"""

import asyncio
import logging
from functools import cmp_to_key
from typing import Dict, List, Optional, Set

from core.exceptions import NodeAnalysisError
from core.hierarchy_types import CallHierarchyItem, OutgoingCall, Range
from services.call_site_analyzer import CallSiteAnalyzer
from services.sequence_model import CallSite
from services.source_text import SourceDocument

logger = logging.getLogger(__name__)


def flatten_calls(grouped_calls: List[OutgoingCall]) -> List[tuple[CallHierarchyItem, Range]]:
    """One (callee, call site range) pair per call site."""
    return [
        (grouped.to, from_range)
        for grouped in grouped_calls
        for from_range in grouped.from_ranges
    ]


def _is_nested_in(inner: CallSite, outer: CallSite) -> bool:
    return (
        inner is not outer
        and outer.argument_range is not None
        and outer.argument_range.contains(inner.source_range)
    )


def sort_call_sites(call_sites: List[CallSite]) -> List[CallSite]:
    """
    Sort call sites into execution order.

    A call inside another call's argument list goes first; otherwise
    calls are ordered by position. The sort is stable, so sites at the
    same position keep their relative order.
    """
    indexed = list(enumerate(call_sites))
    nested_in: Dict[int, Set[int]] = {
        i: {j for j, outer in indexed if _is_nested_in(site, outer)}
        for i, site in indexed
    }

    def compare(a, b) -> int:
        (index_a, site_a), (index_b, site_b) = a, b
        if index_b in nested_in[index_a]:
            return -1
        if index_a in nested_in[index_b]:
            return 1
        if site_a.source_range.start < site_b.source_range.start:
            return -1
        if site_b.source_range.start < site_a.source_range.start:
            return 1
        return 0

    return [site for _, site in sorted(indexed, key=cmp_to_key(compare))]


class CallOrderReconstructor:
    """Fetches, flattens, analyzes and orders the outgoing calls of a node."""

    def __init__(self, provider, analyzer: Optional[CallSiteAnalyzer] = None, prefer_signatures: bool = False):
        self.provider = provider
        self.analyzer = analyzer or CallSiteAnalyzer()
        self.prefer_signatures = prefer_signatures

    async def order(self, node: CallHierarchyItem) -> List[CallSite]:
        """
        Ordered call sites of `node`.

        Raises:
            NodeAnalysisError: if the provider cannot deliver the calls or
                the caller's source text
        """
        try:
            grouped_calls = await self.provider.outgoing_calls(node)
            caller_document = SourceDocument(await self.provider.source_text(node.uri))
        except Exception as e:
            raise NodeAnalysisError(node.name, str(e)) from e

        flattened = flatten_calls(grouped_calls or [])

        # Sites are independent of each other, analyze them concurrently
        call_sites = await asyncio.gather(*(
            self._analyze(caller_document, target, from_range)
            for target, from_range in flattened
        ))

        return sort_call_sites(list(call_sites))

    async def _analyze(self, caller_document: SourceDocument, target: CallHierarchyItem, from_range: Range) -> CallSite:
        signature_document = None
        if self.prefer_signatures:
            try:
                signature_document = SourceDocument(await self.provider.source_text(target.uri))
            except Exception as e:
                logger.warning(f"⚠️ No signature for {target.name}: {e}")

        info = self.analyzer.analyze(
            caller_document,
            from_range,
            signature_document=signature_document,
            signature_range=target.selection_range if signature_document is not None else None,
        )

        return CallSite(
            target=target,
            source_range=from_range,
            is_function_call=info.is_function_call,
            invoked_object_qualifier=info.invoked_object_qualifier,
            argument_text=info.argument_text,
            argument_range=info.argument_range,
        )
