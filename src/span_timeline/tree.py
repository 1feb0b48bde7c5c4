"""Span tree builder — reconstructs hierarchy from flat search hits."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from span_timeline.parser import (
    NormalizedSpan,
    RefType,
    TraceMode,
    get_decoder,
)


@dataclass
class SpanNode:
    """A node in the span tree wrapping a decoded span and its raw hit."""

    span: NormalizedSpan
    hit: Dict[str, Any] = field(default_factory=dict, repr=False)
    children: List[SpanNode] = field(default_factory=list)

    @property
    def span_id(self) -> str:
        return self.span.span_id

    @property
    def start_time_in_nanos(self) -> int:
        return self.span.start_time_in_nanos


def _jaeger_parent(node: SpanNode, nodes: Dict[str, SpanNode]) -> Optional[SpanNode]:
    """First resolvable CHILD_OF target; later CHILD_OF references are ignored."""
    for ref in node.span.references:
        if ref.ref_type is not RefType.CHILD_OF or ref.span_id == node.span_id:
            continue
        parent = nodes.get(ref.span_id)
        if parent is not None:
            return parent
    return None


def _jaeger_is_root(node: SpanNode) -> bool:
    refs = node.span.references
    return not refs or any(ref.ref_type is RefType.FOLLOWS_FROM for ref in refs)


def _data_prepper_parent(node: SpanNode, nodes: Dict[str, SpanNode]) -> Optional[SpanNode]:
    pid = node.span.parent_span_id
    if pid and pid != node.span_id:
        return nodes.get(pid)
    return None


def build_tree(hits: List[Dict[str, Any]], mode: TraceMode | str) -> List[SpanNode]:
    """Build span tree(s) from a flat list of search hits.

    Returns the root SpanNode objects in input order; children keep input
    order too (time ordering is applied by the layout walk).

    - Hits without a span id are dropped
    - Duplicate span ids keep the first occurrence
    - data-prepper: unresolvable ``parentSpanId`` makes the span a root
    - jaeger: the first resolvable CHILD_OF reference wins; a span that is
      not attached becomes a root if it has no references or any
      FOLLOWS_FROM reference, otherwise it is dropped
    - A span attached as a child is never also registered as a root
    """
    if not hits:
        return []

    decoder = get_decoder(mode)
    jaeger = decoder.mode is TraceMode.JAEGER

    nodes: Dict[str, SpanNode] = {}
    ordered: List[SpanNode] = []
    for hit in hits:
        span = decoder.decode(hit)
        if not span.span_id:
            continue
        if span.span_id in nodes:
            warnings.warn(
                f"Duplicate span id {span.span_id!r}, keeping first occurrence",
                stacklevel=2,
            )
            continue
        node = SpanNode(span=span, hit=hit)
        nodes[span.span_id] = node
        ordered.append(node)

    roots: List[SpanNode] = []
    root_ids: Set[str] = set()

    for node in ordered:
        if jaeger:
            parent = _jaeger_parent(node, nodes)
            is_root = parent is None and _jaeger_is_root(node)
        else:
            parent = _data_prepper_parent(node, nodes)
            is_root = parent is None

        if parent is not None:
            parent.children.append(node)
        elif is_root and node.span_id not in root_ids:
            roots.append(node)
            root_ids.add(node.span_id)

    return roots


def _by_start(nodes: List[SpanNode]) -> List[SpanNode]:
    return sorted(nodes, key=lambda n: n.start_time_in_nanos)


def iter_preorder(roots: List[SpanNode]) -> Iterator[Tuple[SpanNode, int]]:
    """Yield ``(node, level)`` depth-first, siblings ordered by start time.

    Parents always precede their descendants. Input lists are not reordered.
    """
    stack = [(node, 0) for node in reversed(_by_start(roots))]
    while stack:
        node, level = stack.pop()
        yield node, level
        stack.extend((child, level + 1) for child in reversed(_by_start(node.children)))


def count_nodes(node: SpanNode) -> int:
    return 1 + sum(count_nodes(c) for c in node.children)


def dropped_span_ids(
    hits: List[Dict[str, Any]],
    roots: List[SpanNode],
    mode: TraceMode | str,
) -> List[str]:
    """Return ids of input spans that did not make it into the forest.

    These are spans whose parent references all failed to resolve (or that
    only hang off such spans). Ids are reported once, in input order.
    """
    placed = {node.span_id for node, _level in iter_preorder(roots)}
    decoder = get_decoder(mode)
    dropped: List[str] = []
    for hit in hits:
        span_id = decoder.decode(hit).span_id
        if span_id and span_id not in placed and span_id not in dropped:
            dropped.append(span_id)
    return dropped
