# FILE: bteditor/behavior/validator.py
"""Admissibility of a proposed parent -> child edge.

Checks, in order, stopping at the first failure:
1. both endpoints exist
2. no self loop
3. target has no parent yet (single-parent tree)
4. source type accepts children (maxChildren != 0)
5. source has fewer children than a finite maxChildren
6. target is not an ancestor of source (no cycle)

Permissiveness policy: when the type definition of the source or the target
cannot be found (custom or undeclared type), checks 4 and 5 are skipped and
the edge is allowed provisionally. The cycle check still runs.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..core.graph_store import GraphStore
from ..core.models import Connection, Node, NodeTypeDef

log = logging.getLogger(__name__)

TypeLookup = Callable[[str, str], Optional[NodeTypeDef]]


@dataclass
class ValidationResult:
    valid: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.valid


def would_create_cycle(source_id: str, target_id: str, connections: List[Connection]) -> bool:
    """True if ``target_id`` is reached climbing parents from ``source_id``.

    The walk stops at a node without parent or on a revisited id, so a cycle
    already present in the graph cannot hang it.
    """
    parent_of: Dict[str, str] = {}
    for conn in connections:
        parent_of.setdefault(conn.target, conn.source)

    current: Optional[str] = source_id
    visited = set()
    while current is not None:
        if current in visited:
            break
        visited.add(current)
        if current == target_id:
            return True
        current = parent_of.get(current)
    return False


class ConnectionValidator:
    """Gate for edge creation against the current graph and the type catalog."""

    def __init__(self, store: GraphStore, lookup: TypeLookup):
        self.store = store
        self.lookup = lookup

    def validate(self, source_id: str, target_id: str) -> ValidationResult:
        return validate_connection(
            self.store.get_nodes(), self.store.get_connections(), source_id, target_id, self.lookup
        )


def validate_connection(nodes: List[Node], connections: List[Connection],
                        source_id: str, target_id: str, lookup: TypeLookup) -> ValidationResult:
    """Pure form of the edge check over explicit node/connection lists."""
    by_id = {n.id: n for n in nodes}
    source = by_id.get(source_id)
    target = by_id.get(target_id)

    if source is None or target is None:
        return _reject(source_id, target_id, "Source or target node not found")

    if source_id == target_id:
        return _reject(source_id, target_id, "Cannot connect a node to itself")

    if any(c.target == target_id for c in connections):
        return _reject(source_id, target_id, "Target node already has a parent")

    source_def = lookup(source.type, source.category)
    target_def = lookup(target.type, target.category)
    if source_def is None or target_def is None:
        log.warning(
            "connection_check unknown_type source=%s(%s) target=%s(%s) child_limits=skipped",
            source_id, source.type, target_id, target.type,
        )
    else:
        if source_def.max_children == 0:
            return _reject(source_id, target_id, f"{source_def.name} nodes cannot have children")
        if source_def.max_children is not None:
            child_count = sum(1 for c in connections if c.source == source_id)
            if child_count >= source_def.max_children:
                noun = "child" if source_def.max_children == 1 else "children"
                return _reject(
                    source_id, target_id,
                    f"{source_def.name} nodes can have at most {source_def.max_children} {noun}",
                )

    if would_create_cycle(source_id, target_id, connections):
        return _reject(source_id, target_id, "Connection would create a cycle")

    log.debug("connection_check ok source=%s target=%s", source_id, target_id)
    return ValidationResult(True)


def _reject(source_id: str, target_id: str, reason: str) -> ValidationResult:
    log.info("connection_check rejected source=%s target=%s reason=%s", source_id, target_id, reason)
    return ValidationResult(False, reason)
