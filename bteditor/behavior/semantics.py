# FILE: bteditor/behavior/semantics.py
"""Whole-tree invariants checked before every export or save.

- Root rule: the graph has nodes and at least one node without parent.
  No nodes and no root (cycle) are reported separately.
- Leaf rule: a node without children must be an action, condition or subtree;
  all offenders are named in one message.
- Optional strict mode rejects forests with more than one root.
"""

import logging
from dataclasses import dataclass
from typing import List

from ..core.models import LEAF_CATEGORIES, Connection, Node
from .extractor import find_roots

log = logging.getLogger(__name__)


@dataclass
class SemanticResult:
    is_valid: bool
    message: str = ""

    def __bool__(self) -> bool:
        return self.is_valid


def check_root(nodes: List[Node], connections: List[Connection],
               require_single_root: bool = False) -> SemanticResult:
    if not nodes:
        return SemanticResult(False, "Error: the behavior tree contains no nodes.")
    roots = find_roots(nodes, connections)
    if not roots:
        return SemanticResult(
            False,
            "Error: no root node found. A behavior tree must have exactly one root node; "
            "the connections may contain a cycle.",
        )
    if require_single_root and len(roots) > 1:
        names = ", ".join(f'"{n.name}"' for n in roots)
        return SemanticResult(False, f"Error: found {len(roots)} root nodes: {names}. Only one root is allowed.")
    return SemanticResult(True)


def check_leaves(nodes: List[Node], connections: List[Connection]) -> SemanticResult:
    sources = {c.source for c in connections}
    invalid = [n for n in nodes if n.id not in sources and n.category not in LEAF_CATEGORIES]
    if invalid:
        names = ", ".join(f'"{n.name}"' for n in invalid)
        return SemanticResult(
            False,
            f"Error: found {len(invalid)} invalid leaf node(s): {names}. "
            f"Leaf nodes must be action, condition or subtree nodes.",
        )
    return SemanticResult(True)


def check_semantics(nodes: List[Node], connections: List[Connection],
                    require_single_root: bool = False) -> SemanticResult:
    """Run the root rule, then the leaf rule."""
    result = check_root(nodes, connections, require_single_root)
    if result:
        result = check_leaves(nodes, connections)
    if result:
        result = SemanticResult(True, "Behavior tree structure is valid.")
        log.debug("semantic_check ok nodes=%d connections=%d", len(nodes), len(connections))
    else:
        log.info("semantic_check failed message=%s", result.message)
    return result
