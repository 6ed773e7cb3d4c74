# FILE: bteditor/behavior/extractor.py
"""Graph -> ordered forest.

A root is any node that is never the target of a connection. Children are
ordered by ascending x (layout order, not insertion order); equal x keeps
connection order. Traversal is iterative over an id index with a visited set,
so cyclic or dangling input that slipped in through an import cannot recurse
without bound. Zero or several roots are returned as they are; the semantic
check decides whether that is acceptable.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List

from ..core.models import Connection, Node


@dataclass
class HierarchyNode:
    """Node of the extracted tree."""
    node: Node
    children: List["HierarchyNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def name(self) -> str:
        return self.node.name

    def walk(self) -> Iterator["HierarchyNode"]:
        """Pre-order traversal."""
        stack = [self]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def count(self) -> int:
        return sum(1 for _ in self.walk())

    def to_dict(self) -> Dict:
        out = self.node.to_dict()
        out["children"] = [c.to_dict() for c in self.children]
        return out


def find_roots(nodes: List[Node], connections: List[Connection]) -> List[Node]:
    targets = {c.target for c in connections}
    return [n for n in nodes if n.id not in targets]


def extract_roots(nodes: List[Node], connections: List[Connection]) -> List[HierarchyNode]:
    """Build one hierarchy per root."""
    by_id: Dict[str, Node] = {n.id: n for n in nodes}
    child_ids: Dict[str, List[str]] = {}
    for conn in connections:
        if conn.source in by_id and conn.target in by_id:
            child_ids.setdefault(conn.source, []).append(conn.target)

    visited = set()
    forest: List[HierarchyNode] = []
    for root in find_roots(nodes, connections):
        top = HierarchyNode(root)
        visited.add(root.id)
        pending = [top]
        while pending:
            current = pending.pop()
            ordered = sorted(child_ids.get(current.id, []), key=lambda cid: by_id[cid].x)
            for cid in ordered:
                if cid in visited:
                    continue
                visited.add(cid)
                child = HierarchyNode(by_id[cid])
                current.children.append(child)
                pending.append(child)
        forest.append(top)
    return forest
