# FILE: bteditor/behavior/layout.py
"""Hierarchical auto-layout over extracted trees.

Each tree is laid out level by level: a node's children are spread under it
with fixed spacing and centred on the parent. Several trees are placed side
by side, separated by ``tree_spacing_x``. Output is a list of position
updates ``{"id", "x", "y"}`` for GraphStore.batch_update_nodes.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from .extractor import HierarchyNode


@dataclass
class LayoutOptions:
    node_width: float = 150.0
    node_height: float = 40.0
    node_spacing_x: float = 20.0
    node_spacing_y: float = 20.0
    tree_spacing_x: float = 40.0


def _level_counts(root: HierarchyNode) -> List[int]:
    counts: List[int] = []
    stack: List[Tuple[HierarchyNode, int]] = [(root, 0)]
    while stack:
        node, level = stack.pop()
        if len(counts) <= level:
            counts.extend([0] * (level + 1 - len(counts)))
        counts[level] += 1
        stack.extend((c, level + 1) for c in node.children)
    return counts


def layout_tree(root: HierarchyNode, options: LayoutOptions) -> List[Dict[str, float]]:
    """Positions of one tree relative to the origin."""
    step_x = options.node_width + options.node_spacing_x
    step_y = options.node_height + options.node_spacing_y
    level_widths = [n * options.node_width + (n - 1) * options.node_spacing_x for n in _level_counts(root)]
    root_x = (max(level_widths) - level_widths[0]) / 2

    positions: List[Dict[str, float]] = []
    stack: List[Tuple[HierarchyNode, float, int]] = [(root, root_x, 0)]
    while stack:
        node, x, level = stack.pop()
        positions.append({"id": node.id, "x": x, "y": level * step_y})
        if node.children:
            span = len(node.children) * options.node_width + (len(node.children) - 1) * options.node_spacing_x
            start = x + (options.node_width - span) / 2
            for index, child in reversed(list(enumerate(node.children))):
                stack.append((child, start + index * step_x, level + 1))
    return positions


def layout_forest(forest: List[HierarchyNode], options: LayoutOptions) -> List[Dict[str, float]]:
    """Lay out every tree and shift them into one row."""
    out: List[Dict[str, float]] = []
    offset_x = 0.0
    for tree in forest:
        positions = layout_tree(tree, options)
        min_x = min(p["x"] for p in positions)
        max_x = max(p["x"] for p in positions) + options.node_width
        for p in positions:
            out.append({"id": p["id"], "x": p["x"] - min_x + offset_x, "y": p["y"]})
        offset_x += (max_x - min_x) + options.tree_spacing_x
    return out
