# FILE: bteditor/app/session.py
"""
Editing session: the single owner of one behavior tree being edited.

Holds:
- EventBus (injected into the GraphStore, never global)
- GraphStore (nodes, connections, id counters)
- CatalogManager (built-in types) plus session custom types
- transient UI state: node selection, selected connection, pending
  connection, selection box, viewport
- persisted view settings: grid, collapsed palette categories

Every user-level operation lives here and delegates the rules to the
behavior/ and io/ modules. Rejected connections are returned as values;
malformed files and semantic failures raise (FormatError / SemanticError)
before anything is committed.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..behavior.extractor import HierarchyNode, extract_roots
from ..behavior.layout import layout_forest
from ..behavior.semantics import SemanticResult, check_semantics
from ..behavior.validator import ConnectionValidator, ValidationResult
from ..core.events import EventBus, EventType
from ..core.graph_store import GraphStore
from ..core.models import Connection, GridSettings, Node, NodeTypeDef
from ..errors import SemanticError
from ..io import codec
from ..io.config_loader import EditorConfig
from ..io.xml_export import generate_xml
from ..registry.manager import CatalogManager
from .monitor import StatusMonitor

log = logging.getLogger(__name__)

PARENT_PORT = "parent"
CHILD_PORT = "child"

CLONE_OFFSET = 50.0


# ---------- Transient UI state ----------

@dataclass
class PendingConnection:
    """First click of the two-click connection gesture."""
    node_id: str
    port: str


@dataclass
class SelectionBox:
    active: bool = False
    start_x: float = 0.0
    start_y: float = 0.0
    end_x: float = 0.0
    end_y: float = 0.0

    def bounds(self):
        return (min(self.start_x, self.end_x), min(self.start_y, self.end_y),
                max(self.start_x, self.end_x), max(self.start_y, self.end_y))


@dataclass
class Viewport:
    """Pan/zoom of the canvas; survives loads and resets."""
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    min_scale: float = 0.1
    max_scale: float = 5.0

    def clamp(self) -> None:
        self.scale = min(max(self.scale, self.min_scale), self.max_scale)


@dataclass
class ConnectResult:
    """Outcome of a connection attempt."""
    ok: bool
    connection_id: Optional[str] = None
    reason: str = ""

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class SelectionState:
    nodes: List[str] = field(default_factory=list)
    connection: Optional[str] = None


# ---------- Session ----------

class EditorSession:
    """One editor instance: graph, catalog, view state and operations on them."""

    def __init__(self, config: Optional[EditorConfig] = None,
                 catalog: Optional[CatalogManager] = None,
                 events: Optional[EventBus] = None):
        self.config = config or EditorConfig()
        self.events = events or EventBus()
        self.store = GraphStore(self.events)
        if catalog is None:
            catalog = CatalogManager(load_entry_points=self.config.load_entry_points)
            catalog.discover_and_register()
        self.catalog = catalog
        self.custom_node_types: List[NodeTypeDef] = []
        self.collapsed_categories: Dict[str, bool] = {}
        self.grid: GridSettings = self.config.grid.model_copy()
        vp = self.config.viewport
        self.viewport = Viewport(scale=vp.default_scale, min_scale=vp.min_scale, max_scale=vp.max_scale)
        self.viewport.clamp()
        self.selection = SelectionState()
        self.pending_connection: Optional[PendingConnection] = None
        self.selection_box = SelectionBox()
        self.monitor = StatusMonitor(self.store, self.events)
        self.lookup = self.catalog.lookup(lambda: self.custom_node_types)
        self.validator = ConnectionValidator(self.store, self.lookup)
        log.info("EditorSession ready: builtin_types=%d grid=%s snap=%s",
                 len(self.catalog.list_types()), self.grid.size, self.grid.snap)

    # ---------- Type definitions ----------

    def get_node_type_definition(self, type_name: str, category: str) -> Optional[NodeTypeDef]:
        return self.lookup(type_name, category)

    def available_node_types(self) -> List[NodeTypeDef]:
        """Built-in types followed by session custom types."""
        return self.catalog.list_types() + list(self.custom_node_types)

    def add_custom_node_type(self, definition: Union[NodeTypeDef, Dict[str, Any]]) -> NodeTypeDef:
        """Register a user-defined type.

        Raises:
            ValueError: Missing type/category or a type name already in use
        """
        if not isinstance(definition, NodeTypeDef):
            definition = NodeTypeDef.model_validate(definition)
        if not definition.type or not definition.category:
            raise ValueError("Custom node type needs a type and a category")
        if self.catalog.is_builtin(definition.type) or any(
                t.type == definition.type for t in self.custom_node_types):
            raise ValueError(f"Node type '{definition.type}' already exists")
        definition = definition.model_copy(update={"builtin": False})
        self.custom_node_types.append(definition)
        log.info("custom type added type=%s category=%s", definition.type, definition.category)
        self.events.emit(EventType.NODE_CHANGED, "type-added", node_type=definition.to_dict())
        return definition

    def remove_custom_node_type(self, type_name: str) -> bool:
        """Drop a custom type together with every node of that type."""
        for index, definition in enumerate(self.custom_node_types):
            if definition.type == type_name:
                break
        else:
            return False
        doomed = [n.id for n in self.store.get_nodes() if n.type == type_name]
        if doomed:
            self.delete_nodes(doomed)
        del self.custom_node_types[index]
        log.info("custom type removed type=%s nodes_removed=%d", type_name, len(doomed))
        self.events.emit(EventType.NODE_CHANGED, "type-removed", node_type=definition.to_dict())
        return True

    def toggle_category_collapse(self, category: str) -> bool:
        collapsed = not self.collapsed_categories.get(category, False)
        self.collapsed_categories[category] = collapsed
        return collapsed

    # ---------- Nodes ----------

    def create_node(self, type_name: str, category: str, x: float, y: float,
                    name: Optional[str] = None) -> str:
        """Create a node with the type's default properties at (x, y).

        Raises:
            ValueError: Unknown (type, category)
        """
        definition = self.lookup(type_name, category)
        if definition is None:
            raise ValueError(f"Node type {type_name} not found in category {category}")
        node = Node(
            id=self.store.next_node_id(),
            type=type_name,
            category=category,
            name=name or definition.name or type_name,
            x=self.grid.snap_value(x),
            y=self.grid.snap_value(y),
            properties=definition.default_properties(),
        )
        return self.store.add_node(node)

    def delete_node(self, node_id: str) -> bool:
        removed = self.store.remove_node(node_id)
        if removed:
            self._forget(node_id)
        return removed

    def delete_nodes(self, node_ids: Iterable[str]) -> int:
        return sum(1 for node_id in list(node_ids) if self.delete_node(node_id))

    def delete_selected_nodes(self) -> int:
        if not self.selection.nodes:
            return 0
        count = self.delete_nodes(self.selection.nodes)
        self.clear_selection()
        return count

    def _forget(self, node_id: str) -> None:
        """Drop references to a removed node from transient state."""
        if node_id in self.selection.nodes:
            self.selection.nodes.remove(node_id)
        if self.pending_connection and self.pending_connection.node_id == node_id:
            self.pending_connection = None
        if self.selection.connection and self.store.get_connection(self.selection.connection) is None:
            self.selection.connection = None
        self.monitor.node_states.pop(node_id, None)

    def clone_node(self, node_id: str, offset_x: float = CLONE_OFFSET,
                   offset_y: float = CLONE_OFFSET) -> Optional[str]:
        """Copy a node (name gets a " (copy)" suffix) at an offset."""
        original = self.store.get_node(node_id)
        if original is None:
            log.warning("clone skipped: unknown node id=%s", node_id)
            return None
        clone = original.model_copy(update={
            "id": self.store.next_node_id(),
            "name": f"{original.name} (copy)",
            "x": self.grid.snap_value(original.x + offset_x),
            "y": self.grid.snap_value(original.y + offset_y),
        }, deep=True)
        return self.store.add_node(clone)

    def clone_nodes(self, node_ids: Iterable[str], offset_x: float = CLONE_OFFSET,
                    offset_y: float = CLONE_OFFSET) -> List[str]:
        """Clone several nodes and re-create the connections among them."""
        node_ids = list(node_ids)
        id_map: Dict[str, str] = {}
        for node_id in node_ids:
            new_id = self.clone_node(node_id, offset_x, offset_y)
            if new_id:
                id_map[node_id] = new_id
        for conn in self.store.get_connections():
            if conn.source in id_map and conn.target in id_map:
                self.store.add_connection(Connection(
                    id=self.store.next_connection_id(),
                    source=id_map[conn.source],
                    target=id_map[conn.target],
                ))
        return list(id_map.values())

    def clone_selected_nodes(self) -> List[str]:
        return self.clone_nodes(self.selection.nodes)

    def update_node_properties(self, node_id: str, properties: Dict[str, Any]) -> Node:
        """Overlay ``properties`` onto the node's property map."""
        return self.store.update_node(node_id, {"properties": dict(properties)})

    def rename_node(self, node_id: str, name: str) -> Node:
        return self.store.update_node(node_id, {"name": name})

    def move_node(self, node_id: str, x: float, y: float) -> Node:
        return self.store.move_node(node_id, self.grid.snap_value(x), self.grid.snap_value(y))

    def align_selected_nodes(self, how: str) -> List[str]:
        """Align the selection: left, center, right, top, middle or bottom."""
        nodes = [n for n in (self.store.get_node(i) for i in self.selection.nodes) if n]
        if len(nodes) < 2:
            return []
        width = self.config.layout.node_width
        height = self.config.layout.node_height
        if how == "left":
            target = min(n.x for n in nodes)
            updates = [{"id": n.id, "x": target} for n in nodes]
        elif how == "center":
            target = sum(n.x + width / 2 for n in nodes) / len(nodes)
            updates = [{"id": n.id, "x": target - width / 2} for n in nodes]
        elif how == "right":
            target = max(n.x + width for n in nodes)
            updates = [{"id": n.id, "x": target - width} for n in nodes]
        elif how == "top":
            target = min(n.y for n in nodes)
            updates = [{"id": n.id, "y": target} for n in nodes]
        elif how == "middle":
            target = sum(n.y + height / 2 for n in nodes) / len(nodes)
            updates = [{"id": n.id, "y": target - height / 2} for n in nodes]
        elif how == "bottom":
            target = max(n.y + height for n in nodes)
            updates = [{"id": n.id, "y": target - height} for n in nodes]
        else:
            raise ValueError(f"Unknown alignment '{how}'")
        for u in updates:
            for axis in ("x", "y"):
                if axis in u:
                    u[axis] = self.grid.snap_value(u[axis])
        return self.store.batch_update_nodes(updates)

    # ---------- Connections ----------

    def validate_connection(self, source_id: str, target_id: str) -> ValidationResult:
        return self.validator.validate(source_id, target_id)

    def create_connection(self, source_id: str, target_id: str) -> ConnectResult:
        """Connect parent ``source_id`` to child ``target_id`` if the tree rules allow it."""
        result = self.validate_connection(source_id, target_id)
        if not result.valid:
            return ConnectResult(ok=False, reason=result.reason)
        conn_id = self.store.add_connection(Connection(
            id=self.store.next_connection_id(), source=source_id, target=target_id,
        ))
        return ConnectResult(ok=True, connection_id=conn_id)

    def delete_connection(self, connection_id: str) -> bool:
        removed = self.store.remove_connection(connection_id)
        if removed and self.selection.connection == connection_id:
            self.selection.connection = None
        return removed

    def select_connection(self, connection_id: str) -> None:
        conn = self.store.get_connection(connection_id)
        if conn is None:
            raise KeyError(connection_id)
        self.selection.connection = connection_id
        self.events.emit(EventType.CONNECTION_CHANGED, "selected", connection=conn.to_dict())

    def deselect_connection(self) -> None:
        if self.selection.connection is None:
            return
        conn_id, self.selection.connection = self.selection.connection, None
        self.events.emit(EventType.CONNECTION_CHANGED, "unselected", connection_id=conn_id)

    def start_pending_connection(self, node_id: str, port: str) -> None:
        if port not in (PARENT_PORT, CHILD_PORT):
            raise ValueError(f"Unknown port '{port}'")
        if not self.store.has_node(node_id):
            raise KeyError(node_id)
        self.pending_connection = PendingConnection(node_id, port)
        log.debug("pending connection started node=%s port=%s", node_id, port)

    def complete_pending_connection(self, node_id: str, port: str) -> ConnectResult:
        """Second click: pair a child port with a parent port.

        The node whose ``child`` port was clicked becomes the parent. The
        pending connection is cleared whatever the outcome.
        """
        pending = self.pending_connection
        if pending is None:
            return ConnectResult(ok=False, reason="No pending connection")
        self.pending_connection = None
        if node_id == pending.node_id:
            return ConnectResult(ok=False, reason="Cannot connect a node to itself")
        if port == pending.port:
            return ConnectResult(ok=False, reason="Cannot connect same port types")
        if pending.port == CHILD_PORT:
            source_id, target_id = pending.node_id, node_id
        else:
            source_id, target_id = node_id, pending.node_id
        return self.create_connection(source_id, target_id)

    def cancel_pending_connection(self) -> None:
        if self.pending_connection is None:
            return
        node_id = self.pending_connection.node_id
        self.pending_connection = None
        self.events.emit(EventType.CONNECTION_CHANGED, "canceled", node_id=node_id)

    # ---------- Selection ----------

    def _selection_changed(self) -> None:
        self.events.emit(EventType.SELECTION_CHANGED, "nodes", node_ids=list(self.selection.nodes))

    def select_node(self, node_id: str, add: bool = False) -> None:
        if not self.store.has_node(node_id):
            raise KeyError(node_id)
        if not add:
            self.selection.nodes = []
        if node_id not in self.selection.nodes:
            self.selection.nodes.append(node_id)
        self._selection_changed()

    def select_nodes(self, node_ids: Iterable[str]) -> None:
        self.selection.nodes = [i for i in dict.fromkeys(node_ids) if self.store.has_node(i)]
        self._selection_changed()

    def select_all_nodes(self) -> None:
        self.select_nodes(n.id for n in self.store.get_nodes())

    def deselect_node(self, node_id: str) -> None:
        if node_id in self.selection.nodes:
            self.selection.nodes.remove(node_id)
            self._selection_changed()

    def clear_selection(self) -> None:
        self.selection.nodes = []
        self._selection_changed()

    def start_selection_box(self, x: float, y: float) -> None:
        self.selection_box = SelectionBox(active=True, start_x=x, start_y=y, end_x=x, end_y=y)

    def update_selection_box(self, x: float, y: float) -> None:
        if self.selection_box.active:
            self.selection_box.end_x = x
            self.selection_box.end_y = y

    def end_selection_box(self, add: bool = False) -> List[str]:
        """Select every node whose rectangle intersects the box."""
        box = self.selection_box
        if not box.active:
            return list(self.selection.nodes)
        box.active = False
        left, top, right, bottom = box.bounds()
        width = self.config.layout.node_width
        height = self.config.layout.node_height
        hits = [n.id for n in self.store.get_nodes()
                if n.x < right and n.x + width > left and n.y < bottom and n.y + height > top]
        base = list(self.selection.nodes) if add else []
        self.select_nodes(base + hits)
        return list(self.selection.nodes)

    # ---------- View settings ----------

    def update_grid_settings(self, **updates: Any) -> GridSettings:
        self.grid = GridSettings.model_validate({**self.grid.model_dump(), **updates})
        self.events.emit(EventType.GRID_CHANGED, "updated", grid=self.grid.model_dump())
        return self.grid

    def update_viewport(self, **updates: Any) -> Viewport:
        for key, value in updates.items():
            if not hasattr(self.viewport, key):
                raise ValueError(f"Unknown viewport field '{key}'")
            setattr(self.viewport, key, float(value))
        self.viewport.clamp()
        return self.viewport

    # ---------- Tree operations ----------

    def hierarchy(self) -> List[HierarchyNode]:
        return extract_roots(self.store.get_nodes(), self.store.get_connections())

    def validate_tree(self) -> SemanticResult:
        result = check_semantics(self.store.get_nodes(), self.store.get_connections(),
                                 require_single_root=self.config.export.require_single_root)
        log.info("tree validation valid=%s message=%s", result.is_valid, result.message)
        return result

    def export_xml(self) -> str:
        """BehaviorTree.CPP XML for the current graph.

        Raises:
            SemanticError: The graph is not a valid behavior tree
        """
        result = self.validate_tree()
        if not result.is_valid:
            raise SemanticError(result.message)
        return generate_xml(self.hierarchy(), self.custom_node_types,
                            format_version=self.config.export.format_version)

    def auto_layout(self) -> List[str]:
        positions = layout_forest(self.hierarchy(), self.config.layout.to_options())
        updates = [{"id": p["id"], "x": self.grid.snap_value(p["x"]),
                    "y": self.grid.snap_value(p["y"])} for p in positions]
        return self.store.batch_update_nodes(updates)

    # ---------- Persistence ----------

    def snapshot(self) -> codec.StateSnapshot:
        return codec.StateSnapshot(
            nodes=self.store.get_nodes(),
            connections=self.store.get_connections(),
            custom_node_types=[t.model_copy() for t in self.custom_node_types],
            collapsed_categories=dict(self.collapsed_categories),
            grid=self.grid.model_copy(),
        )

    def encode_state(self) -> str:
        return codec.encode(self.snapshot())

    def save(self, path: Union[str, Path]) -> Path:
        """Write the session state to ``path``.

        Raises:
            SemanticError: The graph is not a valid behavior tree; nothing is written
        """
        result = self.validate_tree()
        if not result.is_valid:
            raise SemanticError(result.message)
        return codec.write_file(path, self.encode_state())

    def load_text(self, text: Union[str, bytes, Dict[str, Any]]) -> codec.StateDelta:
        """Decode, check semantics, then replace the session state.

        Raises:
            FormatError: Malformed document
            SemanticError: Well-formed document that is not a valid tree
        """
        return self._apply_checked(codec.decode(text))

    def load(self, path: Union[str, Path]) -> codec.StateDelta:
        """Like load_text, reading the document from ``path`` (EditorIOError on I/O failure)."""
        return self._apply_checked(codec.read_file(path))

    def _apply_checked(self, delta: codec.StateDelta) -> codec.StateDelta:
        result = check_semantics(delta.nodes, delta.connections,
                                 require_single_root=self.config.export.require_single_root)
        if not result.is_valid:
            raise SemanticError(result.message)
        self.apply_state(delta)
        return delta

    def apply_state(self, delta: codec.StateDelta) -> None:
        """Replace graph and persisted settings; keep the viewport."""
        self.store.load(delta.nodes, delta.connections, delta.next_node_id, delta.next_connection_id,
                        notify=False)
        self.custom_node_types = list(delta.custom_node_types)
        self.collapsed_categories = dict(delta.collapsed_categories)
        if delta.grid_present:
            self.grid = delta.grid.model_copy()
        self._reset_transient()
        self.events.emit(EventType.STATE_LOADED, "loaded",
                         nodes=len(delta.nodes), connections=len(delta.connections))

    def reset(self) -> None:
        """Empty graph; grid, custom types, collapsed categories and viewport stay."""
        self.store.clear(notify=False)
        self._reset_transient()
        log.info("session reset")
        self.events.emit(EventType.STATE_RESET, "reset")

    def _reset_transient(self) -> None:
        self.selection = SelectionState()
        self.pending_connection = None
        self.selection_box = SelectionBox()
        self.monitor.clear()
