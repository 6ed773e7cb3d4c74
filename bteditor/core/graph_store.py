# FILE: bteditor/core/graph_store.py
"""Authoritative node/connection sets with id generation and change notification."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from .events import EventBus, EventType
from .ids import IdSequence, connection_sequence, node_sequence
from .models import Connection, Node

logger = logging.getLogger(__name__)

_IMMUTABLE_NODE_FIELDS = ("id", "category")


class GraphStore:
    """Single owner of the graph.

    Readers get copies; all mutations go through the methods below, are
    synchronous and never leave a connection pointing at a missing node.
    """

    def __init__(self, events: Optional[EventBus] = None):
        """Initialize an empty store.

        Args:
            events: Bus used for change notifications (a private one if omitted)
        """
        self.events = events or EventBus()
        self._nodes: Dict[str, Node] = {}
        self._connections: Dict[str, Connection] = {}
        self.node_ids: IdSequence = node_sequence()
        self.connection_ids: IdSequence = connection_sequence()

    # ---------- Readers ----------

    def get_nodes(self) -> List[Node]:
        """All nodes in insertion order (copies)."""
        return [n.model_copy(deep=True) for n in self._nodes.values()]

    def get_connections(self) -> List[Connection]:
        """All connections in insertion order (copies)."""
        return [c.model_copy() for c in self._connections.values()]

    def get_node(self, node_id: str) -> Optional[Node]:
        node = self._nodes.get(node_id)
        return node.model_copy(deep=True) if node else None

    def get_connection(self, connection_id: str) -> Optional[Connection]:
        conn = self._connections.get(connection_id)
        return conn.model_copy() if conn else None

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def find_node_by_name(self, name: str) -> Optional[Node]:
        """First node whose display name equals ``name`` exactly."""
        for node in self._nodes.values():
            if node.name == name:
                return node.model_copy(deep=True)
        return None

    def connections_of(self, node_id: str) -> List[Connection]:
        """Connections where the node is source or target."""
        return [c.model_copy() for c in self._connections.values()
                if c.source == node_id or c.target == node_id]

    def __len__(self) -> int:
        return len(self._nodes)

    # ---------- Id generation ----------

    def next_node_id(self) -> str:
        return self.node_ids.issue()

    def next_connection_id(self) -> str:
        return self.connection_ids.issue()

    # ---------- Node mutations ----------

    def add_node(self, node: Node) -> str:
        """Insert a node; ids must be unique."""
        if node.id in self._nodes:
            raise ValueError(f"Duplicate node id '{node.id}'")
        stored = node.model_copy(deep=True)
        self._nodes[stored.id] = stored
        logger.debug("node added id=%s type=%s category=%s", stored.id, stored.type, stored.category)
        self.events.emit(EventType.NODE_CHANGED, "created", node=stored.to_dict())
        return stored.id

    def remove_node(self, node_id: str) -> bool:
        """Remove a node and every connection it takes part in."""
        node = self._nodes.get(node_id)
        if node is None:
            return False
        for conn in [c for c in self._connections.values()
                     if c.source == node_id or c.target == node_id]:
            self.remove_connection(conn.id)
        del self._nodes[node_id]
        logger.debug("node removed id=%s", node_id)
        self.events.emit(EventType.NODE_CHANGED, "deleted", node=node.to_dict())
        return True

    def _merged(self, node: Node, updates: Dict[str, Any]) -> Node:
        for key in _IMMUTABLE_NODE_FIELDS:
            if key in updates and updates[key] != getattr(node, key):
                raise ValueError(f"Node field '{key}' is immutable (node {node.id})")
        data = node.model_dump()
        for key, value in updates.items():
            if key == "properties":
                data["properties"] = {**data["properties"], **dict(value or {})}
            else:
                data[key] = value
        return Node.model_validate(data)

    def update_node(self, node_id: str, updates: Dict[str, Any]) -> Node:
        """Shallow-merge ``updates``; ``properties`` is overlaid, never replaced.

        Raises:
            KeyError: Unknown node
            ValueError: Attempt to change id or category, or invalid field values
        """
        node = self._nodes.get(node_id)
        if node is None:
            raise KeyError(node_id)
        updated = self._merged(node, updates)
        self._nodes[node_id] = updated
        self.events.emit(EventType.NODE_CHANGED, "updated", node=updated.to_dict(), updates=dict(updates))
        return updated.model_copy(deep=True)

    def move_node(self, node_id: str, x: float, y: float) -> Node:
        node = self._nodes.get(node_id)
        if node is None:
            raise KeyError(node_id)
        updated = node.model_copy(update={"x": float(x), "y": float(y)})
        self._nodes[node_id] = updated
        self.events.emit(EventType.NODE_CHANGED, "moved", node=updated.to_dict())
        return updated.model_copy(deep=True)

    def batch_update_nodes(self, updates: Iterable[Dict[str, Any]]) -> List[str]:
        """Apply several ``{"id": ..., **fields}`` updates with one notification.

        All updates are validated before any is stored; unknown ids are skipped.
        """
        staged: Dict[str, Node] = {}
        for update in updates:
            update = dict(update)
            node_id = update.pop("id", None)
            base = staged.get(node_id) or self._nodes.get(node_id)
            if base is None:
                continue
            staged[node_id] = self._merged(base, update)
        self._nodes.update(staged)
        if staged:
            self.events.emit(EventType.NODE_CHANGED, "batch-updated", node_ids=list(staged))
        return list(staged)

    # ---------- Connection mutations ----------

    def add_connection(self, connection: Connection) -> str:
        """Insert an edge between two existing nodes.

        This does not apply tree rules; gate with ConnectionValidator first.
        """
        if connection.id in self._connections:
            raise ValueError(f"Duplicate connection id '{connection.id}'")
        missing = [n for n in (connection.source, connection.target) if n not in self._nodes]
        if missing:
            raise ValueError(f"Connection '{connection.id}' references unknown nodes: {missing}")
        stored = connection.model_copy()
        self._connections[stored.id] = stored
        logger.debug("connection added id=%s %s->%s", stored.id, stored.source, stored.target)
        self.events.emit(EventType.CONNECTION_CHANGED, "created", connection=stored.to_dict())
        return stored.id

    def remove_connection(self, connection_id: str) -> bool:
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return False
        logger.debug("connection removed id=%s", connection_id)
        self.events.emit(EventType.CONNECTION_CHANGED, "deleted", connection=conn.to_dict())
        return True

    # ---------- Whole-state operations ----------

    def load(self, nodes: Iterable[Node], connections: Iterable[Connection],
             next_node_id: int = 0, next_connection_id: int = 0, notify: bool = True) -> None:
        """Replace the whole graph. Input is validated before anything changes.

        With ``notify=False`` the caller emits the state notification itself.
        """
        new_nodes: Dict[str, Node] = {}
        for n in nodes:
            if n.id in new_nodes:
                raise ValueError(f"Duplicate node id '{n.id}'")
            new_nodes[n.id] = n.model_copy(deep=True)
        new_conns: Dict[str, Connection] = {}
        for c in connections:
            if c.id in new_conns:
                raise ValueError(f"Duplicate connection id '{c.id}'")
            if c.source not in new_nodes or c.target not in new_nodes:
                raise ValueError(f"Connection '{c.id}' references unknown nodes")
            new_conns[c.id] = c.model_copy()

        self._nodes = new_nodes
        self._connections = new_conns
        self.node_ids.next_value = next_node_id
        self.connection_ids.next_value = next_connection_id
        logger.info("graph loaded nodes=%d connections=%d next_ids=(%d,%d)",
                    len(new_nodes), len(new_conns), next_node_id, next_connection_id)
        if notify:
            self.events.emit(EventType.STATE_LOADED, "loaded", nodes=len(new_nodes), connections=len(new_conns))

    def clear(self, notify: bool = True) -> None:
        """Drop all nodes and connections and restart numbering."""
        self._nodes = {}
        self._connections = {}
        self.node_ids.next_value = 0
        self.connection_ids.next_value = 0
        if notify:
            self.events.emit(EventType.STATE_RESET, "reset")
