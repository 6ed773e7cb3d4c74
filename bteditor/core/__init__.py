"""Graph model: typed ids, entities, change notifications and the graph store."""

from .events import ChangeEvent, EventBus, EventType
from .graph_store import GraphStore
from .models import Connection, Node, NodeCategory, NodeTypeDef, PropertyDef

__all__ = [
    "ChangeEvent",
    "Connection",
    "EventBus",
    "EventType",
    "GraphStore",
    "Node",
    "NodeCategory",
    "NodeTypeDef",
    "PropertyDef",
]
