# FILE: bteditor/io/codec.py
"""
Persistence codec: editor state <-> JSON envelope.

Goals:
- Structural snapshot ``{nodes, connections, customNodeTypes, collapsedCategories, grid}``;
  this is the re-loadable format, XML is export only.
- Validate the full shape with pydantic before anything is handed to the store.
- Recompute id counters from the loaded ids (max numeric suffix + 1).

Notes:
- Unknown keys are ignored; missing optional keys default to empty collections.
- Transient UI state (selection, pending connection, selection box) and the
  viewport are never part of the file.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr, ValidationError, model_validator

from ..core.ids import connection_sequence, node_sequence
from ..core.models import Connection, GridSettings, Node, NodeTypeDef
from ..errors import EditorIOError, FormatError

log = logging.getLogger(__name__)

Number = Union[StrictInt, StrictFloat]


# ---------- File schemas ----------

class NodeRecord(BaseModel):
    """Node as stored in a file."""
    id: StrictStr
    type: StrictStr
    category: StrictStr
    name: Optional[StrictStr] = None
    x: Number
    y: Number
    properties: Dict[str, Any]

    @model_validator(mode="after")
    def _default_name(self):
        if self.name is None:
            self.name = self.type
        return self

    def to_node(self) -> Node:
        return Node(id=self.id, type=self.type, category=self.category, name=self.name,
                    x=float(self.x), y=float(self.y), properties=dict(self.properties))


class ConnectionRecord(BaseModel):
    """Connection as stored in a file."""
    id: StrictStr
    source: StrictStr
    target: StrictStr

    def to_connection(self) -> Connection:
        return Connection(id=self.id, source=self.source, target=self.target)


class EditorDocument(BaseModel):
    """Top-level file envelope."""
    nodes: List[NodeRecord]
    connections: List[ConnectionRecord]
    customNodeTypes: List[NodeTypeDef] = Field(default_factory=list)
    collapsedCategories: Dict[str, bool] = Field(default_factory=dict)
    grid: Optional[GridSettings] = None


# ---------- State containers ----------

@dataclass
class StateSnapshot:
    """Persistable part of an editing session."""
    nodes: List[Node] = field(default_factory=list)
    connections: List[Connection] = field(default_factory=list)
    custom_node_types: List[NodeTypeDef] = field(default_factory=list)
    collapsed_categories: Dict[str, bool] = field(default_factory=dict)
    grid: GridSettings = field(default_factory=GridSettings)


@dataclass
class StateDelta(StateSnapshot):
    """Decoded file plus recomputed id counters, ready to be applied."""
    next_node_id: int = 0
    next_connection_id: int = 0
    grid_present: bool = False


# ---------- Encode ----------

def snapshot_to_dict(state: StateSnapshot) -> Dict[str, Any]:
    return {
        "nodes": [n.to_dict() for n in state.nodes],
        "connections": [c.to_dict() for c in state.connections],
        "customNodeTypes": [t.to_dict() for t in state.custom_node_types],
        "collapsedCategories": dict(state.collapsed_categories),
        "grid": state.grid.model_dump(),
    }


def encode(state: StateSnapshot) -> str:
    """Serialize a snapshot to JSON text."""
    return json.dumps(snapshot_to_dict(state), ensure_ascii=False, indent=2)


# ---------- Decode ----------

def _parse(source: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(source, dict):
        return source
    try:
        data = json.loads(source)
    except (TypeError, ValueError) as e:
        raise FormatError(f"Invalid behavior tree file format: JSON parse error: {e}")
    if not isinstance(data, dict):
        raise FormatError("Invalid behavior tree file format: top-level JSON must be an object")
    return data


def _check_references(doc: EditorDocument) -> None:
    node_ids = set()
    for n in doc.nodes:
        if n.id in node_ids:
            raise FormatError(f"Invalid behavior tree file format: duplicate node id '{n.id}'")
        node_ids.add(n.id)
    conn_ids = set()
    for c in doc.connections:
        if c.id in conn_ids:
            raise FormatError(f"Invalid behavior tree file format: duplicate connection id '{c.id}'")
        conn_ids.add(c.id)
        missing = [e for e in (c.source, c.target) if e not in node_ids]
        if missing:
            raise FormatError(
                f"Invalid behavior tree file format: connection '{c.id}' references unknown nodes {missing}"
            )


def decode(source: Union[str, bytes, Dict[str, Any]]) -> StateDelta:
    """Validate a JSON document completely and turn it into a StateDelta.

    Raises:
        FormatError: Malformed JSON, wrong shape or broken references
    """
    data = _parse(source)
    try:
        doc = EditorDocument.model_validate(data)
    except ValidationError as e:
        raise FormatError(f"Invalid behavior tree file format: {e}")
    _check_references(doc)

    nodes = [r.to_node() for r in doc.nodes]
    connections = [r.to_connection() for r in doc.connections]
    delta = StateDelta(
        nodes=nodes,
        connections=connections,
        custom_node_types=list(doc.customNodeTypes),
        collapsed_categories=dict(doc.collapsedCategories),
        grid=doc.grid or GridSettings(),
        grid_present=doc.grid is not None,
        next_node_id=node_sequence().resume_after(n.id for n in nodes),
        next_connection_id=connection_sequence().resume_after(c.id for c in connections),
    )
    log.info("decode ok nodes=%d connections=%d custom_types=%d next_ids=(%d,%d)",
             len(nodes), len(connections), len(delta.custom_node_types),
             delta.next_node_id, delta.next_connection_id)
    return delta


# ---------- Files ----------

def read_file(path: Union[str, Path]) -> StateDelta:
    """Read and decode an editor file."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise EditorIOError(f"Cannot read '{p}': {e}")
    return decode(text)


def write_file(path: Union[str, Path], text: str) -> Path:
    """Write text to ``path``, creating parent directories."""
    p = Path(path)
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")
    except OSError as e:
        raise EditorIOError(f"Cannot write '{p}': {e}")
    log.info("file written path=%s chars=%d", p, len(text))
    return p
