# FILE: bteditor/core/models.py
"""Entities of the editor graph and the node-type reference data.

Pydantic models are used for everything that crosses the file boundary
(nodes, connections, type definitions, grid settings); pure UI state lives in
dataclasses on the session.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class NodeCategory(str, Enum):
    """Structural role of a node."""
    COMPOSITE = "composite"
    DECORATOR = "decorator"
    ACTION = "action"
    CONDITION = "condition"
    SUBTREE = "subtree"


# Categories allowed to stand without children
LEAF_CATEGORIES = frozenset({
    NodeCategory.ACTION.value, NodeCategory.CONDITION.value, NodeCategory.SUBTREE.value,
})

# (maxChildren, canBeChildless) per category for custom types
_CATEGORY_CONSTRAINTS: Dict[str, Dict[str, Any]] = {
    "composite": {"maxChildren": None, "canBeChildless": False},
    "decorator": {"maxChildren": 1, "canBeChildless": False},
    "action": {"maxChildren": 0, "canBeChildless": True},
    "condition": {"maxChildren": 0, "canBeChildless": True},
    "subtree": {"maxChildren": 0, "canBeChildless": True},
}


def default_constraints(category: str) -> Dict[str, Any]:
    """Child-count constraints a type gets when it does not declare its own."""
    return dict(_CATEGORY_CONSTRAINTS.get(category, {"maxChildren": None, "canBeChildless": True}))


class PropertyDef(BaseModel):
    """Editable property of a node type."""
    name: str
    type: str = "string"
    default: Any = ""
    description: str = ""


class NodeTypeDef(BaseModel):
    """Catalog entry: built-in or user-defined node type."""
    model_config = ConfigDict(populate_by_name=True)

    type: str
    name: str = ""
    category: str
    max_children: Optional[int] = Field(None, alias="maxChildren", ge=0)
    can_be_childless: bool = Field(True, alias="canBeChildless")
    properties: List[PropertyDef] = Field(default_factory=list)
    description: str = ""
    builtin: bool = False

    @model_validator(mode="before")
    @classmethod
    def _fill_category_constraints(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        defaults = default_constraints(str(data.get("category", "")))
        if "maxChildren" not in data and "max_children" not in data:
            data["maxChildren"] = defaults["maxChildren"]
        if "canBeChildless" not in data and "can_be_childless" not in data:
            data["canBeChildless"] = defaults["canBeChildless"]
        if not data.get("name"):
            data["name"] = data.get("type", "")
        return data

    def default_properties(self) -> Dict[str, Any]:
        """Fresh property map for a node created from this type."""
        return {p.name: ("" if p.default is None else p.default) for p in self.properties}

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class Node(BaseModel):
    """Typed vertex of the behavior tree graph."""
    id: str
    type: str
    category: str
    name: str = ""
    x: float = 0.0
    y: float = 0.0
    properties: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_leaf_category(self) -> bool:
        return self.category in LEAF_CATEGORIES

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class Connection(BaseModel):
    """Parent -> child edge; ``source`` provides the child slot."""
    id: str
    source: str
    target: str

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class GridSettings(BaseModel):
    """Canvas grid; only ``snap`` and ``size`` affect the model."""
    enabled: bool = True
    size: int = Field(20, ge=1)
    snap: bool = True

    @field_validator("size")
    @classmethod
    def _size_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("grid size must be greater than 0")
        return v

    def snap_value(self, value: float) -> float:
        if not self.snap:
            return value
        return float(round(value / self.size) * self.size)
