# FILE: bteditor/io/xml_export.py
"""BehaviorTree.CPP XML generation (export only, never re-imported).

Layout of the document:

    <?xml version="1.0"?>
    <root BTCPP_format="4">
      <BehaviorTree ID="{root name}">
        <Sequence name="A">
          <Action name="B" key="value"/>
        </Sequence>
      </BehaviorTree>
      <TreeNodesModel>
        <Node ID="MyAction" NodeType="Action"/>
      </TreeNodesModel>
    </root>

Every attribute value and element name is escaped for & < > " '.
Indentation is two spaces per depth and carries no meaning.
"""

import logging
from typing import Any, Iterable, List, Tuple
from xml.sax.saxutils import escape

from ..core.models import NodeTypeDef
from ..behavior.extractor import HierarchyNode

log = logging.getLogger(__name__)

DEFAULT_FORMAT_VERSION = "4"

_MODEL_NODE_TYPES = {
    "composite": "Composite",
    "decorator": "Decorator",
    "action": "Action",
    "condition": "Condition",
}

_ENTITIES = {'"': "&quot;", "'": "&#039;"}


def escape_xml(value: Any) -> str:
    """Escape text for use in element names, attribute values and text."""
    if value is None:
        return ""
    return escape(format_value(value), _ENTITIES)


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def model_node_type(category: str) -> str:
    """NodeType keyword for the TreeNodesModel block."""
    return _MODEL_NODE_TYPES.get(category, "SubTree")


def _attributes(node: HierarchyNode) -> str:
    parts = [f' name="{escape_xml(node.node.name)}"']
    for key, value in node.node.properties.items():
        # falsy values (None, "", False, 0) are left out; "name" is the node name
        if value and key != "name":
            parts.append(f' {escape_xml(key)}="{escape_xml(value)}"')
    return "".join(parts)


def generate_node_xml(root: HierarchyNode, indent: int) -> str:
    """Render a subtree; childless nodes become self-closing elements."""
    lines: List[str] = []
    # (node, indent, closing tag pending)
    stack: List[Tuple[HierarchyNode, int, bool]] = [(root, indent, False)]
    while stack:
        node, depth, closing = stack.pop()
        spaces = " " * depth
        tag = escape_xml(node.node.type)
        if closing:
            lines.append(f"{spaces}</{tag}>\n")
            continue
        if not node.children:
            lines.append(f"{spaces}<{tag}{_attributes(node)}/>\n")
            continue
        lines.append(f"{spaces}<{tag}{_attributes(node)}>\n")
        stack.append((node, depth, True))
        for child in reversed(node.children):
            stack.append((child, depth + 2, False))
    return "".join(lines)


def generate_xml(hierarchies: List[HierarchyNode], custom_types: Iterable[NodeTypeDef] = (),
                 format_version: str = DEFAULT_FORMAT_VERSION) -> str:
    """Render a forest plus custom-type metadata as a document."""
    version = escape_xml(format_version)
    if not hierarchies:
        return f'<root BTCPP_format="{version}">\n  <!-- no valid tree structure found -->\n</root>'

    xml = '<?xml version="1.0"?>\n'
    xml += f'<root BTCPP_format="{version}">\n'
    for tree in hierarchies:
        xml += f'  <BehaviorTree ID="{escape_xml(tree.node.name)}">\n'
        xml += generate_node_xml(tree, 4)
        xml += "  </BehaviorTree>\n"

    custom_types = list(custom_types)
    if custom_types:
        xml += "  <TreeNodesModel>\n"
        for node_type in custom_types:
            xml += f'    <Node ID="{escape_xml(node_type.type)}" NodeType="{model_node_type(node_type.category)}"/>\n'
        xml += "  </TreeNodesModel>\n"

    xml += "</root>"
    log.info("xml_export trees=%d custom_types=%d chars=%d", len(hierarchies), len(custom_types), len(xml))
    return xml
