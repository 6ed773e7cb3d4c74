"""Hook specifications for node-type catalog plugins."""
import pluggy

hookspec = pluggy.HookspecMarker("bteditor")


@hookspec
def register_node_types():
    """Register node type definitions available in the palette.

    Returns:
        List[dict | NodeTypeDef]: Definitions with type, name, category,
        maxChildren, canBeChildless and properties
    """
    pass
