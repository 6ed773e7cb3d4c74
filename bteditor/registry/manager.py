# FILE: bteditor/registry/manager.py
"""Catalog of built-in node types, collected from plugins."""
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pluggy

from ..core.models import NodeTypeDef
from . import hookspecs

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "bteditor.node_types"


class CatalogManager:
    """Discovers node-type plugins and answers definition lookups."""

    def __init__(self, load_entry_points: bool = True):
        """Initialize catalog manager.

        Args:
            load_entry_points: Also load third-party catalogs from the
                ``bteditor.node_types`` entry-point group
        """
        self.pm = pluggy.PluginManager("bteditor")
        self.pm.add_hookspecs(hookspecs)
        self.load_entry_points = load_entry_points
        self._types: Dict[Tuple[str, str], NodeTypeDef] = {}
        self._origins: Dict[str, str] = {}
        self._extra_plugins: List[Any] = []
        logger.info("CatalogManager initialized (entry_points=%s)", load_entry_points)

    def add_plugin(self, plugin: Any) -> None:
        """Register an additional plugin object or module before discovery."""
        self._extra_plugins.append(plugin)

    def discover_and_register(self) -> None:
        """Discover and register all catalog plugins (idempotent)."""
        from ..plugins import builtin_nodes

        self._types.clear()
        self._origins.clear()
        self.pm = pluggy.PluginManager("bteditor")
        self.pm.add_hookspecs(hookspecs)

        self.pm.register(builtin_nodes)
        for plugin in self._extra_plugins:
            self.pm.register(plugin)
        if self.load_entry_points:
            self._load_entry_point_plugins()

        self._collect_types()
        logger.info("Catalog discovery complete: %d node types", len(self._types))

    def _load_entry_point_plugins(self) -> None:
        """Load plugins from setuptools entry points."""
        import importlib.metadata as importlib_metadata

        for ep in importlib_metadata.entry_points().select(group=ENTRY_POINT_GROUP):
            try:
                plugin = ep.load()
                self.pm.register(plugin)
                logger.info("Loaded catalog plugin from entry point: %s", ep.name)
            except Exception as e:
                logger.error("Failed to load catalog plugin %s: %s", ep.name, e, exc_info=True)

    def _register_items(self, items: Iterable[Any], origin: str) -> None:
        """
        Register definitions with duplicate detection.
        Raises ValueError with origin info on collisions.
        """
        for item in items:
            definition = item if isinstance(item, NodeTypeDef) else NodeTypeDef.model_validate(item)
            if definition.type in self._origins:
                msg = (
                    f"Duplicate node type registration detected for '{definition.type}'. "
                    f"Existing: {self._origins[definition.type]}; New: {origin}. "
                    f"Type names must be unique across all plugins."
                )
                logger.error(msg)
                raise ValueError(msg)
            self._types[(definition.category, definition.type)] = definition
            self._origins[definition.type] = origin
            logger.debug("Registered node type: %s/%s (from %s)", definition.category, definition.type, origin)

    def _collect_types(self) -> None:
        impls = self.pm.hook.register_node_types.get_hookimpls()
        for impl in impls:
            items = impl.function()
            if not items:
                continue
            self._register_items(items, origin=impl.plugin_name)

    # ---------- Lookup ----------

    def get_definition(self, type_name: str, category: str,
                       custom_types: Optional[Iterable[NodeTypeDef]] = None) -> Optional[NodeTypeDef]:
        """Built-in definition for (type, category), else a matching custom type."""
        builtin = self._types.get((category, type_name))
        if builtin is not None:
            return builtin
        for custom in custom_types or ():
            if custom.type == type_name:
                return custom
        return None

    def lookup(self, custom_types: Callable[[], Iterable[NodeTypeDef]]) -> Callable[[str, str], Optional[NodeTypeDef]]:
        """Bind a custom-type provider into a ``(type, category) -> def`` function."""
        return lambda type_name, category: self.get_definition(type_name, category, custom_types())

    def list_types(self, category: Optional[str] = None) -> List[NodeTypeDef]:
        return [d for (cat, _), d in self._types.items() if category is None or cat == category]

    def list_categories(self) -> List[str]:
        seen: List[str] = []
        for cat, _ in self._types:
            if cat not in seen:
                seen.append(cat)
        return seen

    def is_builtin(self, type_name: str) -> bool:
        return type_name in self._origins
