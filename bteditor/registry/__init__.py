"""Node-type catalog backed by pluggy."""

from .manager import CatalogManager

__all__ = ["CatalogManager"]
