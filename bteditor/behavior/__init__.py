"""Tree rules and compilation: edge validation, extraction, semantic check, layout."""

from .extractor import HierarchyNode, extract_roots
from .semantics import SemanticResult, check_semantics
from .validator import ConnectionValidator, ValidationResult

__all__ = [
    "ConnectionValidator",
    "HierarchyNode",
    "SemanticResult",
    "ValidationResult",
    "check_semantics",
    "extract_roots",
]
