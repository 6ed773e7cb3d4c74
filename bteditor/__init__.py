"""bteditor: graph model and compiler pipeline for a behavior-tree editor."""

__version__ = "0.3.0"
