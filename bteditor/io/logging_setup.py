# FILE: bteditor/io/logging_setup.py
"""
Logging für Editor-Core, CLI und Backend.

- Ein Stream-Handler am Root-Logger, erkennbar an seiner Klasse; erneutes
  setup_logging() ersetzt ihn statt einen zweiten anzuhängen.
- Zwei Ausgabeformen: Textzeile mit ``key=value``-Kontext oder JSON-Lines.
- Kontextfelder (node_id, connection_id, operation) werden über ``extra=``
  übergeben und in beiden Formen ausgegeben.
- Level pro Namensraum (bteditor.core, bteditor.behavior, ...) und
  gedämpfte Drittanbieter-Logger.

Die Anwendung ruft setup_logging() bzw. setup_from_config() selbst auf;
Bibliotheksmodule holen sich nur ``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

LINE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

CONTEXT_FIELDS = ("node_id", "connection_id", "operation")

EDITOR_NAMESPACES = (
    "bteditor",
    "bteditor.core",
    "bteditor.behavior",
    "bteditor.io",
    "bteditor.app",
    "bteditor.registry",
    "bteditor_backend",
)
NOISY_LIBRARIES = ("pluggy", "urllib3", "httpx", "uvicorn.access")

LevelLike = Union[int, str]


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: getattr(record, k) for k in CONTEXT_FIELDS if hasattr(record, k)}


class KVFormatter(logging.Formatter):
    """Textzeile, Kontextfelder als ``key=value`` angehängt."""

    def __init__(self, fmt: str = LINE_FORMAT, datefmt: Optional[str] = DATE_FORMAT):
        super().__init__(fmt, datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        ctx = _context(record)
        if not ctx:
            return line
        return line + " | " + " ".join(f"{k}={v}" for k, v in ctx.items())


class JSONFormatter(logging.Formatter):
    """Ein JSON-Objekt pro Zeile."""

    def __init__(self, datefmt: Optional[str] = DATE_FORMAT):
        super().__init__(datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}:{record.lineno}",
        }
        payload.update(_context(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class EditorStreamHandler(logging.StreamHandler):
    """Marker-Klasse für den von setup_logging installierten Handler."""


def make_formatter(json_lines: bool) -> logging.Formatter:
    return JSONFormatter() if json_lines else KVFormatter()


def to_level(level: LevelLike) -> int:
    """Levelname oder Zahl -> Zahl (unbekannte Namen: INFO)."""
    if isinstance(level, str):
        value = logging.getLevelName(level.strip().upper())
        return value if isinstance(value, int) else logging.INFO
    return int(level)


def setup_logging(
    level: LevelLike = logging.INFO,
    json_lines: bool = False,
    stream: Optional[Any] = None,
    quiet_libraries: Iterable[str] = NOISY_LIBRARIES,
) -> logging.Handler:
    """
    Installiert bzw. ersetzt den Editor-Handler am Root-Logger.

    Args:
      level: Level für Root und alle Editor-Namensräume
      json_lines: JSON-Lines statt Textzeilen
      stream: Ziel (Default: sys.stderr)
      quiet_libraries: Logger, die mindestens auf WARNING gesetzt werden

    Returns:
      Der neue Handler.
    """
    numeric = to_level(level)
    root = logging.getLogger()
    for existing in [h for h in root.handlers if isinstance(h, EditorStreamHandler)]:
        root.removeHandler(existing)

    handler = EditorStreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(numeric)
    handler.setFormatter(make_formatter(json_lines))
    root.addHandler(handler)
    root.setLevel(numeric)

    for name in EDITOR_NAMESPACES:
        logging.getLogger(name).setLevel(numeric)
    for name in quiet_libraries:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))
    return handler


def set_namespace_levels(levels: Dict[str, LevelLike]) -> None:
    """Level je Logger-Namensraum, z. B. {"bteditor.behavior": "DEBUG"}."""
    for name, lvl in levels.items():
        logging.getLogger(name).setLevel(to_level(lvl))


def add_file_handler(
    path: Union[str, Path],
    level: LevelLike = logging.INFO,
    json_lines: bool = True,
) -> logging.Handler:
    """Hängt eine Log-Datei an (Verzeichnis wird angelegt); Rückgabe zum späteren Entfernen."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(str(target), mode="a", encoding="utf-8")
    handler.setLevel(to_level(level))
    handler.setFormatter(make_formatter(json_lines))
    logging.getLogger().addHandler(handler)
    return handler


def setup_from_config(cfg) -> Optional[logging.Handler]:
    """
    Wendet einen LoggingConfig-Abschnitt an (Stream, Namensräume, optional Datei).

    Returns:
      Der Datei-Handler, falls ``cfg.file`` gesetzt ist.
    """
    setup_logging(level=cfg.level, json_lines=cfg.json_lines)
    if cfg.namespaces:
        set_namespace_levels(cfg.namespaces)
    if cfg.file:
        return add_file_handler(cfg.file, level=cfg.level)
    return None
