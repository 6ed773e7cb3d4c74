# FILE: bteditor/io/config_loader.py
"""
Konfigurations-Loader und Pydantic-Schemata für den Editor-Core.

Ziele:
- YAML/JSON laden (PyYAML, safe_load) und gegen Schemata validieren.
- Quelle auflösen: CLI ``--config`` > ENV ``BTEDITOR_CONFIG`` > Defaults.
- Klare, aggregierte Validierungsfehler ausgeben.

Hinweise:
- Rein-funktional: keine Seiteneffekte außerhalb von Logging.
- JSON ist gültiges YAML, daher genügt ein Parser für beide Formate.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from ..behavior.layout import LayoutOptions
from ..core.models import GridSettings

log = logging.getLogger(__name__)

CONFIG_ENV = "BTEDITOR_CONFIG"


# ---------- Pydantic Schemata ----------

class LoggingConfig(BaseModel):
    """Logging-Optionen (siehe logging_setup.setup_logging)."""
    level: str = Field("INFO", description="Root level: DEBUG/INFO/WARNING/ERROR")
    json_lines: bool = Field(False, description="JSON-Lines statt Key-Value-Format")
    namespaces: Dict[str, str] = Field(default_factory=dict, description="Level pro Logger-Namespace")
    file: Optional[str] = Field(None, description="Zusätzliche JSON-Lines-Logdatei")

    @field_validator("level")
    @classmethod
    def _level_ok(cls, v: str) -> str:
        lv = (v or "INFO").upper()
        if lv not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"level must be a logging level name, got '{v}'")
        return lv


class ViewportConfig(BaseModel):
    """Zoom-Grenzen des Viewports."""
    min_scale: float = Field(0.1, gt=0)
    max_scale: float = Field(5.0, gt=0)
    default_scale: float = Field(1.0, gt=0)


class LayoutConfig(BaseModel):
    """Abstände für das hierarchische Auto-Layout."""
    node_width: float = Field(150.0, gt=0, description="Node width in canvas units")
    node_height: float = Field(40.0, gt=0, description="Node height in canvas units")
    node_spacing_x: float = Field(20.0, ge=0)
    node_spacing_y: float = Field(20.0, ge=0)
    tree_spacing_x: float = Field(40.0, ge=0)

    def to_options(self) -> LayoutOptions:
        return LayoutOptions(**self.model_dump())


class ExportConfig(BaseModel):
    """XML-Export und semantische Prüfung."""
    format_version: str = Field("4", description="BTCPP_format attribute")
    require_single_root: bool = Field(False, description="Forests with several roots are rejected")


class EditorConfig(BaseModel):
    """Vollständige Editor-Konfiguration."""
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    grid: GridSettings = Field(default_factory=GridSettings)
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    load_entry_points: bool = Field(True, description="Load third-party node-type catalogs")


# ---------- Loader-/Validierungsfunktionen ----------

def _load_text(path_or_text: Union[str, Path]) -> str:
    """
    Lädt Text aus Datei oder interpretiert Eingabe als Text (rein).
    """
    if isinstance(path_or_text, Path):
        return path_or_text.read_text(encoding="utf-8")
    if not path_or_text.strip():
        return ""
    # Mehrzeilig oder mit Klammer beginnend: Inhalt, kein Pfad
    if "\n" in path_or_text or path_or_text.strip().startswith(("{", "[")):
        return path_or_text
    p = Path(path_or_text)
    if p.exists():
        return p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml", ".json"):
        raise FileNotFoundError(f"Config file not found: {p}")
    return path_or_text


def load_raw_config(path_or_text: Union[str, Path]) -> Dict[str, Any]:
    """
    Lädt YAML oder JSON in ein Dict (rein). Leere Eingabe ergibt {}.
    """
    text = _load_text(path_or_text)
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"YAML parse error: {e}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be a mapping/object")
    return data


def parse_editor_config(data: Dict[str, Any]) -> EditorConfig:
    """
    Validiert rohes Dict gegen pydantic-Modelle (rein).
    """
    try:
        return EditorConfig(**data)
    except Exception as e:
        raise ValueError(f"Schema validation failed: {e}")


def resolve_config_source(argv: Optional[List[str]] = None) -> Optional[str]:
    """
    Ermittelt optionalen Pfad zur Konfiguration.
    Priorität:
      1) CLI: --config <path>
      2) ENV: BTEDITOR_CONFIG=<path>
      3) None -> Defaults
    """
    argv = argv or []
    if "--config" in argv:
        idx = argv.index("--config")
        if idx + 1 >= len(argv):
            raise ValueError("--config given without a path")
        return argv[idx + 1]
    return os.environ.get(CONFIG_ENV) or None


def load_editor_config(path_or_text: Optional[Union[str, Path]] = None) -> EditorConfig:
    """
    Bequeme End-to-End-Funktion: Datei/Text laden -> validieren.
    Ohne Quelle werden ENV bzw. Defaults verwendet.
    """
    source = path_or_text if path_or_text is not None else resolve_config_source()
    if source is None:
        log.debug("Keine Editor-Konfiguration angegeben; nutze Defaults")
        return EditorConfig()
    cfg = parse_editor_config(load_raw_config(source))
    log.info("Editor-Konfiguration geladen (grid=%s, format=%s)", cfg.grid.size, cfg.export.format_version)
    return cfg
