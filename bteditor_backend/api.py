# FILE: bteditor_backend/api.py
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from bteditor import __version__
from bteditor.app.session import EditorSession
from bteditor.errors import FormatError, SemanticError
from bteditor.io.codec import decode
from bteditor.io.config_loader import EditorConfig, load_editor_config
from bteditor.io.logging_setup import setup_from_config
from bteditor.registry.manager import CatalogManager

log = logging.getLogger(__name__)

# Konfiguration aus ENV (BTEDITOR_CONFIG) oder Defaults
try:
    _config: EditorConfig = load_editor_config()
except ValueError as e:
    log.error("Config load failed, using defaults: %s", e)
    _config = EditorConfig()
setup_from_config(_config.logging)

# Katalog global (Entry-Points per ENV abschaltbar)
_LOAD_EP = os.environ.get("BTEDITOR_ENTRY_POINTS", "1").lower() in ("1", "true", "yes")
_catalog = CatalogManager(load_entry_points=_LOAD_EP and _config.load_entry_points)
try:
    _catalog.discover_and_register()
except Exception as e:
    log.error("Catalog discovery failed at startup: %s", e, exc_info=True)

app = FastAPI(title="bteditor backend", version=__version__)

# CORS für lokale Entwicklung offen
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _session() -> EditorSession:
    return EditorSession(config=_config, catalog=_catalog)


def _loaded(document: Dict[str, Any]) -> EditorSession:
    """Session holding ``document``; raises 422 on format or semantic errors."""
    session = _session()
    try:
        session.load_text(document)
    except FormatError as e:
        raise HTTPException(status_code=422, detail={"kind": "format", "message": str(e)})
    except SemanticError as e:
        raise HTTPException(status_code=422, detail={"kind": "semantic", "message": e.message})
    return session


@app.get("/node-types")
def get_node_types(category: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
    """
    Liefert die eingebauten Node-Typen, gruppiert nach Kategorie.
    """
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for cat in _catalog.list_categories():
        if category is None or cat == category:
            grouped[cat] = [d.to_dict() for d in _catalog.list_types(cat)]
    return grouped


@app.post("/validate")
def validate_document(document: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    """
    Prüft ein Editor-Dokument: Format (pydantic) und Baum-Semantik.
    Antwort: ok true/false + kind (format/semantic) + message.
    """
    session = _session()
    try:
        delta = session.load_text(document)
    except FormatError as e:
        log.warning("Format validation failed: %s", e)
        return {"ok": False, "kind": "format", "message": str(e)}
    except SemanticError as e:
        log.info("Semantic validation failed: %s", e.message)
        return {"ok": False, "kind": "semantic", "message": e.message}
    return {
        "ok": True,
        "message": session.validate_tree().message,
        "nodes": len(delta.nodes),
        "connections": len(delta.connections),
        "next_node_id": delta.next_node_id,
        "next_connection_id": delta.next_connection_id,
    }


@app.post("/connections/validate")
def validate_connection(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    """
    Prüft, ob ``source`` -> ``target`` im Dokument verbunden werden darf.
    Payload: {"document": {...}, "source": "node_0", "target": "node_1"}
    """
    document = payload.get("document")
    source, target = payload.get("source"), payload.get("target")
    if not isinstance(document, dict) or not isinstance(source, str) or not isinstance(target, str):
        raise HTTPException(status_code=400, detail="payload needs document, source and target")
    session = _session()
    try:
        session.apply_state(decode(document))
    except FormatError as e:
        raise HTTPException(status_code=422, detail={"kind": "format", "message": str(e)})
    result = session.validate_connection(source, target)
    return {"valid": result.valid, "reason": result.reason}


@app.post("/export", response_class=PlainTextResponse)
def export_xml(document: Dict[str, Any] = Body(...)) -> str:
    """
    Erzeugt BehaviorTree.CPP-XML für ein gültiges Dokument.
    """
    session = _loaded(document)
    return session.export_xml()
