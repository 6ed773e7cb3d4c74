# FILE: bteditor/app/monitor.py
"""
Live execution status overlay.

StatusMonitor maps ``{node_name, status}`` reports from a running tree onto
editor nodes (exact display-name match, unmatched names ignored). Each
message replaces the previous set of states.

StatusStream reads a server-sent-events endpoint with ``requests`` on a
background thread. The reader only decodes and queues payloads; the thread
that owns the session calls drain() to apply them, so the store and the
event handlers are never touched from the reader thread.
"""

import json
import logging
import queue
import threading
from typing import Any, Dict, Iterable, Iterator, List, Optional

import requests

from ..core.events import EventBus, EventType
from ..core.graph_store import GraphStore

log = logging.getLogger(__name__)

STATUS_IDLE = "idle"
STATUS_RUNNING = "running"
STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"

_STATUS_MAP = {
    "running": STATUS_RUNNING,
    "active": STATUS_RUNNING,
    "success": STATUS_SUCCESS,
    "failure": STATUS_FAILURE,
}


def normalize_status(raw: Any) -> str:
    """Map a reported status onto running/success/failure/idle."""
    return _STATUS_MAP.get(str(raw or "").strip().lower(), STATUS_IDLE)


def _pairs(message: Any) -> List[Dict[str, Any]]:
    """Accept a single pair, a list of pairs or ``{"nodes": [{name, status}]}``."""
    if isinstance(message, dict) and isinstance(message.get("nodes"), list):
        return [{"node_name": n.get("name"), "status": n.get("status")}
                for n in message["nodes"] if isinstance(n, dict)]
    if isinstance(message, dict) and "node_name" in message:
        return [message]
    if isinstance(message, list):
        return [m for m in message if isinstance(m, dict) and "node_name" in m]
    return []


class StatusMonitor:
    """Per-node execution status keyed by node id."""

    def __init__(self, store: GraphStore, events: EventBus):
        self.store = store
        self.events = events
        self.node_states: Dict[str, str] = {}
        self.active = False

    def apply(self, message: Any) -> Dict[str, str]:
        """Replace the current states with those in ``message``."""
        states: Dict[str, str] = {}
        unmatched = 0
        for pair in _pairs(message):
            node = self.store.find_node_by_name(str(pair.get("node_name")))
            if node is None:
                unmatched += 1
                continue
            states[node.id] = normalize_status(pair.get("status"))
        self.node_states = states
        log.debug("monitor update matched=%d unmatched=%d", len(states), unmatched)
        self.events.emit(EventType.MONITOR_CHANGED, "updated", node_states=dict(states))
        return dict(states)

    def status_of(self, node_id: str) -> str:
        return self.node_states.get(node_id, STATUS_IDLE)

    def clear(self) -> None:
        if self.node_states:
            self.node_states = {}
            self.events.emit(EventType.MONITOR_CHANGED, "stopped", node_states={})


def iter_sse_data(lines: Iterable[str]) -> Iterator[str]:
    """Yield the joined ``data:`` payload of each server-sent event."""
    buf: List[str] = []
    for line in lines:
        if line is None:
            continue
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        line = line.rstrip("\r")
        if not line:
            if buf:
                yield "\n".join(buf)
                buf = []
            continue
        if line.startswith(":"):
            continue
        if line.startswith("data:"):
            buf.append(line[5:].lstrip(" ") if line[5:6] == " " else line[5:])
    if buf:
        yield "\n".join(buf)


_END = object()


class StatusStream:
    """SSE reader thread; decoded messages wait in ``inbox`` until drain()."""

    def __init__(self, monitor: StatusMonitor, url: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.monitor = monitor
        self.url = url
        self.timeout = timeout
        self.http = session or requests.Session()
        self.inbox: "queue.Queue[Any]" = queue.Queue()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._response: Optional[requests.Response] = None
        self.last_error: Optional[str] = None

    def consume(self, lines: Iterable[str]) -> int:
        """Queue every event in ``lines``; returns the number queued."""
        queued = 0
        for payload in iter_sse_data(lines):
            if self._stop.is_set():
                break
            try:
                message = json.loads(payload)
            except ValueError as e:
                log.error("Error parsing monitoring data: %s", e)
                continue
            self.inbox.put(message)
            queued += 1
        return queued

    def run(self) -> None:
        """Blocking read until the stream ends, fails or stop() is called."""
        try:
            with self.http.get(self.url, stream=True, timeout=self.timeout,
                               headers={"Accept": "text/event-stream"}) as resp:
                self._response = resp
                if self._stop.is_set():
                    return
                resp.raise_for_status()
                log.info("Monitoring connection established url=%s", self.url)
                self.consume(resp.iter_lines(decode_unicode=True))
        except (requests.exceptions.RequestException, OSError, ValueError) as e:
            if self._stop.is_set():
                log.debug("Monitoring read ended by stop url=%s: %s", self.url, e)
            else:
                self.last_error = str(e)
                log.error("Monitoring connection error url=%s: %s", self.url, e)
        finally:
            self._response = None
            self.inbox.put(_END)

    def drain(self) -> int:
        """Apply queued messages on the calling thread; returns the number applied.

        The end-of-stream marker clears the monitor.
        """
        applied = 0
        while True:
            try:
                item = self.inbox.get_nowait()
            except queue.Empty:
                return applied
            if item is _END:
                self.monitor.active = False
                self.monitor.clear()
                continue
            self.monitor.apply(item)
            applied += 1

    def start(self) -> threading.Thread:
        self._stop.clear()
        self.monitor.active = True
        self._thread = threading.Thread(target=self.run, name="bteditor-monitor", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, join_timeout: float = 5.0) -> None:
        """Close the response, wait for the reader and drop unapplied messages."""
        self._stop.set()
        resp = self._response
        if resp is not None:
            resp.close()
        if self._thread is not None:
            self._thread.join(join_timeout)
            if self._thread.is_alive():
                log.warning("Monitoring reader did not stop within %.1fs url=%s", join_timeout, self.url)
            self._thread = None
        while True:
            try:
                self.inbox.get_nowait()
            except queue.Empty:
                break
        self.monitor.active = False
        self.monitor.clear()
        log.info("Monitoring stopped url=%s", self.url)
