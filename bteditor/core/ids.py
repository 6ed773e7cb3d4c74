# FILE: bteditor/core/ids.py
"""Typed identifiers for nodes and connections.

Counters are plain integers; the textual prefix (``node_``, ``conn_``) only
appears when an id is rendered for the store or a file.
"""

import re
from dataclasses import dataclass
from typing import Iterable, NewType, Optional

NodeId = NewType("NodeId", str)
ConnectionId = NewType("ConnectionId", str)

NODE_PREFIX = "node_"
CONNECTION_PREFIX = "conn_"


@dataclass
class IdSequence:
    """Monotonic counter for one entity kind."""
    prefix: str
    next_value: int = 0

    def render(self, value: int) -> str:
        return f"{self.prefix}{value}"

    def issue(self) -> str:
        """Return the next id and advance the counter."""
        value = self.next_value
        self.next_value += 1
        return self.render(value)

    def suffix_of(self, raw: str) -> Optional[int]:
        """Numeric suffix of ``raw`` or None if it is not ``<prefix><digits>``."""
        m = re.fullmatch(re.escape(self.prefix) + r"(\d+)", raw or "")
        return int(m.group(1)) if m else None

    def resume_after(self, existing: Iterable[str]) -> int:
        """Set the counter above every numeric suffix in ``existing``."""
        suffixes = [n for n in (self.suffix_of(r) for r in existing) if n is not None]
        self.next_value = max(suffixes) + 1 if suffixes else 0
        return self.next_value


def node_sequence(start: int = 0) -> IdSequence:
    return IdSequence(NODE_PREFIX, start)


def connection_sequence(start: int = 0) -> IdSequence:
    return IdSequence(CONNECTION_PREFIX, start)
