"""Cached list of data nodes that super nodes report as readable."""

from __future__ import annotations

import json
import random
import threading
import time
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

DEFAULT_TIME_RANGE = 600
DEFAULT_TTL = 60.0
SUPER_NODE_COUNT = 21


def node_list_url(time_range: int = 0, index: int | None = None) -> str:
    """Return the URL of a super node's readable-node list.

    A zero ``time_range`` means the default; ``index`` is chosen at random when omitted.
    """
    if index is None:
        index = random.randrange(SUPER_NODE_COUNT)
    if time_range == 0:
        time_range = DEFAULT_TIME_RANGE
    return f"http://sn{index:02d}.yottachain.net:8082/readable_nodes?timerange={time_range}"


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    if key in data:
        return data[key]
    for k, v in data.items():
        if str(k).lower() == key:
            return v
    return ""


@dataclass(frozen=True)
class NodeData:
    """One entry of the readable-node list."""

    node_id: str
    id: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NodeData":
        if not isinstance(data, Mapping):
            raise ValueError(f"node entry must be an object, got {data!r}")
        return cls(node_id=str(_lookup(data, "nodeid")), id=str(_lookup(data, "id")))


def _fetch_remote() -> Any:
    with urllib.request.urlopen(node_list_url(), timeout=30) as resp:
        return json.loads(resp.read())


class ActiveNodeList:
    """Answers whether a node is active, refreshing the list after ``ttl`` seconds."""

    def __init__(
        self,
        fetch: Callable[[], Iterable[Mapping[str, Any]]] | None = None,
        ttl: float = DEFAULT_TTL,
    ):
        self._fetch = fetch if fetch is not None else _fetch_remote
        self.ttl = ttl
        self.nodes: list[NodeData] = []
        self._updated: float | None = None
        self._lock = threading.Lock()

    def update(self) -> bool:
        """Refresh the list; on failure keep the old one and return False."""
        try:
            raw = self._fetch()
            if isinstance(raw, (str, bytes, Mapping)) or raw is None:
                raise ValueError("node list must be a JSON array")
            nodes = [NodeData.from_dict(entry) for entry in raw]
        except (OSError, ValueError):
            return False
        self.nodes = nodes
        self._updated = time.monotonic()
        return True

    def has_node_id(self, node_id: str) -> bool:
        """Return True if ``node_id`` is in the (possibly refreshed) list."""
        with self._lock:
            if self._updated is None or time.monotonic() - self._updated > self.ttl:
                self.update()
            return any(node.node_id == node_id for node in self.nodes)