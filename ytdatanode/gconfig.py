"""Globally distributed tuning parameters for the token pools."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
import urllib.request
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Mapping

log = logging.getLogger(__name__)

DEFAULT_UPDATE_URL = "http://dnapi.yottachain.net/config/dnconfig.json"
URL_ENV = "gconfig_url"
STATE_FILE = ".gconfig"

_JSON_KEYS = {
    "max_token": "MaxToken",
    "min_token": "MinToken",
    "ttl": "TTL",
    "increase": "Increase",
    "increase_threshold": "IncreaseThreshold",
    "decrease": "Decrease",
    "decrease_threshold": "DecreaseThreshold",
    "token_wait": "TokenWait",
    "token_return_wait": "TokenReturnWait",
    "clean": "Clean",
    "shard_rbd_concurrent": "ShardRbdConcurrent",
    "outline_time_range": "OutlineTimeRange",
}

_UINT16_FIELDS = {"shard_rbd_concurrent"}


@dataclass
class Gcfg:
    """Token pool tuning values; missing values are zero."""

    max_token: int = 0
    min_token: int = 0
    ttl: int = 0
    increase: int = 0
    increase_threshold: int = 0
    decrease: int = 0
    decrease_threshold: int = 0
    token_wait: int = 0
    token_return_wait: int = 0
    clean: bool = False
    shard_rbd_concurrent: int = 0
    outline_time_range: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Return the values under their wire keys."""
        return {_JSON_KEYS[name]: value for name, value in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Gcfg":
        """Build a configuration from wire keys; absent keys stay zero."""
        return cls(**_parse_fields(data))

    def merged(self, data: Mapping[str, Any]) -> "Gcfg":
        """Return a copy with the values present in ``data`` applied."""
        return replace(self, **_parse_fields(data))


DEFAULTS = Gcfg(
    max_token=500,
    min_token=1,
    ttl=10,
    increase=30,
    increase_threshold=95,
    decrease=5,
    decrease_threshold=80,
    token_wait=800,
    token_return_wait=800,
    outline_time_range=600,
)


def _parse_fields(data: Any) -> dict[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError("configuration must be a JSON object")
    lowered = {str(k).lower(): v for k, v in data.items()}
    values: dict[str, Any] = {}
    for f in fields(Gcfg):
        key = _JSON_KEYS[f.name]
        if key in data:
            value = data[key]
        elif key.lower() in lowered:
            value = lowered[key.lower()]
        else:
            continue
        if value is None:
            continue
        if f.name == "clean":
            if not isinstance(value, bool):
                raise ValueError(f"{key} must be a boolean, got {value!r}")
        else:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{key} must be an integer, got {value!r}")
            if f.name in _UINT16_FIELDS and not 0 <= value <= 0xFFFF:
                raise ValueError(f"{key} out of range: {value}")
        values[f.name] = value
    return values


UpdateHandler = Callable[[Gcfg], None]


class GConfig:
    """Holds the current tuning values and refreshes them from a remote source."""

    def __init__(self, cfg: Gcfg | None = None, on_update: UpdateHandler | None = None):
        self.cfg = cfg if cfg is not None else Gcfg()
        self.on_update = on_update

    def get(self, url: str = DEFAULT_UPDATE_URL) -> bool:
        """Fetch the remote configuration; return True if it changed.

        The ``gconfig_url`` environment variable overrides ``url``.
        """
        url = os.environ.get(URL_ENV, url)
        with urllib.request.urlopen(url, timeout=30) as resp:
            body = resp.read()
        new = Gcfg.from_dict(json.loads(body))
        if new == self.cfg:
            return False
        self.cfg = new
        if self.on_update is not None:
            self.on_update(self.cfg)
        return True

    def update_service(
        self,
        stop_event: threading.Event,
        interval: float,
        url: str = DEFAULT_UPDATE_URL,
    ) -> None:
        """Refresh every ``interval`` seconds until ``stop_event`` is set."""
        while not stop_event.is_set():
            if stop_event.wait(interval):
                return
            try:
                self.get(url)
            except (OSError, ValueError) as exc:
                log.warning("[gconfig] error %s", exc)

    def md5(self) -> str:
        """Return a hex digest identifying the current values."""
        encoded = json.dumps(self.cfg.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.md5(encoded.encode("utf-8")).hexdigest()

    def load(self, ytfs_path: str | os.PathLike) -> None:
        """Apply values stored in the state file; failures are logged."""
        path = Path(ytfs_path) / STATE_FILE
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            self.cfg = self.cfg.merged(data)
        except (OSError, ValueError) as exc:
            log.info("[gconfig]%s", exc)
            return
        log.info("[gconfig]loaded %s", self.cfg)

    def save(self, ytfs_path: str | os.PathLike) -> None:
        """Write the current values to the state file; failures are logged."""
        path = Path(ytfs_path) / STATE_FILE
        try:
            path.write_text(json.dumps(self.cfg.to_dict()) + "\n", encoding="utf-8")
        except OSError as exc:
            log.warning("[gconfig]%s", exc)


def new_gconfig(ytfs_path: str | os.PathLike) -> GConfig:
    """Create a configuration with the built-in defaults, then apply saved values."""
    gc = GConfig(replace(DEFAULTS))
    gc.load(ytfs_path)
    return gc