"""Node configuration: identity, super-node list and storage layout."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

VERSION = 111
DATA_BLOCK_SIZE = 1 << 14
DEFAULT_LISTEN_ADDR = "/ip4/0.0.0.0/tcp/9001"
DEFAULT_API_LISTEN = ":9002"
BP_API_PORT = "8082"
_UINT32 = 0xFFFFFFFF

_BP_IDS = (
    "16Uiu2HAm7o24DSgWTrcu5sLCgSkf3D3DQqzpMz9W1Bi7F2Cc4SF6",
    "16Uiu2HAmNe1bZF2s7msxqy9tFT7WDfUaJa98h1KBhAmTTHvcZqpA",
    "16Uiu2HAkyZAuzcjmpFhk1pCLAZaYusV3wXmrEhnnNDfeJjkVoQc6",
    "16Uiu2HAmSFq7SbwcfYVn3NzWuuV7SizQEVjKEwty1knZuzTA7jDq",
    "16Uiu2HAmC7DSN4kNi64sB5N9aMgv9DjTTrtydf4YKS3Q56hYsDNS",
    "16Uiu2HAmSFgs5Pj6hFdAzCAvFGH78ew7egakT6VqL1xaLdvxnnSc",
    "16Uiu2HAmP2RuNAkXdtQDiFqVuBA8yERh91JV6b29rQpAGKkb3PiM",
    "16Uiu2HAmJQ7cjPzi7u4NdgYK7xWqDgEVBqAqNPrmxY2KVKGpND2W",
    "16Uiu2HAmDKteRvgXPtzz3pvhGn56HH7uo8WqoGqJWPArY4G1kuWP",
    "16Uiu2HAmDpQ6527dqtiv5fixTptQBtGa561BZeUTDuALiAZwQNGR",
    "16Uiu2HAmATZsCop9hkKDbmtyLbizLQU92jrCVpWvzRChKRQbwzy7",
    "16Uiu2HAmGheSFhwbpihhEnyZUxsVr6Rn9z5v2XDMeEyAfK2K4nwG",
    "16Uiu2HAm2JANbeeaXDa9JaDTU5Q1h2hmjJGJx91LpYd36pdoDWdx",
    "16Uiu2HAm3Cmzqg9TKR6FvEH5NSgzLZgDZb4xtPC9aYhqbc9p7WM5",
    "16Uiu2HAm2CzizQh2AU8NXK5z2bvJUaFuPiM9Z6R1uDEFKDvob4mJ",
    "16Uiu2HAmTd1jqEGLThwcrD9yYG1JsHHj7qsDJDBcdgMLMvaBnksU",
    "16Uiu2HAmHufUv4udcL1f1bNP4r6VqDBppmKH495iQKSgv6nWGoZA",
    "16Uiu2HAmKS35S4JQk8BDUvgWhjGLMJ1f9zWJhT3QeRRyFdReXeue",
    "16Uiu2HAmUyPbR4wcKtGi6n84CGkHsXsHZZ2sGrnhJPAqJmFCMfDW",
    "16Uiu2HAmLUCp92e25HXiZW8fMwpCUfhQRcNGL7PibTDtg51JTRCq",
    "16Uiu2HAmBG1d8HHBApLg9MrDqgUX4LoKcFCSCrq54QW3mkqRheo1",
)


def _goos(platform: str | None) -> str:
    if platform:
        return platform
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def _lookup(data: Mapping[str, Any], key: str, default: Any) -> Any:
    """Find ``key`` in ``data``, preferring an exact match, else case-insensitive."""
    if key in data:
        return data[key]
    lowered = key.lower()
    for k, v in data.items():
        if str(k).lower() == lowered:
            return v
    return default


def _has_key(data: Mapping[str, Any], key: str) -> bool:
    lowered = key.lower()
    return any(str(k).lower() == lowered for k in data)


@dataclass
class PeerInfo:
    """A super node identity and its addresses."""

    id: str = ""
    addrs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"ID": self.id, "Addrs": list(self.addrs)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PeerInfo":
        addrs = _lookup(data, "Addrs", None) or []
        return cls(id=str(_lookup(data, "ID", "")), addrs=[str(a) for a in addrs])


@dataclass
class StorageOptions:
    """Layout of one storage device."""

    storage_name: str = ""
    storage_type: int = 0
    read_only: bool = False
    sync_period: int = 0
    storage_volume: int = 0
    data_block_size: int = 0

    _KEYS = {
        "storage_name": "StorageName",
        "storage_type": "StorageType",
        "read_only": "ReadOnly",
        "sync_period": "SyncPeriod",
        "storage_volume": "StorageVolume",
        "data_block_size": "DataBlockSize",
    }

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, name) for name, key in self._KEYS.items()}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StorageOptions":
        defaults = cls()
        return cls(
            **{name: _lookup(data, key, getattr(defaults, name)) for name, key in cls._KEYS.items()}
        )


_OPTION_KEYS = {
    "ytfs_tag": "YTFSTag",
    "read_only": "ReadOnly",
    "sync_period": "SyncPeriod",
    "index_table_cols": "IndexTableCols",
    "index_table_rows": "IndexTableRows",
    "data_block_size": "DataBlockSize",
    "total_volume": "TotalVolumn",
    "use_kv_db": "UseKvDb",
}


@dataclass
class YTFSOptions:
    """Storage layout of the whole repository."""

    ytfs_tag: str = ""
    storages: list[StorageOptions] = field(default_factory=list)
    read_only: bool = False
    sync_period: int = 0
    index_table_cols: int = 0
    index_table_rows: int = 0
    data_block_size: int = 0
    total_volume: int = 0
    use_kv_db: bool = False

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"YTFSTag": self.ytfs_tag}
        out["Storages"] = [s.to_dict() for s in self.storages]
        for name, key in _OPTION_KEYS.items():
            if name != "ytfs_tag":
                out[key] = getattr(self, name)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "YTFSOptions":
        defaults = cls()
        values = {name: _lookup(data, key, getattr(defaults, name)) for name, key in _OPTION_KEYS.items()}
        storages = _lookup(data, "Storages", None) or []
        return cls(storages=[StorageOptions.from_dict(s) for s in storages], **values)


def default_ytfs_options(ytfs_path: str, platform: str | None = None) -> YTFSOptions:
    """Return the default layout rooted at ``ytfs_path``."""
    storage = StorageOptions(
        storage_name=f"{ytfs_path}/storage-0",
        sync_period=1,
        storage_volume=2 << 40,
        data_block_size=DATA_BLOCK_SIZE,
    )
    return YTFSOptions(
        ytfs_tag="ytfs",
        storages=[storage],
        sync_period=1,
        index_table_cols=1 << 14,
        index_table_rows=1 << 28,
        data_block_size=DATA_BLOCK_SIZE,
        total_volume=2 << 41,
        use_kv_db=_goos(platform) == "linux",
    )


def ytfs_options_by_params(ytfs_path: str, size: int, n: int, platform: str | None = None) -> YTFSOptions:
    """Return a single-storage layout of ``size`` bytes split into ``n`` rows."""
    if n <= 0:
        raise ValueError(f"row count must be positive, got {n}")
    m = size // DATA_BLOCK_SIZE // n
    return YTFSOptions(
        ytfs_tag="ytfs",
        storages=[
            StorageOptions(
                storage_name=os.path.join(ytfs_path, "storage"),
                storage_type=0,
                read_only=False,
                sync_period=1,
                storage_volume=size,
                data_block_size=DATA_BLOCK_SIZE,
            )
        ],
        read_only=False,
        sync_period=1,
        index_table_cols=m & _UINT32,
        index_table_rows=n & _UINT32,
        data_block_size=DATA_BLOCK_SIZE,
        total_volume=size,
        use_kv_db=_goos(platform) != "windows",
    )


def ytfs_options_by_params2(ytfs_path: str, total_size: int, storage_size: int, m: int) -> YTFSOptions:
    """Return a layout of ``total_size`` bytes with ``m`` index columns."""
    if m <= 0:
        raise ValueError(f"column count must be positive, got {m}")
    n = total_size // m
    return YTFSOptions(
        ytfs_tag="ytfs",
        storages=[
            StorageOptions(
                storage_name=os.path.join(ytfs_path, "storage"),
                storage_type=0,
                read_only=False,
                sync_period=1,
                storage_volume=storage_size,
                data_block_size=DATA_BLOCK_SIZE,
            )
        ],
        read_only=False,
        sync_period=1,
        index_table_cols=m,
        index_table_rows=n & _UINT32,
        data_block_size=DATA_BLOCK_SIZE,
        total_volume=total_size,
    )


def default_bp_list() -> list[PeerInfo]:
    """Return the built-in list of super nodes."""
    return [
        PeerInfo(id=peer_id, addrs=[f"/dns4/sn{i:02d}.yottachain.net/tcp/9999"])
        for i, peer_id in enumerate(_BP_IDS)
    ]


@dataclass
class Config:
    """Settings of a storage node."""

    id: str = ""
    pub_key: str = ""
    bp_list: list[PeerInfo] = field(default_factory=list)
    adminacc: str = ""
    relay: bool = False
    listen_addr: str = ""
    api_listen: str = ""
    index_id: int = 0
    pool_id: str = ""
    max_conn: int = 0
    token_interval: int = 0
    options: YTFSOptions | None = None
    update_url: str = ""

    def get_bp_index(self) -> int:
        """Return the index of the super node responsible for this node."""
        if not self.bp_list:
            return 0
        return (self.index_id & _UINT32) % len(self.bp_list)

    def get_api_addr(self) -> str:
        """Return the HTTP address of the responsible super node."""
        if not self.bp_list:
            raise ValueError("super node list is empty")
        peer = self.bp_list[self.get_bp_index()]
        if not peer.addrs:
            raise ValueError(f"super node {peer.id} has no address")
        parts = peer.addrs[0].split("/")
        if len(parts) < 3:
            raise ValueError(f"malformed address: {peer.addrs[0]!r}")
        return f"http://{parts[2]}:{BP_API_PORT}"

    def reset_ytfs_options(self, options: YTFSOptions) -> "Config":
        """Return a copy with the storage layout replaced."""
        return replace(self, options=options)

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration as stored on disk."""
        out: dict[str, Any] = {
            "ID": self.id,
            "PubKey": self.pub_key,
            "BPList": [p.to_dict() for p in self.bp_list],
            "Adminacc": self.adminacc,
            "Relay": self.relay,
            "ListenAddr": self.listen_addr,
            "APIListen": self.api_listen,
            "IndexID": self.index_id,
            "PoolID": self.pool_id,
            "MaxConn": self.max_conn,
            "TokenInterval": self.token_interval,
        }
        if self.options is not None:
            out.update(self.options.to_dict())
        out["update_url"] = self.update_url
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        """Build a configuration from its stored form."""
        if not isinstance(data, Mapping):
            raise ValueError("configuration must be a JSON object")
        options = None
        if any(_has_key(data, key) for key in (*_OPTION_KEYS.values(), "Storages")):
            options = YTFSOptions.from_dict(data)
        bp_list = _lookup(data, "BPList", None) or []
        return cls(
            id=_lookup(data, "ID", ""),
            pub_key=_lookup(data, "PubKey", ""),
            bp_list=[PeerInfo.from_dict(p) for p in bp_list],
            adminacc=_lookup(data, "Adminacc", ""),
            relay=_lookup(data, "Relay", False),
            listen_addr=_lookup(data, "ListenAddr", ""),
            api_listen=_lookup(data, "APIListen", ""),
            index_id=_lookup(data, "IndexID", 0),
            pool_id=_lookup(data, "PoolID", ""),
            max_conn=_lookup(data, "MaxConn", 0),
            token_interval=_lookup(data, "TokenInterval", 0),
            options=options,
            update_url=_lookup(data, "update_url", ""),
        )

    def save(self, config_path: str | os.PathLike) -> None:
        """Write the configuration as indented JSON, creating the directory."""
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")


def new_config(options: YTFSOptions) -> Config:
    """Return a fresh configuration for the given storage layout."""
    return Config(
        listen_addr=DEFAULT_LISTEN_ADDR,
        api_listen=DEFAULT_API_LISTEN,
        options=options,
        relay=True,
        bp_list=default_bp_list(),
    )


def read_config(config_path: str | os.PathLike) -> Config:
    """Read a configuration file; raises OSError or ValueError on failure."""
    data = json.loads(Path(config_path).read_text(encoding="utf-8"))
    return Config.from_dict(data)


def version() -> int:
    """Return the node software version number."""
    return VERSION