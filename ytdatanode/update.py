"""Self-update: read the remote version table and replace the running binary."""

from __future__ import annotations

import logging
import os
import platform
import sys
import tempfile
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .config import version

log = logging.getLogger(__name__)

DEFAULT_UPDATE_URL = "https://dnapi.yottachain.net/update-config/update.yaml"
URL_ENV = "update_url"
OLD_NAME = "ytfs-node.old"

_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
}


class UpdateError(RuntimeError):
    """Raised when an update cannot be fetched or applied."""


@dataclass
class UpdateConfig:
    """The newest version available for this platform and where to get it."""

    remote_version: int = 0
    download_url: str = ""


def _goarch() -> str:
    machine = platform.machine().lower()
    return _ARCH_NAMES.get(machine, machine)


def _goos() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def _section(data: Any, key: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        return {}
    lowered = key.lower()
    for k, v in data.items():
        if str(k).lower() == lowered:
            return v if isinstance(v, Mapping) else {}
    return {}


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_update_config(text: str, arch: str | None = None, os_name: str | None = None) -> UpdateConfig:
    """Read the ``arch.os`` entry of an update table; missing values are empty."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"读取配置失败{exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ValueError("update configuration must be a mapping")
    entry = _section(_section(data, arch or _goarch()), os_name or _goos())
    url = entry.get("download_url")
    return UpdateConfig(
        remote_version=_as_int(entry.get("remote_version")),
        download_url="" if url is None else str(url),
    )


def check_update(cfg: UpdateConfig, current_version: int | None = None) -> bool:
    """Return True when the remote version is newer than the running one."""
    current = version() if current_version is None else current_version
    return cfg.remote_version > current


def fetch_update_config(
    url: str | None = None, arch: str | None = None, os_name: str | None = None
) -> UpdateConfig:
    """Download and parse the update table; ``update_url`` in the environment sets the default."""
    if url is None:
        url = os.environ.get(URL_ENV, DEFAULT_UPDATE_URL)
    try:
        with urllib.request.urlopen(url, timeout=60) as resp:
            status = getattr(resp, "status", None)
            if status not in (None, 200):
                raise UpdateError(f"获取更新配置失败:{status}")
            text = resp.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        raise UpdateError(f"获取更新配置失败:{exc.code}") from exc
    except (OSError, ValueError) as exc:
        raise UpdateError(f"读取配置失败{exc}") from exc
    try:
        cfg = parse_update_config(text, arch, os_name)
    except ValueError as exc:
        raise UpdateError(str(exc)) from exc
    log.info("%s %s", cfg.remote_version, cfg.download_url)
    return cfg


def apply_update(download_url: str, target_path: str | os.PathLike) -> None:
    """Replace ``target_path`` with the download, keeping the old file beside it."""
    target = Path(target_path)
    log.info("正在更新")
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as out:
            try:
                with urllib.request.urlopen(download_url, timeout=300) as resp:
                    while chunk := resp.read(1 << 16):
                        out.write(chunk)
            except (OSError, ValueError) as exc:
                raise UpdateError(f"download failed: {exc}") from exc
        mode = target.stat().st_mode & 0o7777 if target.exists() else 0o755
        tmp.chmod(mode)
        old = target.parent / OLD_NAME
        moved = False
        if target.exists():
            os.replace(target, old)
            moved = True
        try:
            os.replace(tmp, target)
        except OSError as exc:
            if moved:
                os.replace(old, target)
            raise UpdateError(f"replace failed: {exc}") from exc
    finally:
        if tmp.exists():
            tmp.unlink()
    log.info("更新完成")


def update(
    url: str | None = None, target_path: str | os.PathLike | None = None, force: bool = False
) -> UpdateConfig:
    """Install the remote version if newer (or if forced) and return its entry."""
    cfg = fetch_update_config(url)
    if not (check_update(cfg) or force):
        raise UpdateError("当前版本已是最新版本")
    log.info("即将更新版本：%s", cfg.remote_version)
    apply_update(cfg.download_url, target_path if target_path is not None else sys.argv[0])
    return cfg