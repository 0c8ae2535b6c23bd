"""Command line entry point of the storage node."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from .config import new_config, ytfs_options_by_params
from .logs import DEFAULT_HOST, DEFAULT_PORT, follow_log
from .update import UpdateError, update

VERSION_STRING = "1.0.8n"
DEFAULT_SIZE = 4398046511104
DEFAULT_M = 14
CONFIG_FILE = "config.json"


def _default_repo() -> str:
    return os.environ.get("YTFS_PATH") or str(Path.home() / "YTFS")


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the node commands."""
    parser = argparse.ArgumentParser(prog="ytfs-node", description="ytfs storage node")
    parser.add_argument("--version", action="version", version=VERSION_STRING)
    parser.add_argument("--repo", default=_default_repo(), help="repository directory")
    sub = parser.add_subparsers(dest="command")

    init = sub.add_parser("init", help="Init YTFS storage node")
    init.add_argument("-s", "--size", type=int, default=DEFAULT_SIZE, help="存储空间大小")
    init.add_argument("-m", type=int, default=DEFAULT_M, help="m的次方（8-20）的数")

    upd = sub.add_parser("update", help="检查更新")
    upd.add_argument("-f", "--force", action="store_true", help="是否强制更新")
    upd.add_argument("--url", default=None, help="update table location")
    upd.add_argument("--target", default=sys.argv[0], help="file to replace")

    lg = sub.add_parser("log", help="log print")
    lg.add_argument("--host", default=DEFAULT_HOST)
    lg.add_argument("--port", type=int, default=DEFAULT_PORT)
    return parser


def _init(args: argparse.Namespace) -> int:
    repo = Path(args.repo)
    options = ytfs_options_by_params(str(repo), args.size, 1 << args.m)
    new_config(options).save(repo / CONFIG_FILE)
    print("YTFS init success")
    return 0


def _update(args: argparse.Namespace) -> int:
    try:
        update(args.url, args.target, args.force)
    except UpdateError as exc:
        print(f"更新失败: {exc}", file=sys.stderr)
        print("使用 update -f 强制更新", file=sys.stderr)
        return 1
    return 0


def _log(args: argparse.Namespace) -> int:
    try:
        follow_log(args.host, args.port, sys.stdout)
    except OSError as exc:
        print(exc)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run a node command and return its exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    commands = {"init": _init, "update": _update, "log": _log}
    if args.command is None:
        parser.print_help()
        return 0
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())