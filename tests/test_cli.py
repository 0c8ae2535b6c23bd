import socket

import pytest
import yaml

from ytdatanode.cli import build_parser, main
from ytdatanode.config import read_config


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as info:
        main(["--version"])
    assert info.value.code == 0
    assert capsys.readouterr().out.strip() == "1.0.8n"


def test_parser_defaults():
    args = build_parser().parse_args(["init"])
    assert args.size == 4398046511104
    assert args.m == 14


def test_init_writes_config(tmp_path, capsys):
    repo = tmp_path / "repo"
    assert main(["--repo", str(repo), "init", "-s", str(1 << 34), "-m", "10"]) == 0
    cfg = read_config(repo / "config.json")
    assert cfg.options.index_table_rows == 1 << 10
    assert cfg.options.total_volume == 1 << 34
    assert "YTFS init success" in capsys.readouterr().out


def test_update_when_current_fails(tmp_path, capsys):
    table = tmp_path / "update.yaml"
    table.write_text(yaml.safe_dump({}), encoding="utf-8")
    target = tmp_path / "node"
    target.write_bytes(b"binary")
    code = main(["update", "--url", table.as_uri(), "--target", str(target)])
    assert code == 1
    assert "update -f" in capsys.readouterr().err
    assert target.read_bytes() == b"binary"


def test_log_without_service(capsys):
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    assert main(["log", "--port", str(port)]) == 0
    assert "refused" in capsys.readouterr().out.lower()


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    out = capsys.readouterr().out
    assert "init" in out
    assert "update" in out