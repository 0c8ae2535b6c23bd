import json
import os

import pytest

from ytdatanode.config import (
    Config,
    PeerInfo,
    StorageOptions,
    YTFSOptions,
    default_bp_list,
    default_ytfs_options,
    new_config,
    read_config,
    version,
    ytfs_options_by_params,
    ytfs_options_by_params2,
)


def test_version():
    assert version() == 111


def test_options_by_params_layout_covers_size():
    size = 4398046511104
    n = 1 << 14
    opts = ytfs_options_by_params("/data", size, n, platform="linux")
    assert opts.index_table_rows == n
    assert opts.index_table_cols * n * opts.data_block_size == size
    assert opts.total_volume == size
    assert opts.use_kv_db is True
    assert opts.storages[0].storage_name == os.path.join("/data", "storage")
    assert opts.storages[0].storage_volume == size
    assert opts.ytfs_tag == "ytfs"


def test_options_by_params_windows_disables_kv_db():
    opts = ytfs_options_by_params("/data", 1 << 34, 1 << 8, platform="windows")
    assert opts.use_kv_db is False


def test_options_by_params_rejects_zero_rows():
    with pytest.raises(ValueError):
        ytfs_options_by_params("/data", 1 << 34, 0)


def test_options_by_params2():
    opts = ytfs_options_by_params2("/data", 1 << 30, 1 << 20, 1 << 10)
    assert opts.index_table_cols == 1 << 10
    assert opts.index_table_rows * (1 << 10) == 1 << 30
    assert opts.storages[0].storage_volume == 1 << 20
    assert opts.use_kv_db is False


def test_default_options_by_platform():
    linux = default_ytfs_options("/data", platform="linux")
    mac = default_ytfs_options("/data", platform="darwin")
    assert linux.use_kv_db is True
    assert mac.use_kv_db is False
    assert linux.index_table_cols == 1 << 14
    assert linux.index_table_rows == 1 << 28


def test_default_bp_list():
    bps = default_bp_list()
    assert len(bps) == 21
    assert bps[0] == PeerInfo(
        "16Uiu2HAm7o24DSgWTrcu5sLCgSkf3D3DQqzpMz9W1Bi7F2Cc4SF6",
        ["/dns4/sn00.yottachain.net/tcp/9999"],
    )
    assert bps[20].addrs == ["/dns4/sn20.yottachain.net/tcp/9999"]
    assert bps[20].id == "16Uiu2HAmBG1d8HHBApLg9MrDqgUX4LoKcFCSCrq54QW3mkqRheo1"


def test_new_config_defaults():
    opts = ytfs_options_by_params("/data", 1 << 34, 1 << 8)
    cfg = new_config(opts)
    assert cfg.listen_addr == "/ip4/0.0.0.0/tcp/9001"
    assert cfg.api_listen == ":9002"
    assert cfg.relay is True
    assert cfg.options is opts
    assert cfg.bp_list == default_bp_list()


def test_bp_index_wraps():
    cfg = Config(index_id=22, bp_list=default_bp_list())
    assert cfg.get_bp_index() == 1


def test_bp_index_empty_list():
    assert Config(index_id=7).get_bp_index() == 0


def test_api_addr():
    cfg = Config(index_id=3, bp_list=default_bp_list())
    assert cfg.get_api_addr() == "http://sn03.yottachain.net:8082"


def test_api_addr_without_bp_list():
    with pytest.raises(ValueError):
        Config().get_api_addr()


def test_reset_options_returns_copy():
    old = ytfs_options_by_params("/a", 1 << 34, 1 << 8)
    new = ytfs_options_by_params("/b", 1 << 35, 1 << 9)
    cfg = Config(index_id=5, options=old)
    reset = cfg.reset_ytfs_options(new)
    assert reset.options is new
    assert cfg.options is old
    assert reset.index_id == 5


def test_to_dict_flattens_options():
    cfg = new_config(ytfs_options_by_params("/data", 1 << 34, 1 << 8))
    data = cfg.to_dict()
    assert data["IndexTableRows"] == 1 << 8
    assert data["ListenAddr"] == "/ip4/0.0.0.0/tcp/9001"
    assert "update_url" in data
    assert data["Storages"][0]["StorageVolume"] == 1 << 34


def test_save_and_read_round_trip(tmp_path):
    cfg = new_config(ytfs_options_by_params(str(tmp_path), 1 << 34, 1 << 8))
    cfg.index_id = 42
    cfg.pool_id = "pool"
    cfg.update_url = "http://localhost/update.yaml"
    target = tmp_path / "repo" / "config.json"
    cfg.save(target)
    loaded = read_config(target)
    assert loaded == cfg


def test_read_config_case_insensitive(tmp_path):
    target = tmp_path / "config.json"
    target.write_text(json.dumps({"indexid": 9, "adminacc": "admin"}))
    cfg = read_config(target)
    assert cfg.index_id == 9
    assert cfg.adminacc == "admin"
    assert cfg.options is None


def test_read_config_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_config(tmp_path / "absent.json")


def test_read_config_bad_json(tmp_path):
    target = tmp_path / "config.json"
    target.write_text("{not json")
    with pytest.raises(ValueError):
        read_config(target)


def test_storage_options_round_trip():
    s = StorageOptions("name", 1, True, 2, 3, 4)
    assert StorageOptions.from_dict(s.to_dict()) == s


def test_ytfs_options_round_trip():
    o = YTFSOptions("ytfs", [StorageOptions("x")], False, 1, 2, 3, 4, 5, True)
    assert YTFSOptions.from_dict(o.to_dict()) == o