# ytdatanode

Building blocks for a storage data node: the two-byte message framing used
between nodes, shard hash checks, the token pools that pace uploads and
downloads, node and global configuration, a cached list of active nodes,
a local JSON API router, log streaming over TCP and self-update.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Command line

The package installs one command, `ytdatanode`. The global option
`--repo DIR` selects the repository directory; it defaults to the
`YTFS_PATH` environment variable, or `~/YTFS`.

```
ytdatanode --help              # list the subcommands
ytdatanode --version           # print the version string
ytdatanode init -s SIZE -m M   # write config.json for a SIZE-byte store with 2**M index rows
ytdatanode update              # install a newer release if one is listed
ytdatanode update -f           # install the listed release regardless of version
ytdatanode log                 # print the log stream of a running node (127.0.0.1:9003)
```

`update` also takes `--url` (the update table to read; the `update_url`
environment variable sets the default) and `--target` (the file to
replace). `log` takes `--host` and `--port`.

## Library overview

- `ytdatanode.message` – `MsgType`, the message identifiers;
  `MsgType.header()` gives the big-endian two-byte prefix, `parse_header`
  splits a framed message into identifier and payload, and `verify_vhf`
  checks that the MD5 digest of a shard equals its hash.
- `ytdatanode.gconfig` – `Gcfg`, the token pool tuning values
  (`to_dict` / `from_dict` with their JSON keys), and `GConfig`, which
  loads and saves them in `.gconfig`, fetches them remotely with `get`
  (overridable by the `gconfig_url` environment variable), refreshes them
  periodically with `update_service`, reports changes through `on_update`
  and gives a digest with `md5`. `new_gconfig` starts from the defaults and
  applies saved values.
- `ytdatanode.config` – `Config`, `YTFSOptions`, `StorageOptions` and
  `PeerInfo`; layout builders `default_ytfs_options`,
  `ytfs_options_by_params` and `ytfs_options_by_params2`; `default_bp_list`
  with the built-in super nodes; `new_config`, `read_config`,
  `Config.save`, `Config.get_bp_index`, `Config.get_api_addr` and
  `version()`.
- `ytdatanode.activenodes` – `ActiveNodeList`, which refreshes the list of
  readable nodes at most once per `ttl` seconds and answers
  `has_node_id`; `node_list_url` builds the query URL.
- `ytdatanode.token` – `Token`, with byte form (`to_bytes`, `from_bytes`)
  and base58 string form (`str(token)`, `from_string`), plus `b58encode`
  and `b58decode`.
- `ytdatanode.delay_stat` – `DelayStat`, a running latency average in
  milliseconds.
- `ytdatanode.token_queue` – `TokenQueue`, a bounded token supply that
  serves waiting `TokenRequest`s in priority order.
- `ytdatanode.task_pool` – `TaskPool`, which fills tokens at an interval,
  hands them to peers (`get`, raising `TokenBusyError` or `TimeoutError`),
  checks their lifetime, counts used tokens, adjusts its fill interval
  within the configured limits and persists its state.
- `ytdatanode.api` – `ApiRouter`, serving handlers under
  `/api/v<version>/<pattern>` over HTTP, and `write_json`.
- `ytdatanode.update` – `parse_update_config`, `check_update`,
  `fetch_update_config`, `apply_update` and `update`, raising
  `UpdateError` on failure.
- `ytdatanode.progress` – `format_td`, a remaining-time string.
- `ytdatanode.logs` – `configure_file_log` for a rotating `output.log`,
  `LogStreamServer` that mirrors log records to a TCP client, and
  `follow_log` that prints them.

### Example

```python
from ytdatanode.message import MsgType, parse_header
from ytdatanode.token import Token

frame = MsgType.VOID_RESPONSE.header() + b"payload"
msg_id, payload = parse_header(frame)
assert msg_id is MsgType.VOID_RESPONSE and payload == b"payload"

tk = Token.new()
tk.reset()
same = Token.from_string(str(tk))
assert same.uuid == tk.uuid
```

## What this package does not do

It has no node daemon: there is no peer-to-peer networking, no handling of
upload, download or spot-check requests, and no shard storage engine.
`ytdatanode init` writes the configuration file only; it does not create
storage files or generate a node key. There are no commands for node
registration, account management or repository rebuilding.