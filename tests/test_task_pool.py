import random
import threading
import time
from dataclasses import replace

import pytest

from ytdatanode.gconfig import DEFAULTS, GConfig
from ytdatanode.token import Token
from ytdatanode.task_pool import TaskPool, TokenBusyError


@pytest.fixture
def make_pool(tmp_path):
    pools = []

    def factory(name=".dtp_params.json", **overrides):
        gc = GConfig(replace(DEFAULTS, **overrides))
        pool = TaskPool(name, 500, 10.0, 0.01, gc, tmp_path)
        pools.append(pool)
        return pool

    yield factory
    for pool in pools:
        pool.close()


def test_ttl_comes_from_gconfig(make_pool):
    pool = make_pool(ttl=7)
    assert pool.ttl == 7.0
    assert pool.fill_interval == 0.01


def test_fill_speed(make_pool):
    assert make_pool().fill_speed() == 100


def test_change_interval_clamped_to_max_token(make_pool):
    pool = make_pool()
    calls = []
    pool.on_change(calls.append)
    pool.change_fill_interval(0.002 - 0.002 / 5)
    assert pool.fill_interval == pytest.approx(1 / 500)
    assert calls == []


def test_change_interval_resets_counters_and_notifies(make_pool):
    pool = make_pool()
    pool.fill_once(0.01)
    pool.get("111", 0, timeout=1.0)
    calls = []
    pool.on_change(calls.append)
    pool.change_fill_interval(0.005)
    assert pool.fill_interval == 0.005
    assert pool.params() == (0, 0)
    assert calls == [pool]


def test_saved_interval_is_loaded(make_pool, tmp_path):
    pool = make_pool(name=".utp_params.json")
    pool.change_fill_interval(0.005)
    assert (tmp_path / ".utp_params.json").exists()
    again = make_pool(name=".utp_params.json")
    assert again.fill_interval == pytest.approx(0.005)


def test_fill_once(make_pool):
    pool = make_pool()
    assert pool.fill_once(0.05) == 5
    assert pool.free_token_len() == 5
    assert pool.fill_once(0) == 1


def test_get_issues_checked_token(make_pool):
    pool = make_pool()
    pool.fill_once(0.01)
    tk = pool.get("111", 3, timeout=1.0)
    assert tk.pid == "111"
    assert pool.check(tk) is True
    assert pool.params() == (1, 0)


def test_get_times_out_without_tokens(make_pool):
    pool = make_pool()
    with pytest.raises(TimeoutError):
        pool.get("111", 0, timeout=0.05)


def test_get_busy_when_queue_full(make_pool):
    pool = make_pool(token_wait=0)
    errors = []

    def waiter():
        try:
            pool.get("first", 0, timeout=1.0)
        except TimeoutError as exc:
            errors.append(exc)

    t = threading.Thread(target=waiter)
    t.start()
    time.sleep(0.2)
    with pytest.raises(TokenBusyError):
        pool.get("second", 0, timeout=0.1)
    t.join()
    assert len(errors) == 1


def test_check_rejects_stale_and_unissued(make_pool):
    pool = make_pool()
    stale = Token.new()
    stale.tm = time.time() - 100
    assert pool.check(stale) is False
    assert pool.check(Token.new()) is False


def test_delete_counts_only_after_issue(make_pool):
    pool = make_pool()
    tk = Token.new()
    assert pool.delete(tk) is False
    assert pool.params() == (0, 0)
    pool.fill_once(0.01)
    issued = pool.get("111", 0, timeout=1.0)
    assert pool.delete(issued) is False
    assert pool.params() == (1, 1)


def test_decrease_check_slows_rate(make_pool):
    pool = make_pool()
    pool.fill_once(1.5)
    for _ in range(101):
        pool.get("111", 0, timeout=1.0)
    assert pool.decrease_check() is True
    assert pool.fill_interval == pytest.approx(0.02)
    assert pool.params() == (0, 0)


def test_increase_check_speeds_rate(make_pool):
    pool = make_pool()
    pool.fill_once(0.1)
    for _ in range(10):
        pool.delete(pool.get("111", 0, timeout=1.0))
    assert pool.increase_check() is True
    assert pool.fill_interval == pytest.approx(0.008)


def test_increase_check_without_traffic(make_pool):
    pool = make_pool()
    assert pool.increase_check() is False
    assert pool.fill_interval == 0.01


def test_tokens_flow_while_filling(make_pool):
    pool = make_pool()
    stop = threading.Event()
    filler = threading.Thread(target=pool.fill_tokens, args=(stop,), daemon=True)
    filler.start()
    num = 0
    err_num = 0
    deadline = time.monotonic() + 1.0
    try:
        while time.monotonic() < deadline:
            try:
                pool.get("111", random.randrange(10), timeout=1.0)
                num += 1
            except (TimeoutError, TokenBusyError):
                err_num += 1
    finally:
        stop.set()
        filler.join(2.0)
    assert num > 0
    assert pool.params()[0] == num