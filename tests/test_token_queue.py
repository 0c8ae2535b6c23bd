import threading

from ytdatanode.token import Token
from ytdatanode.token_queue import TokenQueue, TokenRequest


def test_add_is_bounded():
    tq = TokenQueue(3)
    for _ in range(10):
        tq.add()
    assert len(tq) == 3


def test_dispatch_delivers_to_request():
    tq = TokenQueue(5)
    req = tq.get(0)
    tq.add()
    assert tq.dispatch(0) is True
    tk = req.wait(0.5)
    assert isinstance(tk, Token)
    assert len(tq) == 0


def test_dispatch_without_tokens():
    tq = TokenQueue(5)
    assert tq.dispatch(0) is False


def test_dispatch_without_requests_drops_token():
    tq = TokenQueue(5)
    tq.add()
    tq.add()
    assert tq.dispatch(0) is True
    assert len(tq) == 1


def test_higher_level_served_first():
    tq = TokenQueue(5)
    low = tq.get(0)
    high = tq.get(5)
    tq.add()
    tq.dispatch(0)
    assert high.wait(0.5) is not None and low.wait(0.01) is None


def test_equal_level_is_fifo():
    tq = TokenQueue(5)
    first = tq.get(1)
    second = tq.get(1)
    tq.add()
    tq.dispatch(0)
    assert first.wait(0.5) is not None
    assert second.wait(0.01) is None


def test_cancelled_request_refuses_token():
    req = TokenRequest(0)
    req.cancel()
    assert req.deliver(Token.new()) is False
    assert req.wait(0.01) is None


def test_timed_out_request_refuses_later_delivery():
    req = TokenRequest(0)
    assert req.wait(0.01) is None
    assert req.deliver(Token.new()) is False


def test_reset_clears_tokens_and_requests():
    tq = TokenQueue(5)
    req = tq.get(0)
    tq.add()
    tq.reset()
    assert len(tq) == 0
    tq.add()
    tq.dispatch(0)
    assert req.wait(0.01) is None


def test_run_serves_requests_until_stopped():
    tq = TokenQueue(5)
    stop = threading.Event()
    worker = threading.Thread(target=tq.run, args=(stop,), daemon=True)
    worker.start()
    try:
        req = tq.get(2)
        tq.add()
        tk = req.wait(2.0)
        assert isinstance(tk, Token)
    finally:
        stop.set()
        worker.join(2.0)
    assert not worker.is_alive()