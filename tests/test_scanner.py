import socket
import threading

import pytest

from port_scanner.aggregator import ResultAggregator
from port_scanner.config import ScanConfig
from port_scanner.dispatch import DispatchQueue
from port_scanner.errors import ConfigurationError
from port_scanner.models import STATUS_OPEN, ScanTask
from port_scanner.scanner import backoff_delay, connect_with_retry, scan, worker_loop
from port_scanner.tasks import iter_tasks


class _FakeConn:
    def __init__(self, data=b""):
        self.data = data
        self.closed = False

    def settimeout(self, t):
        pass

    def recv(self, n):
        if not self.data:
            raise socket.timeout("timed out")
        return self.data

    def close(self):
        self.closed = True


def _refuse(addr, timeout):
    raise ConnectionRefusedError(111, "Connection refused")


def _fake_network(open_pairs, banner=b""):
    """dial() that only accepts the given (host, port) pairs."""
    lock = threading.Lock()
    calls = []

    def dial(addr, timeout):
        with lock:
            calls.append(addr)
        if addr in open_pairs:
            return _FakeConn(banner)
        raise ConnectionRefusedError(111, "Connection refused")

    return dial, calls


def test_backoff_schedule():
    assert [backoff_delay(i) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]


def test_refused_task_gets_three_attempts(no_sleep):
    sleep, sleeps = no_sleep
    calls = []

    def dial(addr, timeout):
        calls.append(addr)
        return _refuse(addr, timeout)

    cfg = ScanConfig.build(["10.0.0.1"], ports=[9001])
    outcome = connect_with_retry(ScanTask("10.0.0.1", 9001), cfg, dial=dial, sleep=sleep)

    assert not outcome.ok
    assert outcome.result is None
    assert outcome.attempts == 3
    assert len(outcome.errors) == 3
    assert calls == [("10.0.0.1", 9001)] * 3
    assert sleeps == [1.0, 2.0]


def test_success_after_retry(no_sleep):
    sleep, sleeps = no_sleep
    attempts = []
    conn = _FakeConn(b"SSH-2.0-OpenSSH_9.6\r\n")

    def flaky(addr, timeout):
        attempts.append(timeout)
        if len(attempts) == 1:
            raise socket.timeout("timed out")
        return conn

    cfg = ScanConfig.build(["h"], ports=[22], timeout=4)
    outcome = connect_with_retry(ScanTask("h", 22), cfg, dial=flaky, sleep=sleep)

    assert outcome.ok
    assert outcome.attempts == 2
    assert sleeps == [1.0]
    assert attempts == [4.0, 4.0]
    assert outcome.result.status == STATUS_OPEN
    assert outcome.result.banner == "SSH-2.0-OpenSSH_9.6"
    assert outcome.result.service == "ssh"
    assert conn.closed


def test_banner_timeout_is_not_a_failure(no_sleep):
    sleep, sleeps = no_sleep
    conn = _FakeConn(b"")
    cfg = ScanConfig.build(["h"], ports=[80])
    outcome = connect_with_retry(ScanTask("h", 80), cfg, dial=lambda a, t: conn, sleep=sleep)
    assert outcome.ok
    assert outcome.result.banner == ""
    assert outcome.attempts == 1
    assert sleeps == []
    assert conn.closed


def test_banner_disabled_skips_read():
    conn = _FakeConn(b"should not be read")
    cfg = ScanConfig.build(["h"], ports=[80], banner=False)
    outcome = connect_with_retry(ScanTask("h", 80), cfg, dial=lambda a, t: conn)
    assert outcome.result.banner == ""
    assert outcome.result.service is None


def test_zero_timeout_passes_none():
    seen = []

    def dial(addr, timeout):
        seen.append(timeout)
        return _FakeConn()

    cfg = ScanConfig.build(["h"], ports=[1], timeout=0, banner=False)
    connect_with_retry(ScanTask("h", 1), cfg, dial=dial)
    assert seen == [None]


def test_worker_loop_drains_and_counts(no_sleep):
    sleep, _ = no_sleep
    cfg = ScanConfig.build(["h"], port_range=(1, 10), banner=False)
    dial, _ = _fake_network({("h", 3), ("h", 7)})
    q = DispatchQueue(cfg.queue_size)
    for t in iter_tasks(cfg.targets, cfg.port_range, cfg.ports):
        q.put(t)
    q.close()

    agg = ResultAggregator(cfg.total)
    assert worker_loop(q, agg, cfg, dial=dial, sleep=sleep) == 10
    assert agg.progress().scanned == 10
    assert sorted(r.port for r in agg.results()) == [3, 7]


def test_scan_counts_every_task(no_sleep):
    sleep, sleeps = no_sleep
    dial, calls = _fake_network({("a", 3)})
    progress = []
    cfg = ScanConfig.build(["a", "b"], port_range=(1, 5), workers=4, queue_size=2, banner=False)

    summary = scan(cfg, dial=dial, sleep=sleep, on_progress=lambda p: progress.append(p.scanned))

    assert summary.total == 10
    assert [(r.target, r.port) for r in summary.results] == [("a", 3)]
    assert progress == list(range(1, 11))
    # 9 closed tasks x 3 attempts + 1 open
    assert len(calls) == 28
    assert sorted(sleeps) == sorted([1.0, 2.0] * 9)
    assert summary.elapsed >= 0


def test_scan_results_are_unique_and_enumerated(no_sleep):
    sleep, _ = no_sleep
    targets = ["a", "b", "c"]
    opens = {(t, p) for t in targets for p in range(0, 40, 3)}
    dial, _ = _fake_network(opens)
    cfg = ScanConfig.build(targets, port_range=(0, 29), ports=[35, 36, 39], workers=16, banner=False)

    summary = scan(cfg, dial=dial, sleep=sleep)
    pairs = [(r.target, r.port) for r in summary.results]
    enumerated = {(t.target, t.port) for t in iter_tasks(cfg.targets, cfg.port_range, cfg.ports)}

    assert len(pairs) == len(set(pairs))
    assert set(pairs) <= enumerated
    assert set(pairs) == opens & enumerated


@pytest.mark.parametrize("workers", [1, 100])
def test_same_membership_for_any_worker_count(workers, no_sleep):
    sleep, _ = no_sleep
    opens = {("h", 5), ("h", 17), ("h", 42)}
    dial, _ = _fake_network(opens)
    cfg = ScanConfig.build(["h"], port_range=(1, 50), workers=workers, banner=False)
    summary = scan(cfg, dial=dial, sleep=sleep)
    assert {(r.target, r.port) for r in summary.results} == opens
    assert summary.total == 50


def test_on_open_error_surfaces_after_drain(no_sleep):
    sleep, _ = no_sleep
    dial, calls = _fake_network({("h", p) for p in range(1, 21)})
    cfg = ScanConfig.build(["h"], port_range=(1, 20), workers=2, queue_size=1, banner=False)

    def boom(result):
        raise KeyError(result.port)

    with pytest.raises(KeyError):
        scan(cfg, dial=dial, sleep=sleep, on_open=boom)
    assert len(calls) == 20


def test_scan_rejects_bad_config_before_dialing():
    dial, calls = _fake_network(set())
    cfg = ScanConfig(targets=("h",), ports=(70000,))
    with pytest.raises(ConfigurationError):
        scan(cfg, dial=dial)
    assert calls == []


def test_end_to_end_local_listener(banner_server, closed_port):
    cfg = ScanConfig.build(
        ["127.0.0.1"], ports=[closed_port, banner_server], timeout=1, max_attempts=1, workers=4
    )
    summary = scan(cfg)

    assert summary.total == 2
    assert len(summary.results) == 1
    r = summary.results[0]
    assert (r.target, r.port, r.status, r.banner) == ("127.0.0.1", banner_server, "open", "hello")


def test_end_to_end_with_retries(banner_server, closed_port, no_sleep):
    sleep, sleeps = no_sleep
    cfg = ScanConfig.build(
        ["127.0.0.1"], port_range=(banner_server, banner_server), ports=[closed_port], timeout=1
    )
    first = scan(cfg, sleep=sleep)
    second = scan(cfg, sleep=sleep)

    for summary in (first, second):
        assert summary.total == 2
        assert [(r.port, r.banner) for r in summary.results] == [(banner_server, "hello")]
    assert sleeps == [1.0, 2.0, 1.0, 2.0]


def test_silent_listener_has_empty_banner(silent_server):
    cfg = ScanConfig.build(["127.0.0.1"], ports=[silent_server], timeout=1, banner_timeout=0.2)
    summary = scan(cfg)
    assert [(r.port, r.banner) for r in summary.results] == [(silent_server, "")]


def test_duplicate_pairs_rejected_before_dialing():
    dial, calls = _fake_network({("h", 1), ("h", 2)})
    cfg = ScanConfig(targets=("h", "h"), port_range=(1, 2), ports=(2,))
    with pytest.raises(ConfigurationError):
        scan(cfg, dial=dial)
    assert calls == []


def test_progress_sink_error_does_not_hang_scan(no_sleep):
    sleep, _ = no_sleep
    dial, calls = _fake_network(set())
    cfg = ScanConfig.build(["h"], port_range=(1, 20), workers=1, queue_size=1, banner=False)
    outcome = {}

    def sink(progress):
        raise KeyError(progress.scanned)

    def run():
        try:
            scan(cfg, dial=dial, sleep=sleep, on_progress=sink)
        except KeyError as e:
            outcome["error"] = e

    t = threading.Thread(target=run, daemon=True)
    t.start()
    t.join(10)

    assert not t.is_alive()
    assert isinstance(outcome.get("error"), KeyError)
    # every task was still dialed: 20 refused ports x 3 attempts
    assert len(calls) == 60
