from __future__ import annotations

import logging
import socket
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

from .aggregator import ProgressCallback, ResultAggregator
from .banner import decode_banner, guess_service, read_banner
from .config import ScanConfig
from .dispatch import DispatchQueue
from .errors import ConnectionFailure
from .models import STATUS_OPEN, ScanResult, ScanSummary, ScanTask, TaskOutcome
from .tasks import iter_tasks

logger = logging.getLogger(__name__)

DialFn = Callable[[Tuple[str, int], Optional[float]], socket.socket]
SleepFn = Callable[[float], None]
OpenCallback = Callable[[ScanResult], None]


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (zero-indexed)."""
    return float(2 ** attempt)


def _dial_once(task: ScanTask, attempt: int, timeout: Optional[float], dial: DialFn) -> socket.socket:
    try:
        return dial((task.target, task.port), timeout)
    except OSError as e:
        raise ConnectionFailure(task, attempt, e) from e


def _probe_open(sock: socket.socket, task: ScanTask, config: ScanConfig) -> ScanResult:
    try:
        data = read_banner(sock, config.banner_timeout) if config.banner else b""
    finally:
        try:
            sock.close()
        except OSError:
            pass
    return ScanResult(
        target=task.target,
        port=task.port,
        status=STATUS_OPEN,
        banner=decode_banner(data),
        service=guess_service(data),
    )


def connect_with_retry(
    task: ScanTask,
    config: ScanConfig,
    dial: DialFn = socket.create_connection,
    sleep: SleepFn = time.sleep,
) -> TaskOutcome:
    """
    Up to ``config.max_attempts`` connects, sleeping 1s, 2s, 4s... between them.
    No sleep after the last attempt.
    """
    errors: List[str] = []
    for attempt in range(config.max_attempts):
        try:
            sock = _dial_once(task, attempt, config.connect_timeout, dial)
        except ConnectionFailure as e:
            logger.debug("%s", e)
            errors.append(str(e.cause))
            if attempt + 1 < config.max_attempts:
                sleep(backoff_delay(attempt))
            continue

        result = _probe_open(sock, task, config)
        return TaskOutcome(task=task, result=result, attempts=attempt + 1, errors=tuple(errors))

    logger.debug("Failed to connect to %s after %d attempts", task.address, config.max_attempts)
    return TaskOutcome(task=task, result=None, attempts=config.max_attempts, errors=tuple(errors))


def worker_loop(
    tasks: DispatchQueue,
    aggregator: ResultAggregator,
    config: ScanConfig,
    dial: DialFn = socket.create_connection,
    sleep: SleepFn = time.sleep,
    on_open: Optional[OpenCallback] = None,
    failures: Optional[List[BaseException]] = None,
) -> int:
    """
    Pulls tasks until the queue is closed and empty. Returns how many tasks it handled.

    Every task advances progress exactly once, whatever happened to it.
    When ``failures`` is given, unexpected errors are collected there and the
    worker keeps draining; otherwise they propagate.
    """
    handled = 0
    while True:
        task = tasks.get()
        if task is None:
            return handled
        try:
            outcome = connect_with_retry(task, config, dial=dial, sleep=sleep)
            if outcome.ok:
                aggregator.record_open(outcome.result)
                logger.info("[OPEN] %s %s", task.address, outcome.result.banner)
                if on_open is not None:
                    on_open(outcome.result)
        except Exception as e:
            if failures is None:
                raise
            logger.exception("Worker error on %s", task.address)
            failures.append(e)
        finally:
            try:
                aggregator.advance_progress()
            except Exception as e:
                # Keep draining; a dead worker would stall the producer.
                if failures is None:
                    raise
                logger.exception("Progress sink failed on %s", task.address)
                failures.append(e)
            handled += 1


def scan(
    config: ScanConfig,
    *,
    on_progress: Optional[ProgressCallback] = None,
    on_open: Optional[OpenCallback] = None,
    dial: DialFn = socket.create_connection,
    sleep: SleepFn = time.sleep,
) -> ScanSummary:
    """
    Runs one full scan: ``config.workers`` threads pulling from a bounded queue
    fed by iter_tasks(). Blocks until every worker has drained the queue.
    """
    config.validate()
    total = config.total

    aggregator = ResultAggregator(total, on_progress=on_progress)
    tasks = DispatchQueue(config.queue_size)

    logger.info(
        "Scanning %d targets x %d ports with %d workers",
        len(config.targets),
        total // len(config.targets),
        config.workers,
    )

    failures: List[BaseException] = []
    start_all = time.perf_counter()
    with ThreadPoolExecutor(max_workers=config.workers, thread_name_prefix="scan-worker") as pool:
        futures = [
            pool.submit(worker_loop, tasks, aggregator, config, dial, sleep, on_open, failures)
            for _ in range(config.workers)
        ]
        try:
            for task in iter_tasks(config.targets, config.port_range, config.ports):
                tasks.put(task)
        finally:
            tasks.close()

    elapsed = time.perf_counter() - start_all

    for fut in futures:
        fut.result()
    # Surface anything unexpected a worker hit (e.g. an on_open callback raising).
    if failures:
        raise failures[0]

    progress = aggregator.progress()
    if progress.scanned != total:
        raise RuntimeError(f"scan drained with {progress.scanned}/{total} tasks accounted for")

    results = aggregator.results()
    logger.info("Scan finished in %.2fs: %d/%d open", elapsed, len(results), total)
    return ScanSummary(elapsed=elapsed, total=total, results=results)
