from __future__ import annotations

import argparse
import logging
import sys
import threading
import time

from .config import DEFAULT_BANNER_TIMEOUT, DEFAULT_TIMEOUT, DEFAULT_WORKERS, ScanConfig
from .errors import ConfigurationError
from .models import ScanProgress, ScanResult
from .output import print_results, save_results
from .ports import parse_port_list, parse_port_range
from .scanner import scan
from .targets import parse_targets

DEFAULT_START_PORT = 1
DEFAULT_END_PORT = 1024


def setup_logging(verbosity: int = 0) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Concurrent TCP port scanner")
    p.add_argument("--target", help="IP address, CIDR or hostname to scan")
    p.add_argument("--targets", help="Comma-separated list of targets")
    p.add_argument("--start-port", help="First port of the range (0-65535, default 1)")
    p.add_argument("--end-port", help="Last port of the range (0-65535, default 1024)")
    p.add_argument("--ports", help="Comma-separated list of extra ports: 22,80,443")
    p.add_argument("--timeout", default=str(int(DEFAULT_TIMEOUT)),
                   help="Connect timeout per attempt in seconds (default: 5, 0 = OS default)")
    p.add_argument("--workers", default=str(DEFAULT_WORKERS), help="Worker count (default: 100)")
    p.add_argument("--json", action="store_true", help="Print the report as JSON")
    p.add_argument("--no-banner", action="store_true", help="Do not read a banner from open ports")
    p.add_argument("--banner-timeout", type=float, default=DEFAULT_BANNER_TIMEOUT,
                   help="Banner read deadline in seconds (default: 2)")
    p.add_argument("--progress-every", type=int, default=100,
                   help="Progress update interval on stderr (default: 100, 0 = off)")
    p.add_argument("--format", choices=["txt", "csv", "json", "html"], help="Also save results to file")
    p.add_argument("--out-dir", default="SCANS", help="Output directory for saved files")
    p.add_argument("-v", "--verbose", action="count", default=0, help="-v for open ports, -vv for every attempt")
    return p


def _parse_int(value: str, what: str) -> int:
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigurationError(f"{what} must be a valid number, got {value!r}") from None


def config_from_args(args: argparse.Namespace) -> ScanConfig:
    targets = parse_targets(args.target, args.targets)

    start, end = args.start_port, args.end_port
    if not args.ports:
        # No explicit list: scan 1-1024 unless told otherwise.
        start = DEFAULT_START_PORT if start is None else start
        end = DEFAULT_END_PORT if end is None else end
    elif (start is None) != (end is None):
        raise ConfigurationError("--start-port and --end-port must be given together")

    port_range = parse_port_range(start, end) if start is not None else None
    ports = parse_port_list(args.ports) if args.ports else []

    timeout = _parse_int(args.timeout, "Timeout")
    if timeout < 0:
        raise ConfigurationError("Timeout must be a valid number >= 0")
    workers = _parse_int(args.workers, "Workers")

    return ScanConfig.build(
        targets,
        port_range=port_range,
        ports=ports,
        workers=workers,
        timeout=float(timeout),
        banner=not args.no_banner,
        banner_timeout=args.banner_timeout,
    )


class ProgressPrinter:
    """Single-line "[*] Scanned n/total" progress on stderr."""

    def __init__(self, every: int):
        self.every = every
        self.open_count = 0
        self._lock = threading.Lock()
        self._start = time.perf_counter()

    def on_open(self, result: ScanResult) -> None:
        with self._lock:
            self.open_count += 1

    def __call__(self, p: ScanProgress) -> None:
        if self.every <= 0:
            return
        if p.scanned % self.every == 0 or p.done:
            elapsed = time.perf_counter() - self._start
            rate = p.scanned / elapsed if elapsed > 0 else 0.0
            print(
                f"\r[*] Scanned {p.scanned}/{p.total} | open={self.open_count} | {rate:.0f} scans/s",
                end="\n" if p.done else "",
                file=sys.stderr,
                flush=True,
            )


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = config_from_args(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not args.json:
        print(f"[*] Targets: {len(config.targets)} | Total scans: {config.total} | Workers: {config.workers}")

    progress = ProgressPrinter(args.progress_every)
    summary = scan(config, on_progress=progress, on_open=progress.on_open)

    print_results(summary, as_json=args.json)

    if args.format:
        path = save_results(summary, fmt=args.format, out_dir=args.out_dir)
        print(f"Saved results to {path}", file=sys.stderr if args.json else sys.stdout)

    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
