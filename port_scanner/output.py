from __future__ import annotations

import csv
import html
import json
import os
from datetime import datetime
from typing import Any, Dict, List

from .models import ScanResult, ScanSummary


def _sorted(results) -> List[ScanResult]:
    return sorted(results, key=lambda x: (x.target, x.port))


def result_to_dict(r: ScanResult) -> Dict[str, Any]:
    row: Dict[str, Any] = {"target": r.target, "port": r.port, "status": r.status}
    if r.banner:
        row["banner"] = r.banner
    if r.service:
        row["service"] = r.service
    return row


def summary_to_dict(summary: ScanSummary) -> Dict[str, Any]:
    return {
        "elapsed_time": f"{summary.elapsed:.2f}s",
        "total_ports_scanned": summary.total,
        "open_ports": [result_to_dict(r) for r in _sorted(summary.results)],
    }


def render_json(summary: ScanSummary) -> str:
    return json.dumps(summary_to_dict(summary), indent=2)


def format_row(r: ScanResult) -> str:
    line = f"{r.target}:{r.port} {r.status}"
    if r.service:
        line += f" | Service: {r.service}"
    if r.banner:
        line += f" | Banner: {r.banner}"
    return line


def render_text(summary: ScanSummary) -> str:
    lines = [
        "Report summary.",
        f"Time elapsed: {summary.elapsed:.2f}s",
        f"Total number of ports scanned: {summary.total}",
        f"Open ports found: {summary.open_count}",
    ]
    for r in _sorted(summary.results):
        lines.append(f"  {format_row(r)}")
    return "\n".join(lines)


def print_results(summary: ScanSummary, as_json: bool = False) -> None:
    print(render_json(summary) if as_json else render_text(summary))


def save_results(summary: ScanSummary, fmt: str, out_dir: str = "SCANS") -> str:
    if fmt not in ("txt", "csv", "json", "html"):
        raise ValueError(f"Unsupported format: {fmt}")

    os.makedirs(out_dir, exist_ok=True)
    ts = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    path = os.path.join(out_dir, f"{ts}_port_scan.{fmt}")
    rows = _sorted(summary.results)

    if fmt == "txt":
        with open(path, "w", encoding="utf-8") as f:
            f.write(render_text(summary) + "\n")

    elif fmt == "csv":
        with open(path, "w", newline="", encoding="utf-8") as f:
            w = csv.writer(f)
            w.writerow(["target", "port", "status", "service", "banner"])
            for r in rows:
                w.writerow([r.target, r.port, r.status, r.service or "", r.banner])

    elif fmt == "json":
        with open(path, "w", encoding="utf-8") as f:
            json.dump(summary_to_dict(summary), f, indent=2)

    else:
        with open(path, "w", encoding="utf-8") as f:
            f.write("<html><body>\n")
            f.write("<h1>Port Scan Results</h1>\n")
            f.write(f"<p>Time elapsed: {summary.elapsed:.2f}s</p>\n")
            f.write(f"<p>Ports scanned: {summary.total} | Open ports: {summary.open_count}</p>\n")
            f.write("<ul>\n")
            for r in rows:
                f.write(f"<li>{html.escape(format_row(r))}</li>\n")
            f.write("</ul>\n</body></html>\n")

    return path
