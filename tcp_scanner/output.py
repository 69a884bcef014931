from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List

from .errors import OutputError
from .models import ScanResult


def format_duration(seconds: float) -> str:
    """Human-readable duration: 850µs, 12.345ms, 2.001s, 1m3.200s, 1h0m5.000s."""
    # Round to the printed precision first so 999.6µs reads 1.000ms, not 1000µs.
    micros = max(0, round(seconds * 1e6))
    if micros < 1000:
        return f"{micros}µs"
    if micros < 1000000:
        return f"{micros / 1e3:.3f}ms"

    millis = round(seconds * 1e3)
    if millis < 60000:
        return f"{millis / 1e3:.3f}s"

    minutes, millis = divmod(millis, 60000)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h{minutes}m{millis / 1e3:.3f}s"
    return f"{minutes}m{millis / 1e3:.3f}s"


def to_record(r: ScanResult) -> Dict[str, Any]:
    return {
        "target": r.target,
        "open_ports": list(r.open_ports),
        "port_count": r.port_count,
        "time_taken": format_duration(r.elapsed_s),
        "total_ports": r.total_ports,
        "progress": r.progress,
    }


def to_records(results: Iterable[ScanResult]) -> List[Dict[str, Any]]:
    return [to_record(r) for r in results]


def render_json(results: Iterable[ScanResult], indent: int = 2) -> str:
    payload = to_records(results)
    try:
        return json.dumps(payload, indent=indent, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise OutputError(f"Could not serialize scan results: {e}") from e


def format_block(r: ScanResult) -> str:
    lines = [f"Target: {r.target}"]
    if r.open_ports:
        lines.append("Open ports:")
        lines.extend(f"  {addr}" for addr in r.open_ports)
    else:
        lines.append("Open ports: none")
    lines.append(f"Found {r.port_count} open ports")
    lines.append(f"Time taken: {format_duration(r.elapsed_s)}")
    lines.append(f"Total ports scanned: {r.total_ports}")
    return "\n".join(lines)


def print_results(results: Iterable[ScanResult]) -> None:
    for r in results:
        print(format_block(r))
        print()
    print("All scans complete.")
