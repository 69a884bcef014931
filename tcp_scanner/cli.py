from __future__ import annotations

import argparse
import logging

from .errors import ScanError
from .output import print_results, render_json
from .ports import parse_ports, port_range
from .scanner import scan_targets
from .targets import parse_targets

logger = logging.getLogger("tcp_scanner")


def setup_logging(verbosity: int = 0) -> None:
    if verbosity > 0:
        level = logging.DEBUG
    elif verbosity < 0:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {n}")
    return n


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Concurrent TCP port scanner")
    p.add_argument(
        "-t", "--target", action="append",
        help="IP, CIDR, or hostname; repeat or comma-separate for several (default: localhost)",
    )
    p.add_argument("-p", "--ports", help="Port spec: 1-1024 or 22,80,443 or mixed")
    p.add_argument("--start-port", type=int, default=1, help="First port when --ports is not given (default: 1)")
    p.add_argument("--end-port", type=int, default=1024, help="Last port when --ports is not given (default: 1024)")
    p.add_argument("--workers", type=_positive_int, default=100, help="Concurrent workers per target (default: 100)")
    p.add_argument("--timeout", type=_positive_int, default=2, help="Connect timeout in seconds (default: 2)")
    p.add_argument("--no-banner", action="store_true", help="Skip reading a banner from open ports")
    p.add_argument(
        "--max-in-flight", type=_positive_int,
        help="Cap on concurrent connects across all targets (default: unbounded)",
    )
    p.add_argument("--json", action="store_true", help="Print results as JSON")
    p.add_argument(
        "--progress-every", type=int, default=0,
        help="Log progress every N completed ports per target (default: off)",
    )
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log every connection attempt")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    return p


def _progress_logger(every: int):
    if every <= 0:
        return None

    def on_progress(target: str, completed: int, total: int, percent: float) -> None:
        if completed % every == 0 or completed == total:
            logger.info("[*] %s: scanned %d/%d (%.1f%%)", target, completed, total, percent)

    return on_progress


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(1 if args.verbose else -1 if args.quiet else 0)

    try:
        targets = parse_targets(args.target or ["localhost"])
    except ValueError as e:
        parser.error(str(e))
    if not targets:
        parser.error("no targets to scan")

    if args.ports is not None:
        ports = parse_ports(args.ports)
    else:
        try:
            ports = port_range(args.start_port, args.end_port)
        except ValueError as e:
            parser.error(str(e))
    if not ports:
        parser.error("no valid ports to scan")

    logger.info(
        "[*] Targets: %d | Ports: %d | Workers: %d | Timeout: %ds | Total scans: %d",
        len(targets), len(ports), args.workers, args.timeout, len(targets) * len(ports),
    )

    try:
        results = scan_targets(
            targets,
            ports,
            workers=args.workers,
            timeout_s=args.timeout,
            grab_banner=not args.no_banner,
            on_progress=_progress_logger(args.progress_every),
            max_in_flight=args.max_in_flight,
        )
        if args.json:
            print(render_json(results))
        else:
            print_results(results)
    except ScanError as e:
        logger.error("%s", e)
        return 1

    return 0
