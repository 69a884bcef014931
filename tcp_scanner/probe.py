from __future__ import annotations

import errno
import logging
import socket
import time
from typing import Optional

from .banner import BANNER_SIZE, BANNER_TIMEOUT_S, read_banner
from .errors import ResourceExhaustedError
from .models import ProbeOutcome, ScanTask

logger = logging.getLogger(__name__)

_EXHAUSTED = frozenset(
    code
    for code in (
        getattr(errno, "EMFILE", None),
        getattr(errno, "ENFILE", None),
        getattr(errno, "ENOBUFS", None),
        getattr(errno, "ENOMEM", None),
    )
    if code is not None
)


def probe(
    task: ScanTask,
    timeout_s: float,
    grab_banner: bool = True,
    banner_timeout_s: float = BANNER_TIMEOUT_S,
    banner_size: int = BANNER_SIZE,
) -> ProbeOutcome:
    """
    One TCP connect attempt bounded by timeout_s, no retry.

    Refused, timed out, unreachable and unresolvable all come back as a closed
    outcome with the error text attached. Running out of sockets raises
    ResourceExhaustedError because the port was never actually tried.
    """
    start = time.perf_counter()
    sock: Optional[socket.socket] = None
    try:
        sock = socket.create_connection((task.host, task.port), timeout=timeout_s)
    except (OSError, ValueError, OverflowError) as e:
        # ValueError covers hostnames the idna codec rejects, OverflowError bad port numbers
        if isinstance(e, OSError) and e.errno in _EXHAUSTED:
            raise ResourceExhaustedError(task.address, e.errno, str(e)) from e
        elapsed = time.perf_counter() - start
        return ProbeOutcome(
            task=task,
            is_open=False,
            elapsed_s=round(elapsed, 4),
            error=str(e) or type(e).__name__,
        )

    try:
        elapsed = time.perf_counter() - start
        banner = None
        if grab_banner:
            banner = read_banner(sock, n=banner_size, timeout=banner_timeout_s)
            if banner is None:
                logger.debug("%s: no banner", task.address)
        return ProbeOutcome(
            task=task,
            is_open=True,
            elapsed_s=round(elapsed, 4),
            banner=banner,
        )
    finally:
        sock.close()
