from __future__ import annotations

import re
import socket
from typing import Optional

BANNER_TIMEOUT_S = 2.0
BANNER_SIZE = 1024

# Longest banner kept for display, well under one read of BANNER_SIZE bytes.
BANNER_MAX_CHARS = 200

_UNPRINTABLE = re.compile(r"[^\x09\x0a\x0d\x20-\x7e]")


def clean_text(raw: str, max_len: int = BANNER_MAX_CHARS) -> str:
    """Drops control bytes and folds a multi-line greeting onto one line."""
    text = " ".join(_UNPRINTABLE.sub("", raw).split())
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def read_banner(
    sock: socket.socket,
    n: int = BANNER_SIZE,
    timeout: float = BANNER_TIMEOUT_S,
) -> Optional[str]:
    """
    Called only after connect() succeeds.
    One bounded read of whatever the service sends first; None when nothing
    printable arrives before the timeout.
    """
    sock.settimeout(timeout)
    try:
        data = sock.recv(n)
    except OSError:
        return None
    if not data:
        return None
    return clean_text(data.decode(errors="ignore")) or None
