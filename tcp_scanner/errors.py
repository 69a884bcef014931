from __future__ import annotations

from typing import Optional


class ScanError(Exception):
    """Base class for errors raised by the scanning engine."""


class ResourceExhaustedError(ScanError):
    """
    The OS refused to hand out another socket (EMFILE, ENFILE, ...).
    Raised instead of reporting the port closed, since the port was never tried.
    """

    def __init__(self, address: str, errno: Optional[int], message: str):
        super().__init__(f"cannot open socket for {address}: {message}")
        self.address = address
        self.errno = errno


class OutputError(ScanError):
    """Structured output could not be serialized."""
