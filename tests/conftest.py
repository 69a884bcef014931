from __future__ import annotations

import socket
import threading
from typing import List, Optional

import pytest


class Listener:
    """Loopback TCP server that optionally greets each client, then waits for it to hang up."""

    def __init__(self, banner: Optional[bytes] = None):
        self.banner = banner
        self.accepted = 0
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind(("127.0.0.1", 0))
        self._sock.listen(64)
        self._sock.settimeout(0.1)
        self.port = self._sock.getsockname()[1]
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            self.accepted += 1
            threading.Thread(target=self._handle, args=(conn,), daemon=True).start()

    def _handle(self, conn: socket.socket) -> None:
        with conn:
            conn.settimeout(5)
            try:
                if self.banner:
                    conn.sendall(self.banner)
                while conn.recv(1024):
                    pass
            except OSError:
                pass

    def close(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2)
        self._sock.close()


@pytest.fixture
def listen():
    listeners: List[Listener] = []

    def _make(banner: Optional[bytes] = None) -> Listener:
        lst = Listener(banner)
        listeners.append(lst)
        return lst

    yield _make
    for lst in listeners:
        lst.close()


@pytest.fixture
def free_port():
    """Returns loopback ports that were just free, so connecting to them is refused."""

    def _make() -> int:
        s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
        s.close()
        return port

    return _make
