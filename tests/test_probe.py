import errno
import socket
import struct
import threading

import pytest

from tcp_scanner.banner import BANNER_MAX_CHARS, clean_text
from tcp_scanner.errors import ResourceExhaustedError
from tcp_scanner.models import ScanTask
from tcp_scanner.probe import probe


def test_open_port_reads_banner(listen):
    srv = listen(banner=b"SSH-2.0-OpenSSH_9.6\r\n")
    out = probe(ScanTask("127.0.0.1", srv.port), timeout_s=2)
    assert out.is_open
    assert out.banner == "SSH-2.0-OpenSSH_9.6"
    assert out.error is None


def test_silent_service_is_still_open(listen):
    srv = listen()
    out = probe(ScanTask("127.0.0.1", srv.port), timeout_s=2, banner_timeout_s=0.2)
    assert out.is_open
    assert out.banner is None


def test_banner_read_can_be_skipped(listen):
    srv = listen(banner=b"220 ftp ready\r\n")
    out = probe(ScanTask("127.0.0.1", srv.port), timeout_s=2, grab_banner=False)
    assert out.is_open
    assert out.banner is None


def test_refused_port_is_closed(free_port):
    out = probe(ScanTask("127.0.0.1", free_port()), timeout_s=1)
    assert not out.is_open
    assert out.banner is None
    assert out.error


def test_unresolvable_host_is_closed():
    out = probe(ScanTask("no-such-host.invalid", 80), timeout_s=1)
    assert not out.is_open
    assert out.error


def test_socket_exhaustion_raises(monkeypatch):
    def fake_connect(address, timeout=None):
        raise OSError(errno.EMFILE, "Too many open files")

    monkeypatch.setattr(socket, "create_connection", fake_connect)
    with pytest.raises(ResourceExhaustedError) as exc:
        probe(ScanTask("127.0.0.1", 80), timeout_s=1)
    assert exc.value.errno == errno.EMFILE
    assert exc.value.address == "127.0.0.1:80"


def test_socket_closed_after_probe(monkeypatch, listen):
    srv = listen()
    opened = []
    real = socket.create_connection

    def tracking_connect(address, timeout=None):
        sock = real(address, timeout=timeout)
        opened.append(sock)
        return sock

    monkeypatch.setattr(socket, "create_connection", tracking_connect)
    probe(ScanTask("127.0.0.1", srv.port), timeout_s=1, banner_timeout_s=0.1)
    assert len(opened) == 1
    assert opened[0].fileno() == -1


def test_clean_text_strips_and_truncates():
    assert clean_text("\x00\x01hello\xff\r\n") == "hello"
    assert clean_text("a" * 10, max_len=4) == "aaaa..."


def _accept_once(hangup):
    """Listens on loopback, accepts a single client and hands it to hangup()."""
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.bind(("127.0.0.1", 0))
    srv.listen(1)

    def serve():
        conn, _ = srv.accept()
        hangup(conn)
        srv.close()

    threading.Thread(target=serve, daemon=True).start()
    return srv.getsockname()[1]


def test_peer_closing_without_greeting_stays_open():
    port = _accept_once(lambda conn: conn.close())
    out = probe(ScanTask("127.0.0.1", port), timeout_s=2, banner_timeout_s=1)
    assert out.is_open
    assert out.banner is None


def test_peer_reset_during_banner_read_stays_open():
    def reset(conn):
        conn.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
        conn.close()

    port = _accept_once(reset)
    out = probe(ScanTask("127.0.0.1", port), timeout_s=2, banner_timeout_s=1)
    assert out.is_open
    assert out.banner is None


def test_overlong_hostname_label_is_closed():
    out = probe(ScanTask("a" * 64 + ".example", 80), timeout_s=1)
    assert not out.is_open
    assert out.error


def test_out_of_range_port_is_closed():
    out = probe(ScanTask("127.0.0.1", 70000), timeout_s=1)
    assert not out.is_open
    assert out.error


def test_clean_text_folds_lines_and_caps_length():
    assert clean_text("220-Welcome\r\n220 ready\r\n") == "220-Welcome 220 ready"
    assert clean_text("x" * 500) == "x" * BANNER_MAX_CHARS + "..."
