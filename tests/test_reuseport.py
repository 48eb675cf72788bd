import socket

import pytest

from pixgate.reuseport import listen


def test_listen_binds_requested_host():
    with listen("tcp4", "127.0.0.1:0", False) as sock:
        host, port = sock.getsockname()
        assert host == "127.0.0.1"
        assert port > 0
        assert sock.family == socket.AF_INET


def test_listen_accepts_connections():
    with listen("tcp", "127.0.0.1:0", False) as server:
        port = server.getsockname()[1]
        with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
            conn, _ = server.accept()
            with conn:
                client.sendall(b"ping")
                assert conn.recv(4) == b"ping"


def test_reuseport_allows_shared_port():
    with listen("tcp4", "127.0.0.1:0", True) as first:
        port = first.getsockname()[1]
        with listen("tcp4", f"127.0.0.1:{port}", True) as second:
            assert second.getsockname()[1] == port


def test_without_reuseport_port_is_exclusive():
    with listen("tcp4", "127.0.0.1:0", False) as first:
        port = first.getsockname()[1]
        with pytest.raises(OSError):
            listen("tcp4", f"127.0.0.1:{port}", False)


@pytest.mark.parametrize("address", ["127.0.0.1", "[::1", "::1:80", "127.0.0.1:70000"])
def test_bad_address(address):
    with pytest.raises(ValueError):
        listen("tcp", address, False)


def test_unknown_network():
    with pytest.raises(ValueError, match="unknown network"):
        listen("udp", "127.0.0.1:0", False)