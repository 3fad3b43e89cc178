"""
Shared fixtures — loopback socket pairs for driving both ends of a stream.
"""

import socket

import pytest

from netcp.stream import TimedStream


def make_socket_pair():
    """Return a connected (client, server) socket pair."""
    server_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server_sock.bind(("127.0.0.1", 0))
    server_sock.listen(1)
    port = server_sock.getsockname()[1]

    client = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    client.connect(("127.0.0.1", port))
    server, _ = server_sock.accept()
    server_sock.close()
    return client, server


@pytest.fixture
def socket_pair():
    client, server = make_socket_pair()
    yield client, server
    client.close()
    server.close()


@pytest.fixture
def stream_pair(socket_pair):
    """Two TimedStreams over one connection, with a short idle window."""
    client, server = socket_pair
    return TimedStream(client, idle_timeout_ms=300), TimedStream(server, idle_timeout_ms=300)
