from __future__ import annotations

import threading

import pytest

from tcpxfer.net import TcpListener
from tcpxfer.receiver import Receiver


def _serve_once(dest, chunk_size=4096):
    """Accept one connection on a loopback port and run a Receiver on it in a thread.

    Returns ``((host, port), thread, result)``; ``result["report"]`` is set
    once the session ends.
    """
    listener = TcpListener.bind("127.0.0.1", 0, timeout=10.0)
    result = {}

    def runner():
        try:
            with listener.accept() as stream:
                result["report"] = Receiver(stream, dest, chunk_size=chunk_size).run()
        finally:
            listener.close()

    t = threading.Thread(target=runner, daemon=True)
    t.start()
    return listener.address, t, result


@pytest.fixture
def serve_once():
    return _serve_once
