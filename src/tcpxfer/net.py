from __future__ import annotations

import logging
import socket
from typing import Tuple

from .constants import DEFAULT_PORT, DEFAULT_TIMEOUT_S
from .errors import TransferConnectionError

logger = logging.getLogger(__name__)


def parse_address(text: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``, or a bare host) into a tuple."""
    port_text: str | None
    if text.startswith("["):
        host, sep, rest = text[1:].partition("]")
        if not sep or (rest and not rest.startswith(":")):
            raise ValueError(f"bad address: {text!r}")
        port_text = rest[1:] if rest else None
    elif text.count(":") == 1:
        host, port_text = text.split(":")
    elif ":" in text:
        raise ValueError(f"IPv6 addresses must be bracketed: {text!r}")
    else:
        host, port_text = text, None

    if not host:
        raise ValueError(f"missing host: {text!r}")
    if port_text is None:
        return host, DEFAULT_PORT
    if not port_text.isdigit() or not 0 <= int(port_text) <= 65535:
        raise ValueError(f"bad port: {port_text!r}")
    return host, int(port_text)


class TcpStream:
    """One connected socket, owned by a single transfer session."""

    def __init__(self, sock: socket.socket, peer: Tuple[str, int]):
        self.sock = sock
        self.peer = peer

    @classmethod
    def connect(
        cls,
        host: str,
        port: int,
        timeout: float | None = DEFAULT_TIMEOUT_S,
    ) -> "TcpStream":
        try:
            sock = socket.create_connection((host, port), timeout=timeout)
        except OSError as exc:
            raise TransferConnectionError(f"connect to {host}:{port} failed: {exc}") from exc
        return cls(sock, (host, port))

    def _fail(self, stage: str, exc: OSError) -> TransferConnectionError:
        return TransferConnectionError(f"{stage} {self.peer[0]}:{self.peer[1]} failed: {exc}")

    def read(self, n: int) -> bytes:
        try:
            return self.sock.recv(n)
        except OSError as exc:
            raise self._fail("read from", exc) from exc

    def write_all(self, data: bytes | memoryview) -> None:
        try:
            self.sock.sendall(data)
        except OSError as exc:
            raise self._fail("write to", exc) from exc

    def shutdown_write(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_WR)
        except OSError as exc:
            raise self._fail("shutdown of", exc) from exc

    def drain(self) -> None:
        """Discard anything the peer sends until it closes its side."""
        while self.read(4096):
            pass

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "TcpStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class TcpListener:
    def __init__(self, sock: socket.socket, timeout: float | None = DEFAULT_TIMEOUT_S):
        self.sock = sock
        self.timeout = timeout

    @classmethod
    def bind(
        cls,
        host: str,
        port: int,
        backlog: int = 1,
        timeout: float | None = DEFAULT_TIMEOUT_S,
    ) -> "TcpListener":
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(backlog)
        except OSError as exc:
            sock.close()
            raise TransferConnectionError(f"listen on {host}:{port} failed: {exc}") from exc
        return cls(sock, timeout)

    @property
    def address(self) -> Tuple[str, int]:
        host, port = self.sock.getsockname()[:2]
        return host, port

    def accept(self) -> TcpStream:
        try:
            conn, addr = self.sock.accept()
        except OSError as exc:
            raise TransferConnectionError(f"accept failed: {exc}") from exc
        conn.settimeout(self.timeout)
        logger.info("connection from %s:%d", addr[0], addr[1])
        return TcpStream(conn, (addr[0], addr[1]))

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "TcpListener":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
