from __future__ import annotations

import socket

from tradefeed.transport.base import IStreamTransport, TransportError, TransportTimeout


class TcpTransport(IStreamTransport):
    """
    Blocking TCP client connection.

    Name resolution, handshake and buffering are left to the socket stack;
    every OS-level failure surfaces as TransportError.
    """

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout_ms: int = 5000,
        recv_bytes: int = 4096,
    ) -> None:
        if recv_bytes <= 0:
            raise ValueError("recv_bytes must be > 0")
        self._host = host
        self._port = int(port)
        self._connect_timeout_ms = connect_timeout_ms
        self._recv_bytes = int(recv_bytes)
        self._sock: socket.socket | None = None

    @property
    def peer(self) -> str:
        return f"{self._host}:{self._port}"

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            raise TransportError(f"not connected to {self.peer}")
        return self._sock

    def connect(self, timeout_ms: int | None = None) -> None:
        if self._sock is not None:
            raise TransportError("already connected")
        budget_ms = self._connect_timeout_ms
        if timeout_ms is not None:
            budget_ms = min(budget_ms, timeout_ms)
        if budget_ms <= 0:
            raise TransportTimeout(f"no time left to connect to {self.peer}")
        try:
            self._sock = socket.create_connection(
                (self._host, self._port),
                timeout=budget_ms / 1000.0,
            )
        except socket.timeout as exc:
            raise TransportTimeout(
                f"connect to {self.peer} timed out after {budget_ms} ms"
            ) from exc
        except OSError as exc:
            raise TransportError(f"connect to {self.peer} failed: {exc}") from exc

    def send(self, data: bytes) -> None:
        sock = self._require_socket()
        try:
            sock.settimeout(None)
            sock.sendall(data)
        except OSError as exc:
            raise TransportError(f"send to {self.peer} failed: {exc}") from exc

    def recv(self, timeout_ms: int | None) -> bytes | None:
        sock = self._require_socket()
        try:
            sock.settimeout(None if timeout_ms is None else max(0.0, timeout_ms / 1000.0))
            return sock.recv(self._recv_bytes)
        except socket.timeout:
            return None
        except OSError as exc:
            raise TransportError(f"recv from {self.peer} failed: {exc}") from exc

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is None:
            return None
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()
