from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable


class TransportError(RuntimeError):
    pass


class TransportTimeout(TransportError):
    pass


class IStreamTransport(ABC):
    """
    One byte-stream connection.

    `recv` returns the next chunk of any size, `b""` once the peer has closed
    the connection, or None if nothing arrived within `timeout_ms`
    (`timeout_ms=None` blocks until data or close). `connect` may be given a
    budget that caps the transport's own connect timeout; running out of it
    raises TransportTimeout.
    """

    @abstractmethod
    def connect(self, timeout_ms: int | None = None) -> None:
        raise NotImplementedError

    @abstractmethod
    def send(self, data: bytes) -> None:
        raise NotImplementedError

    @abstractmethod
    def recv(self, timeout_ms: int | None) -> bytes | None:
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError


TransportFactory = Callable[[], IStreamTransport]
