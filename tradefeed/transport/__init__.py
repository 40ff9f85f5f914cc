from tradefeed.transport.base import (
    IStreamTransport,
    TransportError,
    TransportFactory,
    TransportTimeout,
)
from tradefeed.transport.tcp import TcpTransport

__all__ = [
    "IStreamTransport",
    "TransportError",
    "TransportTimeout",
    "TransportFactory",
    "TcpTransport",
]
