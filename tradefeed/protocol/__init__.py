from tradefeed.protocol.framing import FrameReassembler, ShortTailWarning, reassemble
from tradefeed.protocol.packet import (
    PACKET_SIZE,
    TRADE_PACKET_SPEC,
    FieldSpec,
    FrameSizeError,
    Packet,
    PacketError,
    PacketSpec,
    PacketValidationError,
    check,
    decode,
    encode,
    validate,
    violations,
)
from tradefeed.protocol.request import (
    CallType,
    RequestError,
    build_fetch_request,
    build_stream_all_request,
    max_fetch_sequence,
)

__all__ = [
    "PACKET_SIZE",
    "TRADE_PACKET_SPEC",
    "FieldSpec",
    "PacketSpec",
    "Packet",
    "PacketError",
    "FrameSizeError",
    "PacketValidationError",
    "decode",
    "encode",
    "validate",
    "violations",
    "check",
    "FrameReassembler",
    "ShortTailWarning",
    "reassemble",
    "CallType",
    "RequestError",
    "build_stream_all_request",
    "build_fetch_request",
    "max_fetch_sequence",
]
