from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Tuple

FieldKind = Literal["ascii", "int32be"]

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_PACKET_FIELDS = ("symbol", "side", "quantity", "price", "sequence")
_SIDES = ("B", "S")


class PacketError(ValueError):
    pass


class FrameSizeError(PacketError):
    pass


class PacketValidationError(PacketError):
    pass


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind
    size: int


@dataclass(frozen=True)
class PacketSpec:
    """
    Fixed binary layout of one packet, fields in wire order.

    The struct format is derived once from the field list, so offsets never
    drift from the declared sizes.
    """

    fields: Tuple[FieldSpec, ...]
    _struct: struct.Struct = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise ValueError("field names must be unique")
        if sorted(names) != sorted(_PACKET_FIELDS):
            raise ValueError(f"fields must be exactly: {', '.join(_PACKET_FIELDS)}")
        fmt = ">"
        for f in self.fields:
            if f.size <= 0:
                raise ValueError(f"field {f.name} size must be > 0")
            if f.kind == "ascii":
                fmt += f"{f.size}s"
            elif f.kind == "int32be":
                if f.size != 4:
                    raise ValueError(f"int32be field {f.name} must be 4 bytes")
                fmt += "i"
            else:
                raise ValueError(f"unknown field kind: {f.kind}")
        object.__setattr__(self, "_struct", struct.Struct(fmt))

    @property
    def packet_size(self) -> int:
        return self._struct.size

    def offsets(self) -> Dict[str, int]:
        out = {}
        offset = 0
        for f in self.fields:
            out[f.name] = offset
            offset += f.size
        return out


TRADE_PACKET_SPEC = PacketSpec(
    fields=(
        FieldSpec("symbol", "ascii", 4),
        FieldSpec("side", "ascii", 1),
        FieldSpec("quantity", "int32be", 4),
        FieldSpec("price", "int32be", 4),
        FieldSpec("sequence", "int32be", 4),
    )
)
PACKET_SIZE = TRADE_PACKET_SPEC.packet_size


@dataclass(frozen=True)
class Packet:
    symbol: str
    side: str
    quantity: int
    price: int
    sequence: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "side": self.side,
            "quantity": self.quantity,
            "price": self.price,
            "sequence": self.sequence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Packet":
        return cls(
            symbol=str(data["symbol"]),
            side=str(data["side"]),
            quantity=int(data["quantity"]),
            price=int(data["price"]),
            sequence=int(data["sequence"]),
        )


def _decode_text(name: str, raw: bytes) -> str:
    try:
        text = raw.decode("ascii")
    except UnicodeDecodeError as exc:
        raise PacketValidationError(f"field {name} is not ASCII") from exc
    return text.rstrip("\x00").rstrip()


def decode(frame: bytes, spec: PacketSpec = TRADE_PACKET_SPEC) -> Packet:
    if len(frame) != spec.packet_size:
        raise FrameSizeError(
            f"frame length {len(frame)} does not match packet size {spec.packet_size}"
        )
    values = spec._struct.unpack(bytes(frame))
    decoded: Dict[str, Any] = {}
    for f, value in zip(spec.fields, values, strict=True):
        if f.kind == "ascii":
            decoded[f.name] = _decode_text(f.name, value)
        else:
            decoded[f.name] = int(value)
    return Packet(**decoded)


def encode(packet: Packet, spec: PacketSpec = TRADE_PACKET_SPEC) -> bytes:
    values = []
    for f in spec.fields:
        value = getattr(packet, f.name)
        if f.kind == "ascii":
            try:
                raw = str(value).encode("ascii")
            except UnicodeEncodeError as exc:
                raise PacketError(f"field {f.name} is not ASCII") from exc
            if len(raw) > f.size:
                raise PacketError(f"field {f.name} exceeds {f.size} bytes")
            values.append(raw.ljust(f.size, b" "))
        else:
            if not (_INT32_MIN <= int(value) <= _INT32_MAX):
                raise PacketError(f"field {f.name} out of int32 range")
            values.append(int(value))
    return spec._struct.pack(*values)


def violations(packet: Packet) -> List[str]:
    problems = []
    if not isinstance(packet.symbol, str) or len(packet.symbol) != 4:
        problems.append(f"symbol must be 4 characters: {packet.symbol!r}")
    if packet.side not in _SIDES:
        problems.append(f"side must be B or S: {packet.side!r}")
    for name in ("quantity", "price", "sequence"):
        value = getattr(packet, name)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            problems.append(f"{name} must be a positive integer: {value!r}")
    return problems


def validate(packet: Packet) -> bool:
    return not violations(packet)


def check(packet: Packet) -> Packet:
    problems = violations(packet)
    if problems:
        raise PacketValidationError("; ".join(problems))
    return packet
