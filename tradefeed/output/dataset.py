from __future__ import annotations

import json
from pathlib import Path
from typing import List, Sequence

from tradefeed.protocol.packet import Packet


def save_packets(path: str | Path, packets: Sequence[Packet], indent: int = 2) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    records = [packet.as_dict() for packet in packets]
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(records, indent=indent, ensure_ascii=True) + "\n", encoding="utf-8")
    tmp.replace(path)
    return path


def load_packets(path: str | Path) -> List[Packet]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError("dataset must be a JSON array of packets")
    return [Packet.from_dict(item) for item in data]
