from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable


def _require_keys(data: Dict[str, Any], keys: Iterable[str], context: str) -> None:
    missing = [key for key in keys if key not in data]
    if missing:
        joined = ", ".join(missing)
        raise ValueError(f"missing {context} keys: {joined}")


def _optional_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"", "auto", "none", "null"}:
            return default
        if text in {"1", "true", "on", "yes"}:
            return True
        if text in {"0", "false", "off", "no"}:
            return False
    raise ValueError(f"invalid bool value: {value!r}")


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid int value: {value!r}")
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"", "none", "null", "off"}:
            return None
        return int(text)
    raise ValueError(f"invalid int value: {value!r}")


@dataclass(frozen=True)
class ServerSpec:
    host: str = "localhost"
    port: int = 3000
    connect_timeout_ms: int = 5000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerSpec":
        return cls(
            host=str(data.get("host", "localhost")),
            port=int(data.get("port", 3000)),
            connect_timeout_ms=int(data.get("connect_timeout_ms", 5000)),
        )

    def peer(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class StreamSpec:
    recv_bytes: int = 4096
    idle_timeout_ms: int | None = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StreamSpec":
        return cls(
            recv_bytes=int(data.get("recv_bytes", 4096)),
            idle_timeout_ms=_optional_int(data.get("idle_timeout_ms")),
        )


@dataclass(frozen=True)
class RecoverySpec:
    timeout_ms: int = 5000
    max_attempts: int = 3
    backoff_ms: int = 0
    jitter_ms: int = 0
    validate: bool = True
    fetch_seq_bytes: int = 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecoverySpec":
        return cls(
            timeout_ms=int(data.get("timeout_ms", 5000)),
            max_attempts=int(data.get("max_attempts", 3)),
            backoff_ms=int(data.get("backoff_ms", 0)),
            jitter_ms=int(data.get("jitter_ms", 0)),
            validate=_optional_bool(data.get("validate"), True),
            fetch_seq_bytes=int(data.get("fetch_seq_bytes", 1)),
        )


@dataclass(frozen=True)
class LoggingSpec:
    out_dir: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSpec":
        _require_keys(data, ["out_dir"], "logging")
        return cls(out_dir=str(data["out_dir"]))


@dataclass(frozen=True)
class OutputSpec:
    path: str = "stock_data.json"
    indent: int = 2

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OutputSpec":
        return cls(
            path=str(data.get("path", "stock_data.json")),
            indent=int(data.get("indent", 2)),
        )


@dataclass(frozen=True)
class ClientSpec:
    run_id: str
    logging: LoggingSpec
    server: ServerSpec = field(default_factory=ServerSpec)
    stream: StreamSpec = field(default_factory=StreamSpec)
    recovery: RecoverySpec = field(default_factory=RecoverySpec)
    output: OutputSpec = field(default_factory=OutputSpec)
    strict_completeness: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClientSpec":
        _require_keys(data, ["run_id", "logging"], "clientspec")
        return cls(
            run_id=str(data["run_id"]),
            logging=LoggingSpec.from_dict(data["logging"]),
            server=ServerSpec.from_dict(data.get("server") or {}),
            stream=StreamSpec.from_dict(data.get("stream") or {}),
            recovery=RecoverySpec.from_dict(data.get("recovery") or {}),
            output=OutputSpec.from_dict(data.get("output") or {}),
            strict_completeness=_optional_bool(data.get("strict_completeness"), False),
        )

    def validate(self) -> None:
        if not self.run_id:
            raise ValueError("run_id must be non-empty")
        if not self.server.host:
            raise ValueError("server host must be non-empty")
        if not (0 < self.server.port <= 65535):
            raise ValueError("server port must be 1..65535")
        if self.server.connect_timeout_ms <= 0:
            raise ValueError("server connect_timeout_ms must be > 0")
        if self.stream.recv_bytes <= 0:
            raise ValueError("stream recv_bytes must be > 0")
        if self.stream.idle_timeout_ms is not None and self.stream.idle_timeout_ms <= 0:
            raise ValueError("stream idle_timeout_ms must be > 0 (or null)")
        if self.recovery.timeout_ms <= 0:
            raise ValueError("recovery timeout_ms must be > 0")
        if self.recovery.max_attempts <= 0:
            raise ValueError("recovery max_attempts must be > 0")
        if self.recovery.backoff_ms < 0 or self.recovery.jitter_ms < 0:
            raise ValueError("recovery backoff_ms/jitter_ms must be >= 0")
        if self.recovery.fetch_seq_bytes not in (1, 4):
            raise ValueError("recovery fetch_seq_bytes must be 1 or 4")
        if self.output.indent < 0:
            raise ValueError("output indent must be >= 0")

    def peer(self) -> str:
        return self.server.peer()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "server": {
                "host": self.server.host,
                "port": self.server.port,
                "connect_timeout_ms": self.server.connect_timeout_ms,
            },
            "stream": {
                "recv_bytes": self.stream.recv_bytes,
                "idle_timeout_ms": self.stream.idle_timeout_ms,
            },
            "recovery": {
                "timeout_ms": self.recovery.timeout_ms,
                "max_attempts": self.recovery.max_attempts,
                "backoff_ms": self.recovery.backoff_ms,
                "jitter_ms": self.recovery.jitter_ms,
                "validate": self.recovery.validate,
                "fetch_seq_bytes": self.recovery.fetch_seq_bytes,
            },
            "logging": {"out_dir": self.logging.out_dir},
            "output": {"path": self.output.path, "indent": self.output.indent},
            "strict_completeness": self.strict_completeness,
        }


def _load_json(path: Path) -> Dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        import yaml
    except ImportError as exc:
        raise RuntimeError("PyYAML is required to load YAML client specs") from exc
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def load_clientspec(path: str | Path) -> ClientSpec:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    if path.suffix.lower() in {".yaml", ".yml"}:
        data = _load_yaml(path)
    else:
        data = _load_json(path)
    spec = ClientSpec.from_dict(data)
    spec.validate()
    return spec


def save_clientspec(path: str | Path, spec: ClientSpec) -> None:
    path = Path(path)
    data = spec.as_dict()
    if path.suffix.lower() in {".yaml", ".yml"}:
        try:
            import yaml
        except ImportError as exc:
            raise RuntimeError("PyYAML is required to write YAML client specs") from exc
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    else:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
