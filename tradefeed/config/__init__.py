from tradefeed.config.clientspec import (
    ClientSpec,
    LoggingSpec,
    OutputSpec,
    RecoverySpec,
    ServerSpec,
    StreamSpec,
    load_clientspec,
    save_clientspec,
)

__all__ = [
    "ClientSpec",
    "ServerSpec",
    "StreamSpec",
    "RecoverySpec",
    "LoggingSpec",
    "OutputSpec",
    "load_clientspec",
    "save_clientspec",
]
