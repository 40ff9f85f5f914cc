from tradefeed.runtime.assembler import AssemblyResult, IncompleteDatasetError, assemble
from tradefeed.runtime.client import FeedClient
from tradefeed.runtime.gap_resolver import GapResolver, find_missing
from tradefeed.runtime.recovery_session import RecoverySession
from tradefeed.runtime.scheduler import FakeClock, RealClock, RetryPolicy
from tradefeed.runtime.stream_session import StreamResult, StreamSession

__all__ = [
    "AssemblyResult",
    "IncompleteDatasetError",
    "assemble",
    "FeedClient",
    "GapResolver",
    "find_missing",
    "RecoverySession",
    "StreamSession",
    "StreamResult",
    "RetryPolicy",
    "RealClock",
    "FakeClock",
]
