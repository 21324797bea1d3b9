from crpoll.clock import ClockSource, ManualClock, SystemClock
from crpoll.commitment import (
    DIGEST_SIZE,
    IDENTITY_SCHEME,
    SALTED_SCHEME,
    CommitmentScheme,
    generate_secret,
    get_scheme,
    precompute_digests,
    recover_vote,
)
from crpoll.config import EngineConfig, load_config
from crpoll.engine import PollResult, VotingEngine
from crpoll.errors import (
    AlreadyCommitted,
    ClockWentBackwards,
    CommitmentMismatch,
    InvalidDigest,
    InvalidWindow,
    NoCommitment,
    NotAuthorized,
    PollError,
    PollNotFound,
    ResultSchemaError,
    RevealerMismatch,
    RevealNotFinished,
    ScriptError,
    UnknownScheme,
    WrongPhase,
)
from crpoll.events import Event, EventLog
from crpoll.registry import MAX_WINDOW, MIN_WINDOW, Authority, Phase, Poll, PollRegistry, WindowConfiguration
from crpoll.store import CommitmentStore

__version__ = "0.1.0"

__all__ = [
    "AlreadyCommitted",
    "Authority",
    "ClockSource",
    "ClockWentBackwards",
    "CommitmentMismatch",
    "CommitmentScheme",
    "CommitmentStore",
    "DIGEST_SIZE",
    "EngineConfig",
    "Event",
    "EventLog",
    "IDENTITY_SCHEME",
    "InvalidDigest",
    "InvalidWindow",
    "MAX_WINDOW",
    "MIN_WINDOW",
    "ManualClock",
    "NoCommitment",
    "NotAuthorized",
    "Phase",
    "Poll",
    "PollError",
    "PollNotFound",
    "PollRegistry",
    "PollResult",
    "ResultSchemaError",
    "RevealNotFinished",
    "RevealerMismatch",
    "SALTED_SCHEME",
    "ScriptError",
    "SystemClock",
    "UnknownScheme",
    "VotingEngine",
    "WindowConfiguration",
    "WrongPhase",
    "generate_secret",
    "get_scheme",
    "load_config",
    "precompute_digests",
    "recover_vote",
    "__version__",
]
