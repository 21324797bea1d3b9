from __future__ import annotations

"""
Error kinds raised by the poll core.

Every rejection is a distinct subclass of PollError so callers can tell
them apart; none of them leaves partial state behind.
"""


class PollError(ValueError):
    pass


class InvalidWindow(PollError):
    pass


class NotAuthorized(PollError, PermissionError):
    pass


class PollNotFound(PollError, LookupError):
    pass


class WrongPhase(PollError):
    pass


class AlreadyCommitted(PollError):
    pass


class NoCommitment(PollError):
    pass


class CommitmentMismatch(PollError):
    pass


class RevealNotFinished(PollError):
    pass


class InvalidDigest(PollError):
    pass


class RevealerMismatch(PollError):
    pass


class UnknownScheme(PollError):
    pass


class ClockWentBackwards(PollError):
    pass


class ResultSchemaError(PollError):
    pass


class ScriptError(PollError):
    pass
