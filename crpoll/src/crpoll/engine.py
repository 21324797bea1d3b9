from __future__ import annotations

"""
Voting Engine (commit -> reveal -> closed)

Composes PollRegistry, CommitmentStore and a CommitmentScheme. The phase of
a poll is re-derived from the clock on every call; there is no explicit
"advance" step. Each call reads the clock exactly once.

Mutations of one poll are serialized by a per-poll lock; different polls do
not contend. A rejected call leaves registry, store and event log untouched.
Events are recorded before the store or registry changes; an event sink
that fails rejects the call the same way.
"""

import logging
import threading
from typing import Dict, NamedTuple, Optional

from crpoll.clock import ClockSource, SystemClock
from crpoll.commitment import DIGEST_SIZE, IDENTITY_SCHEME, Auxiliary, CommitmentScheme, as_auxiliary
from crpoll.config import EngineConfig
from crpoll.errors import (
    AlreadyCommitted,
    CommitmentMismatch,
    InvalidDigest,
    NoCommitment,
    RevealerMismatch,
    RevealNotFinished,
    WrongPhase,
)
from crpoll.events import COMMIT_RECORDED, POLL_CLOSED, VOTE_REVEALED, EventLog
from crpoll.registry import Authority, Phase, Poll, PollRegistry, WindowConfiguration, phase_for
from crpoll.store import CommitmentStore

logger = logging.getLogger(__name__)


class PollResult(NamedTuple):
    name: str
    description: str
    votes_for: int
    votes_against: int


class VotingEngine:
    def __init__(
        self,
        registry: PollRegistry,
        store: Optional[CommitmentStore] = None,
        *,
        clock: Optional[ClockSource] = None,
        scheme: CommitmentScheme = IDENTITY_SCHEME,
        events: Optional[EventLog] = None,
        allow_third_party_reveal: bool = True,
    ) -> None:
        self.registry = registry
        self.store = store if store is not None else CommitmentStore()
        self.clock = clock if clock is not None else SystemClock()
        self.scheme = scheme
        self.events = events if events is not None else EventLog()
        self.allow_third_party_reveal = bool(allow_third_party_reveal)
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        authority: Authority,
        *,
        clock: Optional[ClockSource] = None,
    ) -> "VotingEngine":
        return cls(
            PollRegistry(authority, config.windows),
            clock=clock,
            scheme=config.scheme,
            events=EventLog(out=config.events_out),
            allow_third_party_reveal=config.allow_third_party_reveal,
        )

    def _poll_lock(self, poll_id: int) -> threading.Lock:
        self.registry.get_poll(poll_id)
        with self._locks_guard:
            lock = self._locks.get(poll_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[poll_id] = lock
            return lock

    def _require_phase(self, poll_id: int, now: int, expected: Phase) -> Poll:
        poll = self.registry.get_poll(poll_id)
        phase = phase_for(poll, now)
        if phase is not expected:
            raise WrongPhase(f"poll {poll_id} is in {phase.value} phase (t={now}); operation needs {expected.value}")
        return poll

    # -- administration --

    def configure_windows(self, authority: Authority, commit_window: int, reveal_window: int) -> WindowConfiguration:
        return self.registry.configure_windows(authority, commit_window, reveal_window)

    def create_poll(self, authority: Authority, name: str, description: str) -> int:
        return self.registry.create_poll(authority, name, description, self.clock.now())

    # -- queries --

    def get_poll(self, poll_id: int) -> Poll:
        return self.registry.get_poll(poll_id)

    def phase_of(self, poll_id: int, now: Optional[int] = None) -> Phase:
        return self.registry.phase_of(poll_id, self.clock.now() if now is None else now)

    # -- protocol --

    def commit(self, poll_id: int, voter: str, digest: bytes) -> None:
        if not isinstance(digest, (bytes, bytearray)) or len(digest) != DIGEST_SIZE:
            raise InvalidDigest(f"commitment digest must be {DIGEST_SIZE} bytes")
        with self._poll_lock(poll_id):
            now = self.clock.now()
            self._require_phase(poll_id, now, Phase.COMMIT)
            if self.store.get(voter, poll_id) is not None:
                raise AlreadyCommitted(f"{voter} already holds a commitment for poll {poll_id}")
            # record first: a failing sink must leave the store untouched
            self.events.record(COMMIT_RECORDED, poll_id, {"voter": voter})
            self.store.put(voter, poll_id, bytes(digest))
            logger.debug("poll %s: commitment recorded for %s at t=%s", poll_id, voter, now)
        self.events.notify()

    def reveal(self, poll_id: int, voter: str, vote: bool, auxiliary: Auxiliary) -> Poll:
        """
        Checks (vote, auxiliary) against the commitment stored under `voter`
        and counts the vote on success.

        With the identity scheme the auxiliary input names a voter identity
        that may differ from `voter`. That is accepted only when
        allow_third_party_reveal is set; otherwise RevealerMismatch.

        Subscribers are notified after the poll lock is released, so they
        may call back into the engine.
        """
        with self._poll_lock(poll_id):
            now = self.clock.now()
            self._require_phase(poll_id, now, Phase.REVEAL)
            if self.store.get(voter, poll_id) is None:
                logger.warning("poll %s: reveal by %s without a live commitment", poll_id, voter)
                raise NoCommitment(f"no commitment from {voter} for poll {poll_id}")

            aux = as_auxiliary(auxiliary)
            if self.scheme.auxiliary_is_identity and not self.allow_third_party_reveal:
                if aux != as_auxiliary(voter):
                    raise RevealerMismatch(f"{voter} may only reveal with their own identity")

            expected = self.scheme.commit(vote, aux)
            try:
                self.store.check_matching(voter, poll_id, expected)
            except CommitmentMismatch:
                logger.warning("poll %s: reveal by %s rejected (commitment mismatch)", poll_id, voter)
                raise
            self.events.record(VOTE_REVEALED, poll_id, {"voter": voter, "vote": vote})
            self.store.take_matching(voter, poll_id, expected)
            poll = self.registry.record_vote(poll_id, vote, now)
            logger.debug("poll %s: %s revealed %s at t=%s", poll_id, voter, vote, now)
        self.events.notify()
        return poll

    def finalize(self, poll_id: int) -> PollResult:
        with self._poll_lock(poll_id):
            now = self.clock.now()
            poll = self.registry.get_poll(poll_id)
            phase = phase_for(poll, now)
            if phase is not Phase.CLOSED:
                raise RevealNotFinished(f"poll {poll_id} is still in {phase.value} phase (closes after t={poll.reveal_deadline})")
            result = PollResult(poll.name, poll.description, poll.votes_for, poll.votes_against)
            self.events.record(POLL_CLOSED, poll_id, result._asdict())
            logger.info("poll %s closed: for=%s against=%s", poll_id, poll.votes_for, poll.votes_against)
        self.events.notify()
        return result
