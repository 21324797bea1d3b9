from __future__ import annotations

"""
Poll Registry

Owns poll records, their deadlines and the window configuration used for
new polls. Phases are never stored; phase_of() derives them from the
deadlines and the time passed in:

  COMMIT   now <= commit_deadline
  REVEAL   commit_deadline < now <= reveal_deadline
  CLOSED   now > reveal_deadline

Only the holder of the registry's Authority may create polls or change
the windows.
"""

import enum
import hmac
import logging
import secrets
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, List

from crpoll.errors import InvalidWindow, NotAuthorized, PollNotFound, WrongPhase

logger = logging.getLogger(__name__)

MIN_WINDOW = 120
MAX_WINDOW = 259200


class Phase(str, enum.Enum):
    COMMIT = "commit"
    REVEAL = "reveal"
    CLOSED = "closed"


@dataclass(frozen=True)
class Authority:
    """Capability handed to whoever may administer a registry."""

    token: str = field(default_factory=lambda: secrets.token_hex(16), repr=False)


@dataclass(frozen=True)
class WindowConfiguration:
    commit_window: int
    reveal_window: int


@dataclass(frozen=True)
class Poll:
    id: int
    name: str
    description: str
    commit_deadline: int
    reveal_deadline: int
    votes_for: int = 0
    votes_against: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "commit_deadline": self.commit_deadline,
            "reveal_deadline": self.reveal_deadline,
            "votes_for": self.votes_for,
            "votes_against": self.votes_against,
        }


def validate_window(name: str, seconds: int) -> int:
    if isinstance(seconds, bool) or not isinstance(seconds, int):
        raise InvalidWindow(f"{name} must be an integer number of seconds (got {seconds!r})")
    if not (MIN_WINDOW <= seconds <= MAX_WINDOW):
        raise InvalidWindow(f"{name} must be within [{MIN_WINDOW}, {MAX_WINDOW}] seconds (got {seconds})")
    return seconds


def phase_for(poll: Poll, now: int) -> Phase:
    if now <= poll.commit_deadline:
        return Phase.COMMIT
    if now <= poll.reveal_deadline:
        return Phase.REVEAL
    return Phase.CLOSED


class PollRegistry:
    def __init__(self, authority: Authority, windows: WindowConfiguration) -> None:
        validate_window("commit_window", windows.commit_window)
        validate_window("reveal_window", windows.reveal_window)
        self._authority = authority
        self._windows = windows
        self._polls: List[Poll] = []
        self._lock = threading.Lock()

    def _check_authority(self, authority: Authority) -> None:
        ok = isinstance(authority, Authority) and hmac.compare_digest(authority.token, self._authority.token)
        if not ok:
            raise NotAuthorized("caller is not the poll authority")

    @property
    def windows(self) -> WindowConfiguration:
        return self._windows

    def configure_windows(self, authority: Authority, commit_window: int, reveal_window: int) -> WindowConfiguration:
        self._check_authority(authority)
        validate_window("commit_window", commit_window)
        validate_window("reveal_window", reveal_window)
        cfg = WindowConfiguration(commit_window=commit_window, reveal_window=reveal_window)
        with self._lock:
            self._windows = cfg
        logger.info("window configuration set: commit=%ss reveal=%ss", commit_window, reveal_window)
        return cfg

    def create_poll(self, authority: Authority, name: str, description: str, now: int) -> int:
        self._check_authority(authority)
        with self._lock:
            w = self._windows
            commit_deadline = now + w.commit_window
            poll = Poll(
                id=len(self._polls),
                name=str(name),
                description=str(description),
                commit_deadline=commit_deadline,
                reveal_deadline=commit_deadline + w.reveal_window,
            )
            self._polls.append(poll)
        logger.info(
            "poll %s created: %r commit_deadline=%s reveal_deadline=%s",
            poll.id, poll.name, poll.commit_deadline, poll.reveal_deadline,
        )
        return poll.id

    def get_poll(self, poll_id: int) -> Poll:
        with self._lock:
            if isinstance(poll_id, bool) or not isinstance(poll_id, int) or not (0 <= poll_id < len(self._polls)):
                raise PollNotFound(f"poll {poll_id!r} does not exist")
            return self._polls[poll_id]

    def phase_of(self, poll_id: int, now: int) -> Phase:
        return phase_for(self.get_poll(poll_id), now)

    def poll_count(self) -> int:
        with self._lock:
            return len(self._polls)

    def record_vote(self, poll_id: int, choice: bool, now: int) -> Poll:
        poll = self.get_poll(poll_id)
        phase = phase_for(poll, now)
        if phase is not Phase.REVEAL:
            raise WrongPhase(f"poll {poll_id} is in {phase.value} phase; votes are recorded only during reveal")
        with self._lock:
            cur = self._polls[poll_id]
            if choice:
                cur = replace(cur, votes_for=cur.votes_for + 1)
            else:
                cur = replace(cur, votes_against=cur.votes_against + 1)
            self._polls[poll_id] = cur
        return cur
