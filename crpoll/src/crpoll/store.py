"""
Commitment Store (replay protection)

One live commitment per (voter, poll_id):
- put() refuses a second commitment while one is live.
- take() / take_matching() clear the slot on success, so the same
  commitment can never be revealed twice.

All reads-then-writes happen under one lock.
"""
from __future__ import annotations

import hmac
import threading
from typing import Dict, Tuple

from crpoll.errors import AlreadyCommitted, CommitmentMismatch, NoCommitment

Key = Tuple[str, int]


class CommitmentStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._live: Dict[Key, bytes] = {}
        self._recorded: Dict[int, int] = {}

    def put(self, voter: str, poll_id: int, digest: bytes) -> None:
        key = (voter, poll_id)
        with self._lock:
            if key in self._live:
                raise AlreadyCommitted(f"{voter} already holds a commitment for poll {poll_id}")
            self._live[key] = bytes(digest)
            self._recorded[poll_id] = self._recorded.get(poll_id, 0) + 1

    def get(self, voter: str, poll_id: int) -> bytes | None:
        with self._lock:
            return self._live.get((voter, poll_id))

    def take(self, voter: str, poll_id: int) -> bytes:
        with self._lock:
            digest = self._live.pop((voter, poll_id), None)
        if digest is None:
            raise NoCommitment(f"no commitment from {voter} for poll {poll_id}")
        return digest

    def _match(self, key: Key, expected: bytes) -> bytes:
        digest = self._live.get(key)
        if digest is None:
            raise NoCommitment(f"no commitment from {key[0]} for poll {key[1]}")
        if not hmac.compare_digest(digest, expected):
            raise CommitmentMismatch(f"revealed vote does not match the commitment from {key[0]} for poll {key[1]}")
        return digest

    def check_matching(self, voter: str, poll_id: int, expected: bytes) -> None:
        """Raises exactly as take_matching() would, without clearing anything."""
        with self._lock:
            self._match((voter, poll_id), expected)

    def take_matching(self, voter: str, poll_id: int, expected: bytes) -> bytes:
        """
        Clears and returns the commitment only if it equals `expected`.
        On mismatch the commitment stays in place.
        """
        key = (voter, poll_id)
        with self._lock:
            digest = self._match(key, expected)
            del self._live[key]
        return digest

    def recorded_count(self, poll_id: int) -> int:
        with self._lock:
            return self._recorded.get(poll_id, 0)

    def live_count(self, poll_id: int) -> int:
        with self._lock:
            return sum(1 for (_, pid) in self._live if pid == poll_id)
