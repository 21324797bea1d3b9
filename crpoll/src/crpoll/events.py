from __future__ import annotations

import logging
import os
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional

from crpoll.canonical import canonical_dumps

logger = logging.getLogger(__name__)

COMMIT_RECORDED = "CommitRecorded"
VOTE_REVEALED = "VoteRevealed"
POLL_CLOSED = "PollClosed"


@dataclass(frozen=True)
class Event:
    seq: int
    kind: str
    poll_id: int
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"seq": self.seq, "kind": self.kind, "poll_id": self.poll_id, "data": self.data}


Subscriber = Callable[[Event], None]


def events_out_from_env() -> Optional[Path]:
    v = os.environ.get("CRPOLL_EVENTS_OUT", "").strip()
    if not v:
        return None
    return Path(v)


class EventLog:
    """
    Ordered notification log.

    Sequence numbers are global to the log, so events of one poll are seen by
    subscribers (and in the JSONL sink) in the order they were recorded.

    record() assigns the sequence number and writes the sink line; if the
    write fails nothing is assigned or kept. notify() hands recorded events
    to subscribers with no lock held, one delivering thread at a time, so a
    subscriber may call back into whatever recorded the event. An event
    recorded during delivery is delivered by the same loop, after the
    current one.
    """

    def __init__(self, out: Optional[Path] = None) -> None:
        self._lock = threading.Lock()
        self._seq = 0
        self._events: List[Event] = []
        self._pending: Deque[Event] = deque()
        self._delivering = False
        self._subscribers: List[Subscriber] = []
        self.out = out

    def subscribe(self, fn: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(fn)

    def record(self, kind: str, poll_id: int, data: Dict[str, Any]) -> Event:
        with self._lock:
            evt = Event(seq=self._seq + 1, kind=str(kind), poll_id=poll_id, data=dict(data))
            if self.out is not None:
                self.out.parent.mkdir(parents=True, exist_ok=True)
                with self.out.open("a", encoding="utf-8", newline="\n") as f:
                    f.write(canonical_dumps(evt.to_dict()) + "\n")
            self._seq = evt.seq
            self._events.append(evt)
            self._pending.append(evt)
        logger.debug("event %s %s poll=%s %s", evt.seq, evt.kind, poll_id, evt.data)
        return evt

    def notify(self) -> None:
        with self._lock:
            if self._delivering:
                return
            self._delivering = True
        try:
            while True:
                with self._lock:
                    # reset together with the empty check
                    if not self._pending:
                        self._delivering = False
                        return
                    evt = self._pending.popleft()
                    subscribers = list(self._subscribers)
                for fn in subscribers:
                    fn(evt)
        except BaseException:
            with self._lock:
                self._delivering = False
            raise

    def emit(self, kind: str, poll_id: int, data: Dict[str, Any]) -> Event:
        evt = self.record(kind, poll_id, data)
        self.notify()
        return evt

    def events(self, poll_id: Optional[int] = None) -> List[Event]:
        with self._lock:
            if poll_id is None:
                return list(self._events)
            return [e for e in self._events if e.poll_id == poll_id]
