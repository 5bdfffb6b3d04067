"""Per-date run bookkeeping.

Each date moves Idle -> Running -> Completed; a second run for a date that
is Running is refused. Dates are independent of each other.
"""

from __future__ import annotations

import datetime as dt
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Union


@dataclass(frozen=True)
class Idle:
    state: str = "idle"


@dataclass(frozen=True)
class Running:
    started_at: dt.datetime
    state: str = "running"


@dataclass(frozen=True)
class Completed:
    finished_at: dt.datetime
    status: str = ""
    state: str = "completed"


RunState = Union[Idle, Running, Completed]


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class RunRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: Dict[str, RunState] = {}

    def try_begin(self, date: str) -> bool:
        with self._lock:
            if isinstance(self._states.get(date), Running):
                return False
            self._states[date] = Running(started_at=_now())
            return True

    def finish(self, date: str, status: str = "") -> None:
        with self._lock:
            self._states[date] = Completed(finished_at=_now(), status=status)

    def state(self, date: str) -> RunState:
        with self._lock:
            return self._states.get(date, Idle())

    def is_running(self, date: Optional[str] = None) -> bool:
        with self._lock:
            if date is not None:
                return isinstance(self._states.get(date), Running)
            return any(isinstance(s, Running) for s in self._states.values())

    def snapshot(self) -> Dict[str, Dict[str, str]]:
        with self._lock:
            items = list(self._states.items())
        out: Dict[str, Dict[str, str]] = {}
        for date, st in items:
            entry = {"state": st.state}
            if isinstance(st, Running):
                entry["startedAt"] = st.started_at.isoformat()
            elif isinstance(st, Completed):
                entry["finishedAt"] = st.finished_at.isoformat()
                if st.status:
                    entry["status"] = st.status
            out[date] = entry
        return out

    def last_completed(self) -> Optional[dt.datetime]:
        with self._lock:
            done = [s.finished_at for s in self._states.values() if isinstance(s, Completed)]
        return max(done) if done else None
