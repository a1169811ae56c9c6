import asyncio
import itertools
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from agent_relay.services.attachments import MaterializedImages
from agent_relay.utils.watchdog import Watchdog


class ProcessState(str, Enum):
    spawned = "spawned"
    awaiting_first_output = "awaiting_first_output"
    streaming = "streaming"
    completed = "completed"
    failed = "failed"
    aborted = "aborted"
    timed_out = "timed_out"


TERMINAL_STATES = {
    ProcessState.completed,
    ProcessState.failed,
    ProcessState.aborted,
    ProcessState.timed_out,
}


@dataclass
class ProcessRecord:
    key: str
    process: asyncio.subprocess.Process
    captured_session_id: Optional[str] = None
    initial_watchdog: Optional[Watchdog] = None
    max_watchdog: Optional[Watchdog] = None
    has_output: bool = False
    session_created_sent: bool = False
    state: ProcessState = ProcessState.spawned
    images: MaterializedImages = field(default_factory=MaterializedImages)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def cancel_watchdogs(self) -> None:
        for watchdog in (self.initial_watchdog, self.max_watchdog):
            if watchdog is not None:
                watchdog.cancel()


_placeholder_ids = itertools.count(1)


def placeholder_key() -> str:
    return f"pending_{next(_placeholder_ids)}"


class SessionRegistry:
    """Maps session ids to the claude process currently serving them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, ProcessRecord] = {}

    def register(self, key: str, record: ProcessRecord) -> Optional[ProcessRecord]:
        with self._lock:
            displaced = self._records.get(key)
            self._records[key] = record
            record.key = key
        if displaced is record:
            return None
        return displaced

    def rekey(self, old_key: str, new_key: str, record: ProcessRecord) -> bool:
        """Move ``record`` from ``old_key`` to ``new_key`` in one step.

        A record that is no longer registered (aborted or timed out) stays
        unregistered.
        """
        if old_key == new_key:
            return False
        with self._lock:
            if self._records.get(old_key) is not record:
                return False
            del self._records[old_key]
            self._records[new_key] = record
            record.key = new_key
        return True

    def lookup(self, key: str) -> Optional[ProcessRecord]:
        with self._lock:
            return self._records.get(key)

    def remove(self, key: str) -> Optional[ProcessRecord]:
        with self._lock:
            return self._records.pop(key, None)

    def discard(self, key: str, record: ProcessRecord) -> bool:
        with self._lock:
            if self._records.get(key) is not record:
                return False
            del self._records[key]
            return True

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._records)

    def items(self) -> List[tuple]:
        with self._lock:
            return list(self._records.items())

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


registry = SessionRegistry()
