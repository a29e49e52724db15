from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from uuid import uuid4
import logging
import threading
import time

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0

Clock = Callable[[], float]

@dataclass
class RegistryEntry:
    data: Any
    deadline: float

class RollRegistry:
    """
    Correlates roll setup (before-roll) with roll completion (after-roll).
    Each entry lives `ttl` seconds from registration; expired entries read as missing
    and are dropped on the next register(), by purge_expired(), or by the optional
    cleanup thread.
    """

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS, clock: Optional[Clock] = None):
        self.ttl = float(ttl)
        self.clock: Clock = clock or time.monotonic
        self._entries: Dict[str, RegistryEntry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # -------- entries --------

    def register(self, data: Any) -> str:
        self.purge_expired()
        rid = uuid4().hex[:16]
        with self._lock:
            self._entries[rid] = RegistryEntry(data=data, deadline=self.clock() + self.ttl)
        return rid

    def get(self, rid: Optional[str]) -> Any:
        if not rid:
            return None
        with self._lock:
            entry = self._entries.get(rid)
            if entry is None or self.clock() >= entry.deadline:
                return None
            return entry.data

    def __contains__(self, rid: str) -> bool:
        return self.get(rid) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def purge_expired(self) -> int:
        now = self.clock()
        with self._lock:
            dead = [rid for rid, e in self._entries.items() if now >= e.deadline]
            for rid in dead:
                del self._entries[rid]
        if dead:
            logger.debug("Purged %d expired roll registrations", len(dead))
        return len(dead)

    # -------- background sweep --------

    def start_cleanup(self, interval: float = 30.0) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()

        def _run() -> None:
            while not self._stop.wait(interval):
                self.purge_expired()

        self._thread = threading.Thread(target=_run, name="babonus-registry-cleanup", daemon=True)
        self._thread.start()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def cleanup_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
