"""
Session cache for implicit feedback pairing.

Remembers the most recent generation per session so the next generation in
the same session can be classified against it. Entries expire after a TTL and
the cache holds at most `max_sessions` sessions, evicting the session that was
updated least recently.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, replace

from uiforge.domain import Generation


@dataclass(frozen=True)
class CachedGeneration:
    """
    A recorded generation and when it entered the cache.

    `skeleton_hash` and `sighting_score` describe the ledger sighting recorded
    for this generation, so later feedback can rescore it. An empty hash means
    no sighting was recorded.
    """

    generation: Generation
    stored_at: float
    skeleton_hash: str = ""
    sighting_score: float = 0.0

    @property
    def code_hash(self) -> str:
        return self.generation.code_hash


class SessionCache:
    """
    Bounded, TTL-expiring map of session id -> last generation.

    Also indexes entries by generation id so feedback for a generation can
    pick up its parameters while that generation is still cached.
    """

    def __init__(
        self,
        max_sessions: int = 1024,
        ttl_seconds: float | None = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.max_sessions = max_sessions
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._by_session: OrderedDict[str, CachedGeneration] = OrderedDict()
        self._by_generation: dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._by_session)

    def _is_expired(self, entry: CachedGeneration) -> bool:
        return self.ttl_seconds is not None and self._clock() - entry.stored_at > self.ttl_seconds

    def _drop(self, session_id: str) -> None:
        entry = self._by_session.pop(session_id, None)
        if entry is not None:
            self._by_generation.pop(entry.generation.id, None)

    def _purge_expired(self) -> None:
        expired = [sid for sid, entry in self._by_session.items() if self._is_expired(entry)]
        for sid in expired:
            self._drop(sid)

    def put(self, generation: Generation, skeleton_hash: str = "", sighting_score: float = 0.0) -> None:
        """Make `generation` the latest for its session."""
        with self._lock:
            self._drop(generation.session_id)
            self._by_session[generation.session_id] = CachedGeneration(
                generation, self._clock(), skeleton_hash=skeleton_hash, sighting_score=sighting_score
            )
            self._by_generation[generation.id] = generation.session_id
            self._purge_expired()
            while len(self._by_session) > self.max_sessions:
                oldest = next(iter(self._by_session))
                self._drop(oldest)

    def last_for_session(self, session_id: str) -> CachedGeneration | None:
        with self._lock:
            entry = self._by_session.get(session_id)
            if entry is None:
                return None
            if self._is_expired(entry):
                self._drop(session_id)
                return None
            return entry

    def find_generation(self, generation_id: str) -> CachedGeneration | None:
        """Look up a cached generation by its id (absent once evicted or replaced)."""
        with self._lock:
            session_id = self._by_generation.get(generation_id)
            if session_id is None:
                return None
            entry = self._by_session.get(session_id)
            if entry is None or entry.generation.id != generation_id:
                return None
            if self._is_expired(entry):
                self._drop(session_id)
                return None
            return entry

    def record_sighting(self, generation_id: str, skeleton_hash: str, score: float) -> bool:
        """
        Attach a ledger sighting to a cached generation.

        Keeps the entry's age and LRU position. Returns False when the
        generation is no longer cached.
        """
        with self._lock:
            session_id = self._by_generation.get(generation_id)
            entry = self._by_session.get(session_id) if session_id is not None else None
            if entry is None or entry.generation.id != generation_id:
                return False
            self._by_session[session_id] = replace(entry, skeleton_hash=skeleton_hash, sighting_score=score)
            return True

    def clear(self) -> None:
        with self._lock:
            self._by_session.clear()
            self._by_generation.clear()
