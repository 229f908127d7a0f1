import logging
import os
import threading
from collections import OrderedDict
from typing import Dict, Optional

from .errors import RequestLimitExceeded

logger = logging.getLogger(__name__)

MAX_SESSION_REQUESTS = int(os.getenv("MAX_SESSION_REQUESTS", "100"))
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "10000"))


class RequestCounter:
    """Bounded request counter for one session."""

    def __init__(self, limit: int = MAX_SESSION_REQUESTS):
        self.limit = limit
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        return self._count

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self._count)

    def acquire(self) -> int:
        """Count one request; raises RequestLimitExceeded once the cap is reached."""
        with self._lock:
            if self._count >= self.limit:
                raise RequestLimitExceeded(self.limit)
            self._count += 1
            return self._count

    def reset(self):
        with self._lock:
            self._count = 0
        logger.info("session.counter_reset limit=%d", self.limit)

    def snapshot(self) -> Dict[str, int]:
        return {"requestCount": self._count, "remaining": self.remaining, "limit": self.limit}


class SessionRegistry:
    """Session id -> RequestCounter; counters are never shared between sessions.

    Holds at most ``max_sessions`` counters; the least recently used one is
    dropped when a new session arrives at capacity.
    """

    def __init__(self, limit: Optional[int] = None, max_sessions: Optional[int] = None):
        self.limit = MAX_SESSION_REQUESTS if limit is None else limit
        self.max_sessions = MAX_SESSIONS if max_sessions is None else max_sessions
        self._counters: "OrderedDict[str, RequestCounter]" = OrderedDict()
        self._lock = threading.Lock()

    def counter(self, session_id: str) -> RequestCounter:
        with self._lock:
            counter = self._counters.get(session_id)
            if counter is not None:
                self._counters.move_to_end(session_id)
                return counter

            counter = RequestCounter(self.limit)
            self._counters[session_id] = counter
            while len(self._counters) > self.max_sessions:
                evicted, _ = self._counters.popitem(last=False)
                logger.info("session.evicted session_id=%s", evicted)
            logger.info("session.created session_id=%s limit=%d sessions=%d",
                        session_id, self.limit, len(self._counters))
            return counter

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._counters

    def __len__(self) -> int:
        return len(self._counters)
