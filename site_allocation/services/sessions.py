import logging
import time
from collections import OrderedDict
from typing import Callable, Optional

from site_allocation.core.environment import get_max_operator_sessions, get_operator_session_ttl
from site_allocation.services.orchestrator import AllocationOrchestrator

logger = logging.getLogger(__name__)


class OperatorSessions:
    """
    Orchestrator sessions keyed by operator id.

    Sessions idle for longer than ``ttl_seconds`` are dropped, and once
    ``max_sessions`` are held the least recently used one is evicted. An
    evicted operator simply gets a fresh, unloaded session on the next call.
    """

    def __init__(
        self,
        factory: Callable[[str], AllocationOrchestrator],
        max_sessions: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._factory = factory
        self.max_sessions = max(max_sessions if max_sessions is not None else get_max_operator_sessions(), 1)
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else get_operator_session_ttl()
        self._clock = clock
        self._sessions: "OrderedDict[str, tuple]" = OrderedDict()

    def get(self, operator_id: str) -> AllocationOrchestrator:
        now = self._clock()
        self._expire(now)

        entry = self._sessions.pop(operator_id, None)
        orchestrator = entry[0] if entry else self._factory(operator_id)
        self._sessions[operator_id] = (orchestrator, now)

        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.info(f"Evicted session for operator {evicted} (limit {self.max_sessions})")
        return orchestrator

    def _expire(self, now: float) -> None:
        # Oldest first, so stop at the first session still fresh
        while self._sessions:
            operator_id, (_, last_used) = next(iter(self._sessions.items()))
            if now - last_used <= self.ttl_seconds:
                break
            del self._sessions[operator_id]
            logger.info(f"Expired idle session for operator {operator_id}")

    def __contains__(self, operator_id: str) -> bool:
        return operator_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        self._sessions.clear()
