"""Run-scoped control surface: stop flag, handoff gates and activity log.

Everything an operator interacts with while a crawl runs hangs off one
`RunContext`, so independent runs (or tests) never share state.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field

from .constants import ACTIVITY_LOG_CAPACITY
from .errors import StopRequested
from .handoff import HandoffPurpose, HumanHandoffGate
from .stats import StatsCollector
from .types import JSONDict, utc_now_iso


LOGGER = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "ok": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True, slots=True)
class ActivityEvent:
    agent: str
    message: str
    level: str = "info"
    source: str | None = None
    created_at: str = field(default_factory=utc_now_iso)

    def to_json(self) -> JSONDict:
        return {
            "agent": self.agent,
            "message": self.message,
            "level": self.level,
            "source": self.source,
            "created_at": self.created_at,
        }


class ActivityLog:
    """Bounded, thread-safe buffer of recent crawl events.

    Events are also forwarded to the standard logger so the console and
    `logs/crawl.log` carry the same narrative.
    """

    def __init__(self, capacity: int = ACTIVITY_LOG_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._lock = threading.Lock()
        self._events: deque[ActivityEvent] = deque(maxlen=capacity)

    def add(self, agent: str, message: str, *, level: str = "info", source: str | None = None) -> ActivityEvent:
        event = ActivityEvent(agent=agent, message=message, level=level, source=source)
        with self._lock:
            self._events.append(event)
        prefix = f"[{source}] " if source else ""
        LOGGER.log(_LEVELS.get(level, logging.INFO), "%s%s: %s", prefix, agent, message)
        return event

    def recent(self, limit: int = 20) -> list[ActivityEvent]:
        if limit <= 0:
            return []
        with self._lock:
            return list(self._events)[-limit:]

    def snippet(self, limit: int = 20) -> str:
        """Recent events as plain lines, suitable for an advisor prompt."""

        return "\n".join(f"[{event.agent}] {event.message}" for event in self.recent(limit))

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


class ScrapeController:
    """Operator handle for a running crawl."""

    def __init__(self) -> None:
        self._stop_event = threading.Event()
        self.login_gate = HumanHandoffGate(HandoffPurpose.LOGIN)
        self.captcha_gate = HumanHandoffGate(HandoffPurpose.CAPTCHA)

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Request a stop and release any thread parked on a handoff gate."""

        self._stop_event.set()
        self.login_gate.cancel(StopRequested())
        self.captcha_gate.cancel(StopRequested())

    def reset(self) -> None:
        self._stop_event.clear()

    def sleep(self, seconds: float) -> bool:
        """Sleep up to `seconds`; return True if a stop arrived meanwhile."""

        if seconds <= 0:
            return self._stop_event.is_set()
        return self._stop_event.wait(timeout=seconds)

    def gate_for(self, purpose: HandoffPurpose) -> HumanHandoffGate:
        if purpose == HandoffPurpose.LOGIN:
            return self.login_gate
        return self.captcha_gate

    def login_completed(self, html: str | None = None) -> str:
        return self.login_gate.signal(html)

    def captcha_solved(self, html: str | None = None) -> str:
        return self.captcha_gate.signal(html)

    def pending_handoffs(self) -> list[HandoffPurpose]:
        return [gate.purpose for gate in (self.login_gate, self.captcha_gate) if gate.is_waiting]


@dataclass(slots=True)
class RunContext:
    """State shared by every source crawled in one run."""

    controller: ScrapeController = field(default_factory=ScrapeController)
    activity: ActivityLog = field(default_factory=ActivityLog)
    stats: StatsCollector = field(default_factory=StatsCollector)


__all__ = ["ActivityEvent", "ActivityLog", "RunContext", "ScrapeController"]
