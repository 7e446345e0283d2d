"""Default advisor plus advisor-output normalization.

External advisors (rule engines, LLM prompts) often answer with loosely typed
JSON. `decision_from_payload` is the single boundary where such output becomes
an `AdvisorDecision`; unknown adaptation labels become "no adaptation".
"""

from __future__ import annotations

from typing import Any, Mapping

from .types import AdaptationTag, AdvisorDecision, VisitContext, coerce_adaptation
from .url import is_absolute_http_url


MIN_WAIT_SECONDS = 5.0
MAX_WAIT_SECONDS = 20.0
DEFAULT_WAIT_SECONDS = 10.0
MIN_CYCLE_DELAY_SECONDS = 10.0
MAX_CYCLE_DELAY_SECONDS = 60.0


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def decision_from_payload(payload: Mapping[str, Any] | None) -> AdvisorDecision:
    """Normalize a loosely-typed advisor response.

    Accepted keys (snake_case or camelCase): `adaptation`/`next_action`,
    `suggested_url`, `wait_seconds` or `wait_ms`, `cycle_delay_seconds`,
    `message`. Waits are clamped to sane ranges and only kept for
    `RETRY_EXTRACTION`; suggested URLs must be absolute http(s).
    """

    if not payload:
        return AdvisorDecision()

    adaptation = coerce_adaptation(_first(payload, "adaptation", "next_action", "nextAction"))

    suggested = _first(payload, "suggested_url", "suggestedUrl")
    suggested_url = None
    if isinstance(suggested, str) and is_absolute_http_url(suggested.strip()):
        suggested_url = suggested.strip()

    wait_ms: int | None = None
    if adaptation == AdaptationTag.RETRY_EXTRACTION:
        raw_ms = _as_number(_first(payload, "wait_ms", "waitMs"))
        if raw_ms is not None:
            wait_seconds = raw_ms / 1000.0
        else:
            wait_seconds = _as_number(_first(payload, "wait_seconds", "waitSeconds"))
            if wait_seconds is None:
                wait_seconds = DEFAULT_WAIT_SECONDS
        wait_ms = int(_clamp(wait_seconds, MIN_WAIT_SECONDS, MAX_WAIT_SECONDS) * 1000)

    cycle_delay = _as_number(_first(payload, "cycle_delay_seconds", "cycleDelaySeconds"))
    if cycle_delay is not None:
        cycle_delay = _clamp(cycle_delay, MIN_CYCLE_DELAY_SECONDS, MAX_CYCLE_DELAY_SECONDS)

    message = _first(payload, "message")
    return AdvisorDecision(
        adaptation=adaptation,
        suggested_url=suggested_url,
        wait_ms=wait_ms,
        cycle_delay_seconds=cycle_delay,
        message="" if message is None else str(message),
    )


class PassiveAdvisor:
    """Advisor that never adapts; the planner falls back to classifier signals."""

    def advise(self, context: VisitContext) -> AdvisorDecision:
        return AdvisorDecision(message=f"{context.jobs_count} jobs at {context.url}")


__all__ = [
    "PassiveAdvisor",
    "decision_from_payload",
]
