"""Deterministic next-action planner for one source's crawl.

`plan_next_action` inspects a `CrawlState` and returns exactly one action. It
performs no I/O and never raises; the only side effects are on the passed-in
state (consumed adaptation/page-type tags, `retry_count`, `url_seen`, and
frontier pops).

Decision order, first match wins:

1. stop requested
2. advisor adaptation (gated, consumed exactly once)
3. classifier page type: login wall / captcha
4. classifier page type: error page, while correction attempts remain
5. frontier pop (optionally preceded by the exhaustion stop)
6. frontier empty
"""

from __future__ import annotations

from .constants import DEFAULT_RETRY_WAIT_MS
from .state import CrawlState
from .types import (
    Action,
    AdaptationTag,
    ApplyUrlCorrection,
    CycleDone,
    LastResult,
    PageType,
    RetryWait,
    TriggerCaptcha,
    TriggerLoginWall,
    VisitUrl,
)
from .url import normalize_url


STOP_REQUESTED_REASON = "Stop requested"
FRONTIER_EMPTY_REASON = "Frontier empty"
EXHAUSTED_REASON = "Exhausted"
RETRY_EXTRACTION_REASON = "Advisor: retry extraction"


def _visited_or_source_url(state: CrawlState, last: LastResult) -> str:
    return last.visited_url or state.source.url


def _consume_adaptation(state: CrawlState, last: LastResult) -> Action | None:
    adaptation = last.adaptation
    # Consumed regardless of outcome so a stale tag is never reused.
    last.adaptation = None

    if adaptation == AdaptationTag.LOGIN_WALL_HUMAN:
        if last.page_type == PageType.LOGIN_WALL:
            return TriggerLoginWall(url=_visited_or_source_url(state, last))
        return None

    if adaptation == AdaptationTag.CAPTCHA_HUMAN_SOLVE:
        if last.page_type == PageType.CAPTCHA_CHALLENGE:
            return TriggerCaptcha(url=_visited_or_source_url(state, last))
        return None

    if adaptation == AdaptationTag.TRY_NEW_URL:
        if state.url_correction_attempts < state.max_url_correction_attempts:
            return ApplyUrlCorrection(
                url=last.suggested_url or state.source.url,
                source_name=state.source.name,
            )
        return None

    if adaptation == AdaptationTag.RETRY_EXTRACTION:
        if state.retry_count < state.max_retries:
            state.retry_count += 1
            return RetryWait(
                wait_ms=last.wait_ms if last.wait_ms is not None else DEFAULT_RETRY_WAIT_MS,
                reason=RETRY_EXTRACTION_REASON,
                retry_url=_visited_or_source_url(state, last),
                retry_depth=last.visited_depth or 0,
            )
        return None

    # RETRY_CYCLE_SOON and anything unrecognized: keep exploring.
    return None


def _consume_page_type(state: CrawlState, last: LastResult) -> Action | None:
    if last.page_type == PageType.LOGIN_WALL:
        last.page_type = None
        return TriggerLoginWall(url=_visited_or_source_url(state, last))

    if last.page_type == PageType.CAPTCHA_CHALLENGE:
        last.page_type = None
        return TriggerCaptcha(url=_visited_or_source_url(state, last))

    if (
        last.page_type == PageType.ERROR
        and state.url_correction_attempts < state.max_url_correction_attempts
    ):
        last.page_type = None
        return ApplyUrlCorrection(
            url=_visited_or_source_url(state, last),
            source_name=state.source.name,
        )

    return None


def _pop_unseen(state: CrawlState) -> VisitUrl | None:
    while True:
        item = state.frontier.pop_next()
        if item is None:
            return None
        normalized = normalize_url(item.url)
        if normalized in state.url_seen:
            continue
        state.url_seen.add(normalized)
        state.retry_count = 0
        return VisitUrl(url=item.url, depth=item.depth)


def plan_next_action(state: CrawlState) -> Action:
    """Return the single next action for `state`."""

    if state.stop_requested:
        return CycleDone(reason=STOP_REQUESTED_REASON)

    last = state.last_result
    if last is not None:
        if last.adaptation is not None:
            action = _consume_adaptation(state, last)
            if action is not None:
                return action

        action = _consume_page_type(state, last)
        if action is not None:
            return action

    if (
        state.stop_on_exhaustion
        and state.consecutive_zero_job_visits >= state.max_consecutive_zero_job_visits
    ):
        return CycleDone(reason=EXHAUSTED_REASON)

    visit = _pop_unseen(state)
    if visit is not None:
        return visit

    return CycleDone(reason=FRONTIER_EMPTY_REASON)


__all__ = [
    "EXHAUSTED_REASON",
    "FRONTIER_EMPTY_REASON",
    "RETRY_EXTRACTION_REASON",
    "STOP_REQUESTED_REASON",
    "plan_next_action",
]
