from __future__ import annotations

from careerscan.crawler.planner import plan_next_action
from careerscan.crawler.types import (
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


def _drain(state, limit=20):
    actions = []
    for _ in range(limit):
        action = plan_next_action(state)
        actions.append(action)
        if isinstance(action, CycleDone):
            break
    return actions


def test_stop_request_wins_over_everything(make_state):
    state = make_state(["https://acme.com/jobs"])
    state.last_result = LastResult(page_type=PageType.LOGIN_WALL, adaptation=AdaptationTag.LOGIN_WALL_HUMAN)
    state.stop_requested = True

    assert plan_next_action(state) == CycleDone(reason="Stop requested")
    assert len(state.frontier) == 1


def test_visits_in_priority_order_then_reports_empty_frontier(make_state):
    state = make_state(
        [
            "https://acme.com/about",
            "https://acme.com/jobs",
            "https://acme.com/role/design",
        ]
    )

    actions = _drain(state)

    assert actions == [
        VisitUrl(url="https://acme.com/jobs", depth=0),
        VisitUrl(url="https://acme.com/role/design", depth=0),
        VisitUrl(url="https://acme.com/about", depth=0),
        CycleDone(reason="Frontier empty"),
    ]
    assert state.url_seen == {
        "https://acme.com/jobs",
        "https://acme.com/role/design",
        "https://acme.com/about",
    }


def test_already_seen_urls_are_skipped_at_pop_time(make_state):
    state = make_state(["https://acme.com/jobs/", "https://acme.com/jobs", "https://acme.com/other"])

    actions = _drain(state)

    assert [action.url for action in actions if isinstance(action, VisitUrl)] == [
        "https://acme.com/jobs",
        "https://acme.com/other",
    ]


def test_retry_extraction_is_bounded_by_max_retries(make_state):
    state = make_state(["https://acme.com/next"], max_retries=2)
    retries = []

    for _ in range(3):
        state.last_result = LastResult(
            adaptation=AdaptationTag.RETRY_EXTRACTION,
            visited_url="https://acme.com/jobs",
            visited_depth=1,
        )
        action = plan_next_action(state)
        if isinstance(action, RetryWait):
            retries.append(action)
        else:
            break

    assert retries == [
        RetryWait(
            wait_ms=10_000,
            reason="Advisor: retry extraction",
            retry_url="https://acme.com/jobs",
            retry_depth=1,
        )
    ] * 2
    assert action == VisitUrl(url="https://acme.com/next", depth=0)
    assert state.retry_count == 0


def test_retry_wait_uses_advised_wait_and_falls_back_to_source_url(make_state):
    state = make_state()
    state.last_result = LastResult(adaptation=AdaptationTag.RETRY_EXTRACTION, wait_ms=5_000)

    action = plan_next_action(state)

    assert action == RetryWait(
        wait_ms=5_000,
        reason="Advisor: retry extraction",
        retry_url="https://acme.com/jobs",
        retry_depth=0,
    )
    assert state.retry_count == 1


def test_adaptation_is_consumed_exactly_once(make_state):
    state = make_state(["https://acme.com/jobs"])
    last = LastResult(
        adaptation=AdaptationTag.RETRY_EXTRACTION,
        visited_url="https://acme.com/x",
    )
    state.last_result = last

    assert isinstance(plan_next_action(state), RetryWait)
    assert last.adaptation is None
    assert plan_next_action(state) == VisitUrl(url="https://acme.com/jobs", depth=0)


def test_login_handoff_requires_login_wall_classification(make_state):
    gated = make_state(["https://acme.com/jobs"])
    gated.last_result = LastResult(
        page_type=PageType.LISTING,
        adaptation=AdaptationTag.LOGIN_WALL_HUMAN,
        visited_url="https://acme.com/x",
    )
    assert plan_next_action(gated) == VisitUrl(url="https://acme.com/jobs", depth=0)

    confirmed = make_state()
    confirmed.last_result = LastResult(
        page_type=PageType.LOGIN_WALL,
        adaptation=AdaptationTag.LOGIN_WALL_HUMAN,
        visited_url="https://acme.com/x",
    )
    assert plan_next_action(confirmed) == TriggerLoginWall(url="https://acme.com/x")


def test_captcha_handoff_requires_captcha_classification(make_state):
    gated = make_state()
    gated.last_result = LastResult(
        page_type=PageType.LOGIN_WALL,
        adaptation=AdaptationTag.CAPTCHA_HUMAN_SOLVE,
        visited_url="https://acme.com/x",
    )
    # The captcha hint is rejected, but the login wall itself still escalates.
    assert plan_next_action(gated) == TriggerLoginWall(url="https://acme.com/x")

    confirmed = make_state()
    confirmed.last_result = LastResult(
        page_type=PageType.CAPTCHA_CHALLENGE,
        adaptation=AdaptationTag.CAPTCHA_HUMAN_SOLVE,
        visited_url="https://acme.com/x",
    )
    assert plan_next_action(confirmed) == TriggerCaptcha(url="https://acme.com/x")


def test_page_type_escalation_is_consumed(make_state):
    state = make_state(["https://acme.com/jobs"])
    state.last_result = LastResult(page_type=PageType.CAPTCHA_CHALLENGE, visited_url="https://acme.com/x")

    assert plan_next_action(state) == TriggerCaptcha(url="https://acme.com/x")
    assert state.last_result.page_type is None
    assert plan_next_action(state) == VisitUrl(url="https://acme.com/jobs", depth=0)


def test_error_page_triggers_correction_while_attempts_remain(make_state):
    state = make_state(["https://acme.com/jobs"], max_url_correction_attempts=1)
    state.last_result = LastResult(page_type=PageType.ERROR, visited_url="https://acme.com/old")

    assert plan_next_action(state) == ApplyUrlCorrection(url="https://acme.com/old", source_name="Acme")

    state.url_correction_attempts = 1
    state.last_result = LastResult(page_type=PageType.ERROR, visited_url="https://acme.com/old")
    assert plan_next_action(state) == VisitUrl(url="https://acme.com/jobs", depth=0)


def test_try_new_url_prefers_suggestion_and_respects_cap(make_state):
    state = make_state(max_url_correction_attempts=2)
    state.last_result = LastResult(
        adaptation=AdaptationTag.TRY_NEW_URL,
        suggested_url="https://acme.com/careers",
    )
    assert plan_next_action(state) == ApplyUrlCorrection(url="https://acme.com/careers", source_name="Acme")

    state.last_result = LastResult(adaptation=AdaptationTag.TRY_NEW_URL)
    assert plan_next_action(state) == ApplyUrlCorrection(url="https://acme.com/jobs", source_name="Acme")

    state.url_correction_attempts = 2
    state.last_result = LastResult(adaptation=AdaptationTag.TRY_NEW_URL)
    assert plan_next_action(state) == CycleDone(reason="Frontier empty")


def test_retry_cycle_soon_keeps_exploring(make_state):
    state = make_state(["https://acme.com/jobs"])
    state.last_result = LastResult(adaptation=AdaptationTag.RETRY_CYCLE_SOON)

    assert plan_next_action(state) == VisitUrl(url="https://acme.com/jobs", depth=0)


def test_exhaustion_stop_is_opt_in(make_state):
    default = make_state(["https://acme.com/jobs"], max_consecutive_zero_job_visits=2)
    default.consecutive_zero_job_visits = 5
    assert isinstance(plan_next_action(default), VisitUrl)

    opted_in = make_state(
        ["https://acme.com/jobs"],
        max_consecutive_zero_job_visits=2,
        stop_on_exhaustion=True,
    )
    opted_in.consecutive_zero_job_visits = 2
    assert plan_next_action(opted_in) == CycleDone(reason="Exhausted")
    assert len(opted_in.frontier) == 1


def test_same_state_yields_same_actions(make_state):
    seeds = [
        "https://acme.com/jobs/1-a",
        "https://acme.com/company/acme/jobs",
        "https://acme.com/jobs",
        "https://acme.com/jobs?page=2",
    ]

    assert _drain(make_state(seeds)) == _drain(make_state(seeds))
