from __future__ import annotations

from careerscan.crawler.state import create_crawl_state
from careerscan.crawler.types import LastResult


def test_create_state_seeds_frontier_and_visited(make_state):
    state = make_state(
        ["https://acme.com/jobs", "https://acme.com/company/acme"],
        max_retries=1,
    )

    assert [item.depth for item in state.frontier.items()] == [0, 0]
    assert state.max_retries == 1
    assert state.url_seen == set()


def test_visited_urls_are_normalized(source):
    state = create_crawl_state(source, [], visited_urls=["https://ACME.com/jobs/#x"])

    assert state.url_seen == {"https://acme.com/jobs"}
    assert state.has_seen("https://acme.com/jobs/")


def test_mark_seen_reports_new_urls(make_state):
    state = make_state()

    assert state.mark_seen("https://acme.com/a/")
    assert not state.mark_seen("https://acme.com/a")


def test_record_visit_tracks_zero_job_streak(make_state):
    state = make_state()

    state.record_visit(LastResult(jobs_count=0))
    state.record_visit(LastResult(jobs_count=0))
    assert state.consecutive_zero_job_visits == 2

    last = LastResult(jobs_count=3)
    state.record_visit(last)
    assert state.consecutive_zero_job_visits == 0
    assert state.last_result is last
    assert state.counters()["consecutive_zero_job_visits"] == 0
