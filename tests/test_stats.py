from __future__ import annotations

from careerscan.crawler.stats import StatsCollector
from careerscan.crawler.types import ActionType, FetchBackend, FetchResult, PageType, SourceStatus


def test_counters_roll_up_into_json():
    stats = StatsCollector()

    stats.record_action(ActionType.VISIT_URL)
    stats.record_action(ActionType.VISIT_URL)
    stats.record_visit(PageType.LISTING, 3)
    stats.record_visit(None, 0)
    stats.record_links(4)
    stats.record_links(2, pagination=True)
    stats.record_links(0)
    stats.record_handoff("login", "completed")
    stats.record_url_correction(2)
    stats.record_retry()
    stats.record_source(SourceStatus.SUCCESS)
    stats.increment("advisor_errors")
    stats.finish()

    payload = stats.to_json()

    assert payload["visits"] == 2
    assert payload["jobs_extracted"] == stats.jobs_extracted == 3
    assert payload["links_enqueued"] == 4
    assert payload["pagination_seeds"] == 2
    assert payload["url_corrections"] == 2
    assert payload["retries"] == 1
    assert payload["actions"] == {"VISIT_URL": 2}
    assert payload["page_types"] == {"listing": 1, "none": 1}
    assert payload["sources"] == {"SUCCESS": 1}
    assert payload["handoffs"] == {"login": {"completed": 1}}
    assert payload["custom_counters"] == {"advisor_errors": 1}
    assert payload["finished_at"] is not None
    assert payload["duration_seconds"] >= 0


def test_revisit_only_adds_new_jobs():
    stats = StatsCollector()

    stats.record_visit(PageType.LISTING, 1)
    stats.record_visit(PageType.LISTING, 2, revisit=True)

    payload = stats.to_json()
    assert payload["visits"] == 1
    assert payload["page_types"] == {"listing": 1}
    assert payload["jobs_extracted"] == 3


def test_fetch_results_bucketed_by_backend_and_error_type():
    stats = StatsCollector()

    stats.record_fetch(FetchResult(requested_url="u", html="<html/>", status_code=200, elapsed_ms=40))
    stats.record_fetch(
        FetchResult(
            requested_url="u",
            backend=FetchBackend.SELENIUM,
            error="TimeoutException: page load",
            elapsed_ms=20,
        )
    )

    fetch = stats.to_json()["fetch"]

    assert fetch["by_backend"] == {"requests": {"ok": 1, "error": 0}, "selenium": {"ok": 0, "error": 1}}
    assert fetch["status_code_counts"] == {"200": 1}
    assert fetch["error_type_counts"] == {"TimeoutException": 1}
    assert fetch["elapsed_ms_avg"] == 30.0
