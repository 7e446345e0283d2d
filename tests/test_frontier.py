from __future__ import annotations

import pytest

from careerscan.crawler.frontier import Frontier, estimate_priority
from careerscan.crawler.types import FilteredLink


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://acme.com/jobs", 90),
        ("https://acme.com/jobs?q=python", 90),
        ("https://acme.com/company/acme/jobs", 85),
        ("https://acme.com/company/acme", 80),
        ("https://acme.com/search?page=3", 75),
        ("https://acme.com/role/backend", 70),
        ("https://acme.com/about", 50),
        ("https://acme.com/jobs/123-senior-engineer", 40),
        ("https://acme.com/job/987", 40),
    ],
)
def test_estimate_priority(url, expected):
    assert estimate_priority(url) == expected


def test_pop_order_follows_priority():
    frontier = Frontier()
    frontier.push("https://acme.com/a", depth=1, priority=50)
    frontier.push("https://acme.com/b", depth=1, priority=90)
    frontier.push("https://acme.com/c", depth=1, priority=70)

    popped = [frontier.pop_next().url for _ in range(3)]

    assert popped == ["https://acme.com/b", "https://acme.com/c", "https://acme.com/a"]
    assert frontier.pop_next() is None


def test_ties_go_to_earliest_and_front_wins():
    frontier = Frontier()
    frontier.push("https://acme.com/first", depth=0, priority=60)
    frontier.push("https://acme.com/second", depth=0, priority=60)
    frontier.push("https://acme.com/urgent", depth=0, priority=60, front=True)

    assert frontier.pop_next().url == "https://acme.com/urgent"
    assert frontier.pop_next().url == "https://acme.com/first"
    assert frontier.pop_next().url == "https://acme.com/second"


def test_push_many_estimates_priority_and_keeps_depth():
    frontier = Frontier()
    items = frontier.push_many(
        [
            FilteredLink(url="https://acme.com/jobs/1-a", depth=2),
            FilteredLink(url="https://acme.com/jobs", depth=2),
        ]
    )

    assert [item.priority for item in items] == [40, 90]
    assert [item.depth for item in frontier.items()] == [2, 2]
    assert len(frontier) == 2


def test_contains_and_remove_url_normalize():
    frontier = Frontier()
    frontier.push("https://acme.com/jobs/", depth=0)
    frontier.push("https://ACME.com/jobs#top", depth=1)
    frontier.push("https://acme.com/other", depth=1)

    assert frontier.contains("https://acme.com/jobs")
    assert frontier.remove_url("https://acme.com/jobs") == 2
    assert not frontier.contains("https://acme.com/jobs")
    assert frontier.snapshot() == {"queue_size": 1, "pushed": 3, "popped": 0, "removed": 2}


def test_negative_depth_rejected():
    with pytest.raises(ValueError):
        Frontier().push("https://acme.com", depth=-1)
