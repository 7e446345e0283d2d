from __future__ import annotations

import pytest

from careerscan.crawler.pagination import generate_pagination_seeds, looks_like_listing_path


def test_appends_page_param_to_listing():
    assert generate_pagination_seeds("https://acme.com/jobs", max_pages=4) == [
        "https://acme.com/jobs?page=2",
        "https://acme.com/jobs?page=3",
        "https://acme.com/jobs?page=4",
    ]


def test_replaces_existing_page_param_in_place():
    seeds = generate_pagination_seeds("https://acme.com/jobs?page=1&q=eng", max_pages=3)

    assert seeds == [
        "https://acme.com/jobs?page=2&q=eng",
        "https://acme.com/jobs?page=3&q=eng",
    ]


def test_company_job_list_and_search_paths():
    assert generate_pagination_seeds("https://acme.com/company/acme/jobs", max_pages=2) == [
        "https://acme.com/company/acme/jobs?page=2"
    ]
    assert generate_pagination_seeds("https://acme.com/jobs/search?q=x", max_pages=2) == [
        "https://acme.com/jobs/search?q=x&page=2"
    ]


@pytest.mark.parametrize(
    "url",
    ["https://acme.com/about", "https://acme.com/jobs/123-engineer", "not a url", "http://[broken/jobs"],
)
def test_non_listing_or_malformed_urls_yield_nothing(url):
    assert generate_pagination_seeds(url) == []


def test_max_pages_below_two_yields_nothing():
    assert generate_pagination_seeds("https://acme.com/jobs", max_pages=1) == []


def test_default_max_pages():
    assert len(generate_pagination_seeds("https://acme.com/jobs")) == 4


def test_looks_like_listing_path():
    assert looks_like_listing_path("/Jobs")
    assert not looks_like_listing_path("/jobs/42-x")
