from __future__ import annotations

import json

from careerscan.crawler.config import CrawlConfig
from careerscan.crawler.storage import SourceStore, Storage
from careerscan.crawler.types import ErrorRecord, PageType, SourceConfig


def _read_jsonl(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]


def test_mark_visited_normalizes_and_persists(tmp_path):
    store = SourceStore(tmp_path / "acme")

    assert store.mark_visited("https://ACME.com/jobs/#top")
    assert not store.mark_visited("https://acme.com/jobs")
    assert store.visited_urls_path.read_text(encoding="utf-8") == "https://acme.com/jobs\n"

    reloaded = SourceStore(tmp_path / "acme")
    assert reloaded.visited_urls() == {"https://acme.com/jobs"}
    assert SourceStore(tmp_path / "acme", load_existing=False).visited_urls() == set()


def test_save_capture_writes_html_and_index(store):
    record = store.save_capture(
        url="https://acme.com/jobs",
        html="<html>jobs</html>",
        depth=0,
        page_type=PageType.LISTING,
        jobs_count=2,
    )

    assert record.capture_id.startswith("000001-")
    assert store.read_capture(record.capture_id) == "<html>jobs</html>"
    assert store.read_capture("missing") is None

    rows = _read_jsonl(store.capture_index_path)
    assert rows[0]["page_type"] == "listing"
    assert rows[0]["strategy"] == "visit"

    second = store.save_capture(url="https://acme.com/x", html="", depth=1, page_type=None, jobs_count=0)
    assert second.capture_id.startswith("000002-")
    assert [item.capture_id for item in SourceStore(store.root).captures()] == [
        record.capture_id,
        second.capture_id,
    ]


def test_prior_listing_urls_newest_first_and_filtered(store):
    store.save_capture(url="https://acme.com/jobs", html="", depth=0, page_type=PageType.LISTING, jobs_count=3)
    store.save_capture(url="https://acme.com/jobs/1-a", html="", depth=1, page_type=PageType.DETAIL, jobs_count=1)
    store.save_capture(url="https://acme.com/role/x", html="", depth=1, page_type=PageType.CATEGORY_LISTING, jobs_count=0)
    store.save_capture(
        url="https://acme.com/company/acme",
        html="",
        depth=1,
        page_type=PageType.COMPANY_CAREERS,
        jobs_count=4,
    )
    store.save_capture(url="https://acme.com/jobs/", html="", depth=0, page_type=PageType.LISTING, jobs_count=2)

    assert store.prior_listing_urls(10) == ["https://acme.com/jobs/", "https://acme.com/company/acme"]
    assert store.prior_listing_urls(1) == ["https://acme.com/jobs/"]
    assert store.prior_listing_urls(0) == []


def test_jobs_errors_and_stats(store):
    written = store.save_jobs([{"title": "A"}, {"title": "B"}], capture_id="000001-abc")
    store.save_error(ErrorRecord(stage="fetch", url="https://acme.com/x", message="boom"))
    store.save_crawl_stats({"pages_visited": 2})

    assert written == 2
    assert [row["capture_id"] for row in _read_jsonl(store.jobs_path)] == ["000001-abc", "000001-abc"]
    assert _read_jsonl(store.errors_path)[0]["stage"] == "fetch"
    assert json.loads(store.crawl_stats_path.read_text(encoding="utf-8")) == {"pages_visited": 2}


def test_malformed_index_rows_are_skipped(tmp_path):
    root = tmp_path / "acme"
    (root / "captures").mkdir(parents=True)
    (root / "captures" / "index.jsonl").write_text(
        '{"capture_id": "000001-x", "url": "https://acme.com/jobs", "depth": 0, "page_type": "listing", "jobs_count": 1}\n'
        "{broken\n",
        encoding="utf-8",
    )

    store = SourceStore(root)

    assert [record.url for record in store.captures()] == ["https://acme.com/jobs"]


def test_storage_layout_and_source_stores(tmp_path):
    storage = Storage(tmp_path / "out")
    source = SourceConfig(id="acme", name="Acme Corp", url="https://acme.com/jobs")
    config = CrawlConfig(sources=[source])

    store = storage.source_store(source)
    storage.save_crawl_config(config)
    storage.save_crawl_stats({"visits": 0})

    assert store is storage.source_store(source)
    assert store.root == tmp_path / "out" / "sources" / "acme_corp"
    assert (tmp_path / "out" / "logs").is_dir()
    assert json.loads(storage.crawl_config_path.read_text(encoding="utf-8"))["sources"][0]["id"] == "acme"
    assert storage.paths["crawl_stats"] == str(tmp_path / "out" / "manifests" / "crawl_stats.json")
