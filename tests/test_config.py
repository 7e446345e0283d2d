from __future__ import annotations

import json

import pytest

from careerscan.crawler.config import CrawlConfig, load_config, save_config
from careerscan.crawler.types import FetchBackend, SourceConfig


def _payload(**overrides):
    payload = {
        "sources": [
            {"name": "Acme", "slug": "acme", "url": "https://acme.com/jobs", "seed_urls": ["https://acme.com/careers"]},
            "https://careers.globex.com/openings",
        ],
        "max_retries": 1,
        "backend": "SELENIUM",
        "human_handoff": True,
    }
    payload.update(overrides)
    return payload


def test_from_dict_coerces_sources_and_backend():
    config = CrawlConfig.from_dict(_payload())

    assert config.backend is FetchBackend.SELENIUM
    assert config.max_retries == 1
    assert [source.id for source in config.sources] == ["acme", "careers.globex.com"]
    assert config.sources[0].seed_urls == ["https://acme.com/careers"]
    assert config.get_source("ACME") is config.sources[0]
    assert config.get_source("careers.globex.com").url == "https://careers.globex.com/openings"
    assert config.get_source("missing") is None


def test_state_limits_and_headers():
    config = CrawlConfig(sources=["https://acme.com/jobs"], max_depth=4, user_agent="bot/1.0")

    assert config.state_limits() == {
        "max_depth": 4,
        "max_retries": 3,
        "max_url_correction_attempts": 5,
        "max_consecutive_zero_job_visits": 15,
        "stop_on_exhaustion": False,
    }
    assert config.headers()["User-Agent"] == "bot/1.0"


def test_enabled_sources_and_dedup_by_id():
    config = CrawlConfig(
        sources=[
            {"id": "a", "url": "https://a.com/jobs", "enabled": False},
            {"id": "b", "url": "https://b.com/jobs"},
            {"id": "b", "url": "https://b.com/careers"},
        ]
    )

    assert [source.id for source in config.sources] == ["a", "b"]
    assert config.sources[1].url == "https://b.com/careers"
    assert [source.id for source in config.enabled_sources] == ["b"]


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"sources": []}, "at least one source"),
        ({"sources": [{"name": "no url"}]}, "missing valid 'url'"),
        ({"sources": ["ftp://acme.com"]}, "Invalid source URL"),
        ({"max_retries": -1}, "max_retries"),
        ({"max_retries": "many"}, "Invalid int for 'max_retries'"),
        ({"backend": "curl"}, "Invalid backend"),
        ({"human_handoff": "yes"}, "Invalid bool for 'human_handoff'"),
        ({"max_parallel_sources": 0}, "max_parallel_sources"),
    ],
)
def test_invalid_values_raise(overrides, message):
    with pytest.raises(ValueError, match=message):
        CrawlConfig.from_dict(_payload(**overrides))


def test_missing_sources_key():
    with pytest.raises(ValueError, match="required key: 'sources'"):
        CrawlConfig.from_dict({"max_depth": 2})


@pytest.mark.parametrize("name", ["crawl.json", "crawl.yaml", "crawl.yml"])
def test_save_and_load_round_trip(tmp_path, name):
    config = CrawlConfig.from_dict(_payload(metadata={"owner": "talent-team"}))
    path = tmp_path / "nested" / name

    save_config(config, path)
    loaded = load_config(path)

    assert loaded == config


def test_load_json_written_by_hand(tmp_path):
    path = tmp_path / "crawl.json"
    path.write_text(json.dumps({"sources": ["https://acme.com/jobs"], "cycles": 0}), encoding="utf-8")

    config = load_config(path)

    assert config.cycles == 0
    assert config.sources == [SourceConfig(id="acme.com", name="acme.com", url="https://acme.com/jobs")]


def test_unsupported_suffix(tmp_path):
    config = CrawlConfig(sources=["https://acme.com/jobs"])

    with pytest.raises(ValueError, match="Unsupported config suffix"):
        save_config(config, tmp_path / "crawl.toml")
    with pytest.raises(ValueError, match="Unsupported config suffix"):
        load_config(tmp_path / "crawl.toml")


def test_yaml_must_be_mapping(tmp_path):
    path = tmp_path / "crawl.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        load_config(path)
