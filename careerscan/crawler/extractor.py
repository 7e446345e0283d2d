"""Structured job extraction from schema.org JobPosting JSON-LD."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from bs4 import BeautifulSoup

from .url import resolve_url


LOGGER = logging.getLogger(__name__)

JOB_POSTING_TYPE = "JobPosting"


def _is_job_posting(node: dict[str, Any]) -> bool:
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return JOB_POSTING_TYPE in node_type
    return node_type == JOB_POSTING_TYPE


def _iter_nodes(payload: Any) -> Iterable[dict[str, Any]]:
    if isinstance(payload, list):
        for item in payload:
            yield from _iter_nodes(item)
        return
    if not isinstance(payload, dict):
        return
    yield payload
    graph = payload.get("@graph")
    if graph is not None:
        yield from _iter_nodes(graph)


def _name_of(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("name")
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _location_of(value: Any) -> str | None:
    if isinstance(value, list):
        parts = [part for part in (_location_of(item) for item in value) if part]
        return "; ".join(parts) or None
    if isinstance(value, dict):
        address = value.get("address", value)
        if isinstance(address, dict):
            parts = [
                str(address.get(key)).strip()
                for key in ("addressLocality", "addressRegion", "addressCountry")
                if address.get(key)
            ]
            return ", ".join(parts) or None
        return _name_of(address)
    return _name_of(value)


class JsonLdJobExtractor:
    """Return one dict per JobPosting object found in `application/ld+json` scripts."""

    def extract(self, html: str, url: str) -> list[dict[str, Any]]:
        if not html:
            return []

        soup = BeautifulSoup(html, "lxml")
        jobs: list[dict[str, Any]] = []
        for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
            raw = script.string or script.get_text() or ""
            if not raw.strip():
                continue
            try:
                payload = json.loads(raw)
            except json.JSONDecodeError as exc:
                LOGGER.debug("Skipping malformed JSON-LD on %s: %s", url, exc)
                continue

            for node in _iter_nodes(payload):
                if _is_job_posting(node):
                    jobs.append(self._to_job(node, url))
        return jobs

    @staticmethod
    def _to_job(node: dict[str, Any], page_url: str) -> dict[str, Any]:
        job_url = node.get("url")
        if isinstance(job_url, str) and job_url.strip():
            job_url = resolve_url(page_url, job_url.strip()) or page_url
        else:
            job_url = page_url

        return {
            "title": _name_of(node.get("title")),
            "company": _name_of(node.get("hiringOrganization")),
            "location": _location_of(node.get("jobLocation")),
            "employment_type": node.get("employmentType"),
            "date_posted": node.get("datePosted"),
            "valid_through": node.get("validThrough"),
            "url": job_url,
            "source_url": page_url,
        }


__all__ = ["JOB_POSTING_TYPE", "JsonLdJobExtractor"]
