"""Crawl driver: executes planner actions against real collaborators.

`SourceCrawler` owns one source's `CrawlState` for one cycle and runs the
plan → execute → fold loop until the planner returns `CycleDone` or a cap is
hit. `ScrapeLoop` runs every enabled source for one or more cycles.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from .advisor import PassiveAdvisor
from .classifier import HeuristicPageClassifier
from .config import CrawlConfig
from .constants import (
    DEFAULT_MAX_PRIOR_LISTING_SEEDS,
    PAGINATION_PRIORITY,
    RESEED_PRIORITY,
)
from .control import RunContext
from .errors import StopRequested
from .extractor import JsonLdJobExtractor
from .handoff import HandoffPurpose
from .link_filter import filter_links
from .pagination import generate_pagination_seeds
from .planner import plan_next_action
from .ports import Advisor, HumanBrowser, JobExtractor, PageClassifier, PageFetcher, UrlResolver
from .resolver import ProbingUrlResolver
from .state import CrawlState, create_crawl_state
from .storage import SourceStore, Storage
from .types import (
    LISTING_PAGE_TYPES,
    Action,
    AdaptationTag,
    AdvisorDecision,
    ApplyUrlCorrection,
    CycleDone,
    ErrorRecord,
    JSONDict,
    LastResult,
    PageType,
    RetryWait,
    SourceConfig,
    SourceStatus,
    TriggerCaptcha,
    TriggerLoginWall,
    UrlCorrection,
    VisitContext,
    VisitUrl,
    coerce_adaptation,
    coerce_page_type,
)
from .url import extract_links_from_html, host_from_url, normalize_url


LOGGER = logging.getLogger(__name__)

JOB_CAP_REASON = "Job cap reached"
STEP_CAP_REASON = "Step cap reached"


@dataclass(slots=True)
class Collaborators:
    """External services the driver calls on the planner's behalf.

    Without an explicit resolver, URL corrections probe candidate URLs through
    the same fetcher and classifier the crawl uses.
    """

    fetcher: PageFetcher
    classifier: PageClassifier = field(default_factory=HeuristicPageClassifier)
    extractor: JobExtractor = field(default_factory=JsonLdJobExtractor)
    advisor: Advisor = field(default_factory=PassiveAdvisor)
    resolver: UrlResolver | None = None
    human_browser: HumanBrowser | None = None

    def __post_init__(self) -> None:
        if self.resolver is None:
            self.resolver = ProbingUrlResolver(self.fetcher, classifier=self.classifier)


@dataclass(slots=True)
class SourceOutcome:
    """Result of crawling one source for one cycle."""

    source_id: str
    source_name: str
    status: SourceStatus
    jobs_extracted: int = 0
    pages_visited: int = 0
    steps: int = 0
    stop_reason: str | None = None
    error: str | None = None
    cycle_delay_seconds: float | None = None
    counters: dict[str, int] = field(default_factory=dict)

    def to_json(self) -> JSONDict:
        return {
            "source_id": self.source_id,
            "source_name": self.source_name,
            "status": self.status.value,
            "jobs_extracted": self.jobs_extracted,
            "pages_visited": self.pages_visited,
            "steps": self.steps,
            "stop_reason": self.stop_reason,
            "error": self.error,
            "cycle_delay_seconds": self.cycle_delay_seconds,
            "counters": dict(self.counters),
        }


class SourceCrawler:
    """Drive the planner for a single source until the cycle ends."""

    def __init__(
        self,
        source: SourceConfig,
        config: CrawlConfig,
        *,
        store: SourceStore,
        collaborators: Collaborators,
        context: RunContext | None = None,
    ) -> None:
        self.source = source
        self.config = config
        self.store = store
        self.collab = collaborators
        self.context = context or RunContext()

        self.source_domain = host_from_url(source.url)
        self.state: CrawlState | None = None

        self.jobs_extracted = 0
        self.pages_visited = 0
        self.steps = 0
        self.cycle_delay_hint: float | None = None
        self._jobs_saved_by_url: dict[str, int] = {}

    @property
    def controller(self):
        return self.context.controller

    @property
    def stats(self):
        return self.context.stats

    def _log(self, message: str, *, level: str = "info", agent: str = "Scraper") -> None:
        self.context.activity.add(agent, message, level=level, source=self.source.name)

    def build_state(self) -> CrawlState:
        """Seed the frontier and load previously visited URLs.

        Seeds are the source URL (first), configured seed URLs, and recent
        listing captures that yielded jobs. Seeds themselves are not treated as
        visited so every cycle re-enters the source through them.
        """

        prior = [
            url
            for url in self.store.prior_listing_urls(DEFAULT_MAX_PRIOR_LISTING_SEEDS + 1)
            if normalize_url(url) != normalize_url(self.source.url)
        ][:DEFAULT_MAX_PRIOR_LISTING_SEEDS]
        if prior:
            self._log(f"Cross-run diversity: seeding {len(prior)} prior listing URLs")

        seeds = [*self.source.seed_urls, *prior]
        seed_keys = {normalize_url(url) for url in [self.source.url, *seeds]}
        visited = {url for url in self.store.visited_urls() if url not in seed_keys}

        state = create_crawl_state(
            self.source,
            seeds,
            visited_urls=visited,
            **self.config.state_limits(),
        )
        state.frontier.push(self.source.url, depth=0, priority=RESEED_PRIORITY, front=True)

        if visited:
            self._log(f"Loaded {len(visited)} previously visited URLs (will not re-visit)")
        return state

    def run(self) -> SourceOutcome:
        """Run plan → execute → fold until the cycle is done."""

        source = self.source
        self._log(f"Starting {source.name} ({source.url})")

        try:
            state = self.build_state()
            self.state = state

            while True:
                if self.jobs_extracted >= self.config.max_jobs_per_source:
                    reason = JOB_CAP_REASON
                    break
                if self.steps >= self.config.max_steps_per_cycle:
                    reason = STEP_CAP_REASON
                    break

                if self.controller.stop_requested:
                    state.stop_requested = True

                action = plan_next_action(state)
                self.steps += 1
                self.stats.record_action(action.type)
                LOGGER.debug("%s step %d: %s", source.name, self.steps, action)

                if isinstance(action, CycleDone):
                    reason = action.reason
                    break
                self.execute(action)
        except Exception as exc:
            LOGGER.exception("Source %s failed", source.name)
            self._log(f"{source.name} failed: {exc}", level="error")
            self.store.save_error(ErrorRecord.from_exception(stage="source", url=source.url, exc=exc))
            outcome = self._outcome(SourceStatus.FAILED, stop_reason=None, error=str(exc))
        else:
            status = SourceStatus.SUCCESS if self.jobs_extracted > 0 else SourceStatus.PARTIAL
            self._log(
                f"{source.name}: {reason}. {self.jobs_extracted} jobs from {self.pages_visited} pages.",
                level="ok" if status == SourceStatus.SUCCESS else "info",
            )
            outcome = self._outcome(status, stop_reason=reason)

        self.stats.record_source(outcome.status)
        self.store.save_crawl_stats(outcome.to_json())
        return outcome

    def _outcome(self, status: SourceStatus, *, stop_reason: str | None, error: str | None = None) -> SourceOutcome:
        return SourceOutcome(
            source_id=self.source.id,
            source_name=self.source.name,
            status=status,
            jobs_extracted=self.jobs_extracted,
            pages_visited=self.pages_visited,
            steps=self.steps,
            stop_reason=stop_reason,
            error=error,
            cycle_delay_seconds=self.cycle_delay_hint,
            counters={} if self.state is None else self.state.counters(),
        )

    def _require_state(self) -> CrawlState:
        if self.state is None:
            self.state = self.build_state()
        return self.state

    def execute(self, action: Action) -> None:
        """Execute one non-terminal action and fold its outcome into state."""

        if isinstance(action, VisitUrl):
            self.visit(action.url, action.depth)
        elif isinstance(action, RetryWait):
            self.retry(action)
        elif isinstance(action, ApplyUrlCorrection):
            self.correct_url(action)
        elif isinstance(action, TriggerLoginWall):
            self.hand_off(action.url, HandoffPurpose.LOGIN)
        elif isinstance(action, TriggerCaptcha):
            self.hand_off(action.url, HandoffPurpose.CAPTCHA)
        elif isinstance(action, CycleDone):
            raise ValueError("CycleDone is terminal and cannot be executed")
        else:
            raise TypeError(f"Unsupported action: {action!r}")

    # -- VISIT_URL -----------------------------------------------------------

    def visit(self, url: str, depth: int, *, attempt: int = 1, revisit: bool = False) -> LastResult:
        state = self._require_state()
        try:
            result, html_chars = self._visit_page(url, depth, revisit=revisit)
        except Exception as exc:
            LOGGER.warning("Visit failed for %s: %s", url, exc)
            self.store.save_error(ErrorRecord.from_exception(stage="visit", url=url, exc=exc))
            result = LastResult(
                page_type=PageType.ERROR,
                error=str(exc),
                visited_url=url,
                visited_depth=depth,
            )
            html_chars = 0
        else:
            self._advise(result, html_chars=html_chars, attempt=attempt)

        state.record_visit(result)
        return result

    def _visit_page(self, url: str, depth: int, *, revisit: bool = False) -> tuple[LastResult, int]:
        """Fetch, classify, extract and persist one page.

        A revisit (retry of an earlier visit) is not counted as a new page and
        only keeps the postings beyond those already saved for the URL.
        """

        state = self._require_state()
        self._log(f"{'Revisiting' if revisit else 'Visiting'} {url} (depth {depth})", level="debug")

        fetched = self.collab.fetcher.fetch(url)
        self.stats.record_fetch(fetched)
        if not revisit:
            self.pages_visited += 1

        if not fetched.ok:
            message = fetched.error or "Empty response"
            error_type = message.split(":", maxsplit=1)[0].strip() if ":" in message else None
            self.store.save_error(
                ErrorRecord(
                    stage="fetch",
                    url=url,
                    message=message,
                    error_type=error_type,
                    metadata={"backend": fetched.backend.value, "status_code": fetched.status_code},
                )
            )
            if not revisit:
                self.store.mark_visited(url)
            self.stats.record_visit(PageType.ERROR, 0, revisit=revisit)
            self._log(f"Fetch failed for {url}: {message}", level="warn")
            return (
                LastResult(page_type=PageType.ERROR, error=message, visited_url=url, visited_depth=depth),
                0,
            )

        html = fetched.html or ""
        page_url = fetched.final_url or url

        page_type = coerce_page_type(
            self.collab.classifier.classify(html, page_url, status_code=fetched.status_code)
        )
        page_jobs = list(self.collab.extractor.extract(html, page_url))
        key = normalize_url(url)
        already_saved = self._jobs_saved_by_url.get(key, 0) if revisit else 0
        remaining = max(0, self.config.max_jobs_per_source - self.jobs_extracted)
        jobs = page_jobs[already_saved:][:remaining]

        capture = self.store.save_capture(
            url=url,
            html=html,
            depth=depth,
            page_type=page_type,
            jobs_count=len(page_jobs),
            strategy="retry" if revisit else "visit",
        )
        self.store.save_jobs(jobs, capture_id=capture.capture_id)
        self.jobs_extracted += len(jobs)
        self._jobs_saved_by_url[key] = already_saved + len(jobs)

        self._discover_links(html, page_url, depth)
        if page_type in LISTING_PAGE_TYPES:
            self._seed_pagination(url, depth)

        if not revisit:
            self.store.mark_visited(url)
        self.stats.record_visit(page_type, len(jobs), revisit=revisit)
        self._log(
            f"{url}: {page_type.value if page_type else 'unknown'}, {len(page_jobs)} jobs "
            f"({len(jobs)} new), frontier {len(state.frontier)}"
        )

        result = LastResult(
            capture_id=capture.capture_id,
            page_type=page_type,
            jobs_count=len(page_jobs),
            visited_url=url,
            visited_depth=depth,
        )
        return result, len(html)

    def _discover_links(self, html: str, base_url: str, depth: int) -> int:
        state = self._require_state()
        links = extract_links_from_html(html, base_url=base_url)
        accepted = filter_links(
            links,
            source_domain=self.source_domain,
            url_seen=state.url_seen,
            frontier=state.frontier,
            current_depth=depth,
            max_depth=state.max_depth,
        )
        state.frontier.push_many(accepted)
        self.stats.record_links(len(accepted))
        return len(accepted)

    def _seed_pagination(self, url: str, depth: int) -> int:
        state = self._require_state()
        if depth + 1 > state.max_depth:
            return 0

        added = 0
        for seed in generate_pagination_seeds(url, self.config.pagination_max_pages):
            if state.has_seen(seed) or state.frontier.contains(seed):
                continue
            state.frontier.push(seed, depth=depth + 1, priority=PAGINATION_PRIORITY)
            added += 1

        if added:
            self._log(f"Auto-seeded {added} pagination URLs from {url}")
        self.stats.record_links(added, pagination=True)
        return added

    def _advise(self, result: LastResult, *, html_chars: int, attempt: int) -> None:
        state = self._require_state()
        context = VisitContext(
            source_name=self.source.name,
            url=result.visited_url or self.source.url,
            depth=result.visited_depth or 0,
            page_type=result.page_type,
            jobs_count=result.jobs_count,
            html_chars=html_chars,
            attempt_number=attempt,
            frontier_size=len(state.frontier),
            url_correction_attempts=state.url_correction_attempts,
            error=result.error,
            recent_activity=self.context.activity.snippet(),
        )

        try:
            decision = self.collab.advisor.advise(context)
        except Exception as exc:
            LOGGER.warning("Advisor failed for %s: %s; continuing", context.url, exc)
            self.store.save_error(ErrorRecord.from_exception(stage="advise", url=context.url, exc=exc))
            decision = AdvisorDecision()

        result.adaptation = coerce_adaptation(decision.adaptation)
        result.suggested_url = decision.suggested_url
        result.wait_ms = decision.wait_ms
        if result.adaptation == AdaptationTag.RETRY_CYCLE_SOON and decision.cycle_delay_seconds is not None:
            self.cycle_delay_hint = decision.cycle_delay_seconds
        if decision.message:
            self._log(decision.message, agent="Advisor", level="debug")

    # -- RETRY_WAIT ----------------------------------------------------------

    def retry(self, action: RetryWait) -> None:
        state = self._require_state()
        self.stats.record_retry()
        self._log(
            f"{action.reason}: waiting {action.wait_ms / 1000:.1f}s before revisiting "
            f"{action.retry_url} (retry {state.retry_count}/{state.max_retries})",
            agent="Planner",
        )
        if self.controller.sleep(action.wait_ms / 1000.0):
            state.stop_requested = True
            return
        self.visit(action.retry_url, action.retry_depth, attempt=state.retry_count + 1, revisit=True)

    # -- APPLY_URL_CORRECTION ------------------------------------------------

    def correct_url(self, action: ApplyUrlCorrection) -> None:
        state = self._require_state()
        try:
            correction = self.collab.resolver.resolve(
                action.url,
                action.source_name,
                state.url_correction_attempts,
            )
        except Exception as exc:
            LOGGER.warning("URL resolver failed for %s: %s", action.url, exc)
            self.store.save_error(ErrorRecord.from_exception(stage="correct_url", url=action.url, exc=exc))
            correction = UrlCorrection(corrected_url=None, attempts_made=1, method="error")

        state.url_correction_attempts += correction.attempts_made
        self.stats.record_url_correction(correction.attempts_made)

        if correction.corrected_url:
            state.frontier.push(correction.corrected_url, depth=0, front=True)
            self._log(
                f"URL correction ({correction.method}): {action.url} -> {correction.corrected_url} "
                f"[{state.url_correction_attempts}/{state.max_url_correction_attempts}]"
            )
        else:
            self._log(
                f"No URL correction found for {action.url} after {correction.attempts_made} attempts",
                level="warn",
            )

        # The correction itself is the outcome; nothing left for the planner to react to.
        state.last_result = None

    # -- TRIGGER_LOGIN_WALL / TRIGGER_CAPTCHA --------------------------------

    def hand_off(self, url: str, purpose: HandoffPurpose) -> None:
        state = self._require_state()
        browser = self.collab.human_browser
        if browser is None:
            self._log(f"{purpose.value} required at {url} but human handoff is disabled; skipping", level="warn")
            self.stats.record_handoff(purpose.value, "disabled")
            self._skip_url(url)
            return

        gate = self.controller.gate_for(purpose)
        page = None
        try:
            page = browser.open(url)
            self._log(f"Waiting for a human to complete {purpose.value} at {url}", level="warn")
            html = gate.wait_for_human(page, should_stop=lambda: self.controller.stop_requested)
        except StopRequested:
            state.stop_requested = True
            self.stats.record_handoff(purpose.value, "stopped")
            return
        except Exception as exc:
            LOGGER.warning("Human %s failed for %s: %s", purpose.value, url, exc)
            self.store.save_error(ErrorRecord.from_exception(stage=f"handoff_{purpose.value}", url=url, exc=exc))
            self.stats.record_handoff(purpose.value, "failed")
            self._skip_url(url)
            return
        finally:
            if page is not None:
                page.close()

        self.stats.record_handoff(purpose.value, "completed")
        self._process_handoff_html(url, html, purpose)

    def _process_handoff_html(self, url: str, html: str, purpose: HandoffPurpose) -> None:
        state = self._require_state()
        jobs = list(self.collab.extractor.extract(html, url))
        remaining = max(0, self.config.max_jobs_per_source - self.jobs_extracted)
        jobs = jobs[:remaining]

        capture = self.store.save_capture(
            url=url,
            html=html,
            depth=0,
            page_type=None,
            jobs_count=len(jobs),
            strategy=f"human_{purpose.value}",
        )
        self.store.save_jobs(jobs, capture_id=capture.capture_id)
        self.jobs_extracted += len(jobs)
        self.pages_visited += 1

        discovered = self._discover_links(html, url, 0)
        self.store.mark_visited(url)
        self._log(f"Human {purpose.value} done at {url}: {len(jobs)} jobs, {discovered} new links", level="ok")

        state.record_visit(
            LastResult(
                capture_id=capture.capture_id,
                page_type=None,
                jobs_count=len(jobs),
                visited_url=url,
                visited_depth=0,
            )
        )

    def _skip_url(self, url: str) -> None:
        state = self._require_state()
        state.mark_seen(url)
        state.frontier.remove_url(url)
        state.last_result = LastResult()


class ScrapeLoop:
    """Run every enabled source for `config.cycles` cycles (0 = until stopped)."""

    def __init__(
        self,
        config: CrawlConfig,
        *,
        storage: Storage,
        collaborators: Collaborators,
        context: RunContext | None = None,
    ) -> None:
        self.config = config
        self.storage = storage
        self.collab = collaborators
        self.context = context or RunContext()
        self.cycles_completed = 0

    @property
    def controller(self):
        return self.context.controller

    def crawl_source(self, source: SourceConfig) -> SourceOutcome:
        crawler = SourceCrawler(
            source,
            self.config,
            store=self.storage.source_store(source),
            collaborators=self.collab,
            context=self.context,
        )
        return crawler.run()

    def run_cycle(self, cycle: int) -> list[SourceOutcome]:
        sources = self.config.enabled_sources
        self.context.activity.add("Scraper", f"Cycle {cycle}: {len(sources)} sources")

        if self.config.max_parallel_sources <= 1:
            outcomes: list[SourceOutcome] = []
            for source in sources:
                if self.controller.stop_requested:
                    break
                outcomes.append(self.crawl_source(source))
            return outcomes

        return self._run_parallel(sources)

    def _run_parallel(self, sources: list[SourceConfig]) -> list[SourceOutcome]:
        chunk_size = self.config.max_parallel_sources
        outcomes: list[SourceOutcome] = []

        for start in range(0, len(sources), chunk_size):
            if self.controller.stop_requested:
                break

            chunk = sources[start:start + chunk_size]
            results: dict[int, SourceOutcome] = {}
            lock = threading.Lock()

            def worker(index: int, source: SourceConfig) -> None:
                outcome = self.crawl_source(source)
                with lock:
                    results[index] = outcome

            threads = [
                threading.Thread(
                    target=worker,
                    args=(index, source),
                    name=f"source-worker-{source.storage_key}",
                    daemon=True,
                )
                for index, source in enumerate(chunk)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            outcomes.extend(results[index] for index in sorted(results))

        return outcomes

    def next_delay(self, outcomes: list[SourceOutcome]) -> float:
        """Configured delay, shortened by any advisor "retry soon" hint."""

        hints = [item.cycle_delay_seconds for item in outcomes if item.cycle_delay_seconds is not None]
        if not hints:
            return self.config.cycle_delay_seconds
        return min([self.config.cycle_delay_seconds, *hints])

    def run(self) -> dict[str, Any]:
        self.storage.save_crawl_config(self.config)
        history: list[dict[str, Any]] = []

        cycle = 0
        while not self.controller.stop_requested:
            cycle += 1
            outcomes = self.run_cycle(cycle)
            self.cycles_completed = cycle
            history.append({"cycle": cycle, "sources": [item.to_json() for item in outcomes]})

            if self.config.cycles and cycle >= self.config.cycles:
                break

            delay = self.next_delay(outcomes)
            self.context.activity.add("Scraper", f"Cycle {cycle} done; next cycle in {delay:.0f}s")
            if self.controller.sleep(delay):
                break

        self.context.stats.finish()
        summary = self.context.stats.to_json()
        self.storage.save_crawl_stats(summary)

        return {
            "cycles": self.cycles_completed,
            "stopped": self.controller.stop_requested,
            "history": history,
            "paths": self.storage.paths,
            "stats": summary,
        }


__all__ = [
    "Collaborators",
    "JOB_CAP_REASON",
    "STEP_CAP_REASON",
    "ScrapeLoop",
    "SourceCrawler",
    "SourceOutcome",
]
