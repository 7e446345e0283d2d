"""Page fetching with requests/selenium backends and retry/rate-limit logic.

Also provides the visible-browser collaborator used for human handoff.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

import requests
from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.firefox.options import Options as FirefoxOptions

from .config import CrawlConfig
from .types import FetchBackend, FetchResult
from .url import host_from_url, is_absolute_http_url


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _AttemptConfig:
    attempts: int
    backoff_seconds: float


def _create_driver(user_agent: str, *, headless: bool):
    """Start Chrome, falling back to Firefox."""

    errors: list[str] = []

    try:
        chrome_options = ChromeOptions()
        if headless:
            chrome_options.add_argument("--headless=new")
            chrome_options.add_argument("--disable-gpu")
        chrome_options.add_argument("--no-sandbox")
        chrome_options.add_argument("--disable-dev-shm-usage")
        chrome_options.add_argument(f"--user-agent={user_agent}")
        return webdriver.Chrome(options=chrome_options)
    except WebDriverException as exc:
        errors.append(f"Chrome: {exc}")

    try:
        firefox_options = FirefoxOptions()
        if headless:
            firefox_options.add_argument("-headless")
        firefox_options.set_preference("general.useragent.override", user_agent)
        return webdriver.Firefox(options=firefox_options)
    except WebDriverException as exc:
        errors.append(f"Firefox: {exc}")

    raise RuntimeError("; ".join(errors) or "No usable Selenium driver found")


def _quit_driver(driver) -> None:
    try:
        driver.quit()
    except WebDriverException as exc:
        LOGGER.debug("Ignoring selenium shutdown error: %s", exc)


class Fetcher:
    """Fetch pages using either `requests` or `selenium` backends.

    Concurrency model:
    - Requests backend is thread-friendly; each thread gets its own session.
    - Selenium backend is serialized with a lock because one shared headless
      browser instance is used.
    """

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config

        self._thread_local = threading.local()

        self._rate_lock = threading.Lock()
        self._next_allowed_time_by_host: dict[str, float] = {}

        self._selenium_lock = threading.Lock()
        self._selenium_driver = None

        self._closed = False
        self._closed_lock = threading.Lock()

    def fetch(self, url: str) -> FetchResult:
        """Fetch one URL with the configured backend and retries."""

        if not is_absolute_http_url(url):
            return FetchResult(requested_url=url, error="Invalid or unsupported URL")

        if self._is_closed():
            return FetchResult(requested_url=url, error="Fetcher is closed")

        attempt_cfg = _AttemptConfig(
            attempts=max(1, self.config.retries + 1),
            backoff_seconds=max(0.0, self.config.retry_backoff_seconds),
        )

        if self.config.backend == FetchBackend.SELENIUM:
            return self._fetch_with_retries(
                url=url,
                backend=FetchBackend.SELENIUM,
                fetch_once=self._fetch_once_selenium,
                attempt_cfg=attempt_cfg,
            )

        return self._fetch_with_retries(
            url=url,
            backend=FetchBackend.REQUESTS,
            fetch_once=self._fetch_once_requests,
            attempt_cfg=attempt_cfg,
        )

    def close(self) -> None:
        """Close fetcher resources (notably the selenium browser)."""

        with self._closed_lock:
            self._closed = True

        with self._selenium_lock:
            if self._selenium_driver is None:
                return
            _quit_driver(self._selenium_driver)
            self._selenium_driver = None

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _is_closed(self) -> bool:
        with self._closed_lock:
            return self._closed

    def _fetch_with_retries(
        self,
        *,
        url: str,
        backend: FetchBackend,
        fetch_once: Callable[[str], FetchResult],
        attempt_cfg: _AttemptConfig,
    ) -> FetchResult:
        last_result: FetchResult | None = None

        for attempt in range(1, attempt_cfg.attempts + 1):
            if self._is_closed():
                return FetchResult(requested_url=url, backend=backend, error="Fetcher is closed")

            result = fetch_once(url)
            last_result = result

            if self._is_terminal_result(result):
                return result

            LOGGER.debug(
                "Fetch attempt %d/%d failed for %s: %s",
                attempt,
                attempt_cfg.attempts,
                url,
                result.error or result.status_code,
            )
            if attempt < attempt_cfg.attempts and attempt_cfg.backoff_seconds > 0:
                time.sleep(attempt_cfg.backoff_seconds * attempt)

        if last_result is None:
            return FetchResult(requested_url=url, backend=backend, error="Unknown fetch failure")

        return last_result

    @staticmethod
    def _is_terminal_result(result: FetchResult) -> bool:
        if result.error is not None:
            return False

        if result.status_code is None:
            return False

        if result.status_code in {408, 429} or result.status_code >= 500:
            return False

        return True

    def _fetch_once_requests(self, url: str) -> FetchResult:
        self._wait_for_rate_limit(url)
        started = time.perf_counter()

        session = self._thread_local_session()

        try:
            response = session.get(
                url,
                headers=self.config.headers(),
                timeout=self.config.timeout_seconds,
                allow_redirects=True,
            )
            elapsed_ms = int((time.perf_counter() - started) * 1000)

            return FetchResult(
                requested_url=url,
                final_url=response.url or url,
                html=response.text or "",
                status_code=response.status_code,
                backend=FetchBackend.REQUESTS,
                elapsed_ms=elapsed_ms,
            )
        except requests.RequestException as exc:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            return FetchResult(
                requested_url=url,
                backend=FetchBackend.REQUESTS,
                elapsed_ms=elapsed_ms,
                error=f"{exc.__class__.__name__}: {exc}",
            )

    def _fetch_once_selenium(self, url: str) -> FetchResult:
        self._wait_for_rate_limit(url)
        started = time.perf_counter()

        with self._selenium_lock:
            try:
                driver = self._get_or_create_selenium_driver()
            except RuntimeError as exc:
                return FetchResult(
                    requested_url=url,
                    backend=FetchBackend.SELENIUM,
                    elapsed_ms=int((time.perf_counter() - started) * 1000),
                    error=f"Failed to initialize selenium driver: {exc}",
                )

            try:
                driver.set_page_load_timeout(max(1, int(self.config.timeout_seconds)))
                driver.get(url)

                # Settling time for pages that hydrate after load.
                if self.config.selenium_wait_seconds > 0:
                    time.sleep(self.config.selenium_wait_seconds)

                return FetchResult(
                    requested_url=url,
                    final_url=driver.current_url or url,
                    html=driver.page_source or "",
                    status_code=200,
                    backend=FetchBackend.SELENIUM,
                    elapsed_ms=int((time.perf_counter() - started) * 1000),
                )
            except WebDriverException as exc:
                return FetchResult(
                    requested_url=url,
                    backend=FetchBackend.SELENIUM,
                    elapsed_ms=int((time.perf_counter() - started) * 1000),
                    error=f"{exc.__class__.__name__}: {exc}",
                )

    def _thread_local_session(self) -> requests.Session:
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            self._thread_local.session = session
        return session

    def _wait_for_rate_limit(self, url: str) -> None:
        wait_seconds = max(0.0, self.config.rate_limit_seconds)
        if wait_seconds <= 0:
            return

        host = host_from_url(url)

        while True:
            with self._rate_lock:
                now = time.monotonic()
                next_allowed = self._next_allowed_time_by_host.get(host, 0.0)
                if now >= next_allowed:
                    self._next_allowed_time_by_host[host] = now + wait_seconds
                    return
                sleep_for = next_allowed - now

            if sleep_for > 0:
                time.sleep(sleep_for)

    def _get_or_create_selenium_driver(self):
        if self._selenium_driver is None:
            self._selenium_driver = _create_driver(self.config.user_agent, headless=True)
        return self._selenium_driver


class SeleniumPageHandle:
    """A visible browser window owned by one human handoff."""

    def __init__(self, driver) -> None:
        self._driver = driver
        self._closed = False

    def page_source(self) -> str:
        return self._driver.page_source or ""

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        _quit_driver(self._driver)


class SeleniumHumanBrowser:
    """Opens a visible (non-headless) browser so a person can log in or solve a CAPTCHA."""

    def __init__(self, config: CrawlConfig) -> None:
        self.config = config

    def open(self, url: str) -> SeleniumPageHandle:
        driver = _create_driver(self.config.user_agent, headless=False)
        handle = SeleniumPageHandle(driver)
        try:
            driver.set_page_load_timeout(max(1, int(self.config.timeout_seconds)))
            driver.get(url)
        except WebDriverException:
            handle.close()
            raise
        LOGGER.info("Opened visible browser at %s", url)
        return handle


__all__ = ["Fetcher", "SeleniumHumanBrowser", "SeleniumPageHandle"]
