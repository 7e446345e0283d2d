"""Default values shared by config, planner, and driver modules."""

from __future__ import annotations

from .types import FetchBackend


DEFAULT_MAX_DEPTH = 999
DEFAULT_MAX_RETRIES = 3
DEFAULT_MAX_URL_CORRECTION_ATTEMPTS = 5
DEFAULT_MAX_CONSECUTIVE_ZERO_JOB_VISITS = 15
DEFAULT_STOP_ON_EXHAUSTION = False

DEFAULT_RETRY_WAIT_MS = 10_000
DEFAULT_PRIORITY = 50
PAGINATION_PRIORITY = 75
RESEED_PRIORITY = 90

DEFAULT_PAGINATION_MAX_PAGES = 30
DEFAULT_MAX_JOBS_PER_SOURCE = 5000
DEFAULT_MAX_STEPS_PER_CYCLE = 500
DEFAULT_MAX_PRIOR_LISTING_SEEDS = 10
DEFAULT_MAX_PARALLEL_SOURCES = 1
DEFAULT_CYCLES = 1
DEFAULT_CYCLE_DELAY_SECONDS = 10.0

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0
DEFAULT_RATE_LIMIT_SECONDS = 1.0
DEFAULT_FETCH_BACKEND = FetchBackend.REQUESTS
DEFAULT_SELENIUM_WAIT_SECONDS = 4.0
DEFAULT_HUMAN_HANDOFF = False

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
DEFAULT_HTTP_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

ACTIVITY_LOG_CAPACITY = 500
STOP_POLL_SECONDS = 0.5

JSON_INDENT = 2
SUPPORTED_CONFIG_SUFFIXES = (".yaml", ".yml", ".json")
