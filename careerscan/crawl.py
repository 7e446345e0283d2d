"""CLI entrypoint for running the job-source crawl loop."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
import threading
from typing import Any, TextIO

if __package__ in {None, ""}:
    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))

from careerscan.crawler import (
    Collaborators,
    CrawlConfig,
    Fetcher,
    FetchBackend,
    HandoffError,
    ProbingUrlResolver,
    RunContext,
    ScrapeController,
    ScrapeLoop,
    SeleniumHumanBrowser,
    Storage,
    load_config,
)


OPERATOR_HELP = "commands: login | captcha | stop | status | help"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl job sources with the planner-driven scrape loop.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=Path("crawl_output"),
        help="Root output directory for sources/manifests/logs.",
    )
    parser.add_argument(
        "--source",
        action="append",
        default=[],
        help="Source start URL (repeatable). Overrides config sources if provided.",
    )

    parser.add_argument("--max_depth", type=int, default=None)
    parser.add_argument("--max_retries", type=int, default=None)
    parser.add_argument("--max_url_correction_attempts", type=int, default=None)
    parser.add_argument("--max_consecutive_zero_job_visits", type=int, default=None)
    parser.add_argument(
        "--stop_on_exhaustion",
        action="store_true",
        help="End a source's cycle after too many consecutive zero-job visits.",
    )
    parser.add_argument("--pagination_max_pages", type=int, default=None)
    parser.add_argument("--max_jobs_per_source", type=int, default=None)
    parser.add_argument("--max_steps_per_cycle", type=int, default=None)
    parser.add_argument("--max_parallel_sources", type=int, default=None)
    parser.add_argument(
        "--cycles",
        type=int,
        default=None,
        help="Number of cycles over all sources; 0 runs until stopped.",
    )
    parser.add_argument("--cycle_delay_seconds", type=float, default=None)

    parser.add_argument("--timeout_seconds", type=float, default=None)
    parser.add_argument("--retries", type=int, default=None)
    parser.add_argument("--retry_backoff_seconds", type=float, default=None)
    parser.add_argument("--rate_limit_seconds", type=float, default=None)
    parser.add_argument("--user_agent", type=str, default=None)
    parser.add_argument(
        "--backend",
        type=str,
        choices=[backend.value for backend in FetchBackend],
        default=None,
        help="Fetch backend for page visits.",
    )

    parser.add_argument(
        "--visible",
        action="store_true",
        help="Enable human handoff: open a visible browser on login walls/CAPTCHAs.",
    )
    parser.add_argument(
        "--print_stats_json",
        action="store_true",
        help="Print full stats JSON in stdout after run.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


_OVERRIDE_KEYS = (
    "max_depth",
    "max_retries",
    "max_url_correction_attempts",
    "max_consecutive_zero_job_visits",
    "pagination_max_pages",
    "max_jobs_per_source",
    "max_steps_per_cycle",
    "max_parallel_sources",
    "cycles",
    "cycle_delay_seconds",
    "timeout_seconds",
    "retries",
    "retry_backoff_seconds",
    "rate_limit_seconds",
    "user_agent",
    "backend",
)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config is not None:
        payload = load_config(args.config).to_dict()
    else:
        payload = {"sources": list(args.source)}

    if args.source:
        payload["sources"] = list(args.source)

    if not payload.get("sources"):
        raise ValueError("No sources provided. Use --config or at least one --source.")

    for key in _OVERRIDE_KEYS:
        value = getattr(args, key)
        if value is not None:
            payload[key] = value

    if args.stop_on_exhaustion:
        payload["stop_on_exhaustion"] = True
    if args.visible:
        payload["human_handoff"] = True

    return CrawlConfig.from_dict(payload)


def setup_logging(output_dir: Path, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "crawl.log"

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # Selenium and urllib3 are chatty at DEBUG.
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def handle_operator_command(command: str, controller: ScrapeController) -> str:
    """Apply one console command to the controller and return a reply line."""

    name = command.strip().lower()
    if not name:
        return ""
    if name in {"help", "?"}:
        return OPERATOR_HELP
    if name == "status":
        pending = [purpose.value for purpose in controller.pending_handoffs()]
        return f"stop_requested={controller.stop_requested} pending={pending or 'none'}"
    if name == "stop":
        controller.stop()
        return "Stop requested."

    try:
        if name == "login":
            controller.login_completed()
            return "Login marked complete."
        if name == "captcha":
            controller.captcha_solved()
            return "CAPTCHA marked solved."
    except HandoffError as exc:
        return str(exc)

    return f"Unknown command '{name}'. {OPERATOR_HELP}"


def start_operator_console(controller: ScrapeController, stream: TextIO = sys.stdin) -> threading.Thread:
    """Read operator commands from `stream` on a daemon thread."""

    def loop() -> None:
        for line in stream:
            reply = handle_operator_command(line, controller)
            if reply:
                print(reply, flush=True)
            if controller.stop_requested:
                return

    thread = threading.Thread(target=loop, name="operator-console", daemon=True)
    thread.start()
    return thread


def print_summary(result: dict[str, Any], *, print_stats_json: bool) -> None:
    paths = result.get("paths", {})
    stats = result.get("stats", {})

    print("\n=== Crawl Complete ===")
    print(f"cycles: {result.get('cycles')}")
    print(f"stopped: {result.get('stopped')}")
    print(f"output_dir: {paths.get('output_dir')}")
    print(f"sources: {paths.get('sources_dir')}")
    print(f"stats: {paths.get('crawl_stats')}")

    history = result.get("history", [])
    if history:
        print("\n--- Last Cycle ---")
        for outcome in history[-1].get("sources", []):
            print(
                f"{outcome.get('source_name')}: {outcome.get('status')} "
                f"jobs={outcome.get('jobs_extracted')} pages={outcome.get('pages_visited')} "
                f"reason={outcome.get('stop_reason') or outcome.get('error')}"
            )

    print("\n--- Core Stats ---")
    for key in [
        "visits",
        "jobs_extracted",
        "links_enqueued",
        "pagination_seeds",
        "url_corrections",
        "retries",
        "duration_seconds",
    ]:
        if key in stats:
            print(f"{key}: {stats[key]}")

    if print_stats_json:
        print("\n--- Full Stats JSON ---")
        print(json.dumps(stats, indent=2, sort_keys=True))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.output_dir, verbose=args.verbose)

    try:
        config = build_config(args)
    except Exception as exc:
        logging.error("Failed to build config: %s", exc)
        return 2

    logging.info(
        "Starting scrape loop: output_dir=%s, sources=%d, cycles=%s, human_handoff=%s",
        args.output_dir,
        len(config.enabled_sources),
        config.cycles or "until stopped",
        config.human_handoff,
    )

    context = RunContext()
    fetcher = Fetcher(config)
    collaborators = Collaborators(
        fetcher=fetcher,
        resolver=ProbingUrlResolver(fetcher, max_attempts=config.max_url_correction_attempts),
        human_browser=SeleniumHumanBrowser(config) if config.human_handoff else None,
    )
    if config.human_handoff:
        start_operator_console(context.controller)
        print(OPERATOR_HELP, flush=True)

    try:
        loop = ScrapeLoop(
            config,
            storage=Storage(args.output_dir),
            collaborators=collaborators,
            context=context,
        )
        result = loop.run()
    except KeyboardInterrupt:
        context.controller.stop()
        logging.error("Interrupted by user")
        return 130
    except Exception:
        logging.exception("Scrape loop failed")
        return 1
    finally:
        fetcher.close()

    print_summary(result, print_stats_json=args.print_stats_json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
