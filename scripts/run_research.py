# scripts/run_research.py
from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Any, Iterable

import orjson

from deep_web_research.core.errors import DeepResearchError
from deep_web_research.service import ResearchService
from deep_web_research.utils import configure_logging, get_logger


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run depth- and time-bounded web research from the command line.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Write the JSON result to this file instead of stdout.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override LOG_LEVEL for this run.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    research = commands.add_parser("research", help="Research a topic end-to-end.")
    research.add_argument("topic", help="Topic to research.")
    research.add_argument("--max-depth", type=int, default=2, help="Link depth (clamped to 1-2).")
    research.add_argument("--max-branching", type=int, default=3, help="Links followed per page (clamped to 1-3).")
    research.add_argument("--timeout", type=int, default=55000, help="Session budget in ms (clamped to 30000-55000).")
    research.add_argument(
        "--min-relevance",
        type=float,
        default=0.7,
        help="Minimum confidence for a key insight to be kept (0-1).",
    )

    search = commands.add_parser("search", help="Run up to five queries in parallel.")
    search.add_argument("queries", nargs="+", help="Search queries.")
    search.add_argument("--max-parallel", type=int, default=None, help="Concurrent browser sessions (1-5).")

    visit = commands.add_parser("visit", help="Fetch and extract a single page.")
    visit.add_argument("url", help="http(s) URL to visit.")

    return parser.parse_args(list(argv))


async def execute(service: ResearchService, args: argparse.Namespace) -> Any:
    if args.command == "research":
        return await service.deep_research(
            args.topic,
            max_depth=args.max_depth,
            max_branching=args.max_branching,
            timeout_ms=args.timeout,
            min_relevance_score=args.min_relevance,
        )
    if args.command == "search":
        return await service.parallel_search(args.queries, args.max_parallel)
    return await service.visit_page(args.url)


async def run(args: argparse.Namespace, service: ResearchService | None = None) -> Any:
    """Execute one command; SIGINT/SIGTERM cancel it and browser resources are still released."""
    service = service or ResearchService()
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, task.cancel)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # not supported on this platform/loop
            continue
    try:
        return await execute(service, args)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        await service.close()


def write_result(result: Any, output: Path | None) -> None:
    payload = orjson.dumps(result, option=orjson.OPT_INDENT_2)
    if output is None:
        sys.stdout.write(payload.decode("utf-8") + "\n")
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(payload)


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level)
    logger = get_logger(__name__)

    try:
        result = asyncio.run(run(args))
    except asyncio.CancelledError:
        logger.warning("research.cli.interrupted", command=args.command)
        return 130
    except DeepResearchError as exc:
        logger.error("research.cli.failed", command=args.command, error=str(exc), kind=exc.__class__.__name__)
        return 1

    write_result(result, args.output)
    if args.output is not None:
        logger.info("research.cli.saved", path=str(args.output))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
