from __future__ import annotations

from typing import Any

import orjson
import pytest

import main as entrypoint
from deep_web_research.core.errors import BrowserLaunchError
from scripts import run_api, run_research


class StubService:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    async def deep_research(self, topic: str, **options: Any) -> dict[str, Any]:
        self.calls.append(("research", {"topic": topic, **options}))
        return {"topic": topic, "status": "completed"}

    async def parallel_search(self, queries: list[str], max_parallel: int | None = None) -> dict[str, Any]:
        self.calls.append(("search", (queries, max_parallel)))
        if self.error is not None:
            raise self.error
        return {"results": []}

    async def visit_page(self, url: str) -> dict[str, str]:
        self.calls.append(("visit", url))
        return {"url": url, "title": "Guide", "content": ""}

    async def close(self) -> None:
        self.closed = True


def test_research_defaults():
    args = run_research.parse_args(["research", "observer pattern"])

    assert args.command == "research"
    assert (args.max_depth, args.max_branching, args.timeout, args.min_relevance) == (2, 3, 55000, 0.7)
    assert args.log_level is None
    assert args.output is None


def test_global_options_precede_the_command(tmp_path):
    args = run_research.parse_args(
        ["--log-level", "DEBUG", "--output", str(tmp_path / "out.json"), "search", "a", "b", "--max-parallel", "2"]
    )

    assert args.log_level == "DEBUG"
    assert args.queries == ["a", "b"]
    assert args.max_parallel == 2


@pytest.mark.asyncio
async def test_run_dispatches_and_closes_the_service():
    service = StubService()
    args = run_research.parse_args(["research", "observer pattern", "--max-depth", "1", "--timeout", "40000"])

    result = await run_research.run(args, service)

    assert result == {"topic": "observer pattern", "status": "completed"}
    assert service.calls == [
        (
            "research",
            {
                "topic": "observer pattern",
                "max_depth": 1,
                "max_branching": 3,
                "timeout_ms": 40000,
                "min_relevance_score": 0.7,
            },
        )
    ]
    assert service.closed


@pytest.mark.asyncio
async def test_run_closes_the_service_on_failure():
    service = StubService(error=BrowserLaunchError("Failed to start browser"))

    with pytest.raises(BrowserLaunchError):
        await run_research.run(run_research.parse_args(["search", "a"]), service)
    assert service.closed


def test_write_result(tmp_path, capsys):
    run_research.write_result({"status": "completed"}, None)
    assert orjson.loads(capsys.readouterr().out) == {"status": "completed"}

    target = tmp_path / "nested" / "result.json"
    run_research.write_result({"status": "failed"}, target)
    assert orjson.loads(target.read_bytes()) == {"status": "failed"}


def test_main_writes_json_and_exits_cleanly(monkeypatch, capsys):
    monkeypatch.setattr(run_research, "ResearchService", StubService)

    assert run_research.main(["visit", "https://example.com/guide"]) == 0
    assert orjson.loads(capsys.readouterr().out)["title"] == "Guide"


def test_main_reports_engine_errors(monkeypatch, capsys):
    monkeypatch.setattr(run_research, "ResearchService", lambda: StubService(error=BrowserLaunchError("boom")))

    assert run_research.main(["search", "a"]) == 1
    assert capsys.readouterr().out == ""


def test_entrypoint_routes_serve_to_the_api(monkeypatch):
    launched: list[dict[str, Any]] = []
    monkeypatch.setattr(run_api.uvicorn, "run", lambda app, **kwargs: launched.append({"app": app, **kwargs}))

    assert entrypoint.main(["serve", "--port", "9001"]) == 0
    assert launched[0]["app"] == "api.main:create_app"
    assert launched[0]["factory"] is True
    assert launched[0]["port"] == 9001


def test_entrypoint_routes_everything_else_to_the_research_cli(monkeypatch):
    seen: list[list[str]] = []
    monkeypatch.setattr(run_research, "main", lambda argv: seen.append(list(argv)) or 0)

    assert entrypoint.main(["visit", "https://example.com"]) == 0
    assert seen == [["visit", "https://example.com"]]
