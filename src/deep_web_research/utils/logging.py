from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping

import structlog

from deep_web_research.config import settings

# chatty at INFO while a browser pool is running
_NOISY_LOGGERS = ("asyncio", "playwright", "urllib3", "httpx")


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is when a record is emitted.

    stdout may carry CLI result payloads, and a stream captured at configure
    time can be closed or swapped out by the time a later record arrives.
    """

    def __init__(self, level: int = logging.NOTSET) -> None:
        logging.Handler.__init__(self, level)

    @property
    def stream(self):  # type: ignore[override]
        return sys.stderr


def _add_component(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Tag each event with the top-level subsystem (``search``, ``analysis`` ...)."""
    name = event_dict.get("logger")
    if name and "component" not in event_dict:
        parts = str(name).split(".")
        event_dict["component"] = parts[1] if parts[0] == "deep_web_research" and len(parts) > 1 else parts[0]
    return event_dict


def _shared_processors() -> list[Callable[..., Any]]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        _add_component,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_processors(json_output: bool) -> list[Callable[..., Any]]:
    processors: list[Callable[..., Any]] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
        structlog.stdlib.add_log_level,
    ]
    if json_output:
        return processors + [
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(serializer=structlog.processors.JSONFallbackEncoder()),
        ]
    return processors + [
        structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.rich_traceback,
        )
    ]


def _python_log_level(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)


def configure_logging(level: str | None = None, *, json_output: bool | None = None) -> None:
    """Route structlog through stdlib logging to stderr.

    ``level`` overrides ``LOG_LEVEL``; JSON lines are the default outside the
    ``local`` environment. Third-party stdlib records get the same rendering.
    """
    numeric_level = _python_log_level(level or settings.runtime.log_level)
    if json_output is None:
        json_output = settings.runtime.environment != "local"

    structlog.configure(
        processors=[*_shared_processors(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = _StderrHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=_render_processors(json_output),
        )
    )
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(name)
