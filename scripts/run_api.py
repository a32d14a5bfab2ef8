"""HTTP server entry point for the research API."""

from __future__ import annotations

import argparse
import sys
from typing import Iterable

import uvicorn


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Deep web research API server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args(list(sys.argv[1:] if argv is None else argv))

    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
