# main.py

from __future__ import annotations

import sys
from typing import Iterable


def main(argv: Iterable[str] | None = None) -> int:
    """Run the research CLI, or the HTTP API when the first argument is ``serve``.

    ``python main.py research "topic"`` and ``python main.py serve --port 9000``
    share one entry point; the API server is only imported when requested.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    if args[:1] == ["serve"]:
        from scripts.run_api import main as serve

        return serve(args[1:])

    from scripts.run_research import main as research

    return research(args)


if __name__ == "__main__":
    raise SystemExit(main())
