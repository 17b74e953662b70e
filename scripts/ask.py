#!/usr/bin/env python3
"""
Turn a natural-language request into a Sourcegraph search query from the terminal.

Uses the same Deep Search client and search service as the API, so it needs
SOURCEGRAPH_TOKEN (and optionally SOURCEGRAPH_URL) in the environment or .env.

Run from project root:

    python scripts/ask.py "Go functions that take a context.Context"
    python scripts/ask.py --sources --timeout 90 "TODO comments in TypeScript"

Prints the generated query on stdout; exits 1 on failure.
"""

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path

# Project root on path so "nlsearch" resolves
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from nlsearch.core.cancellation import CancellationSignal
from nlsearch.core.config import QUERY_TIMEOUT, SOURCEGRAPH_TOKEN, SOURCEGRAPH_URL, validate_config
from nlsearch.core.errors import ConfigError, QueryFailedError
from nlsearch.services.deepsearch_client import DeepSearchClient
from nlsearch.services.search_service import submit_query


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a Sourcegraph search query with Deep Search.")
    parser.add_argument("query", nargs="+", help="Natural-language description of the search")
    parser.add_argument("--timeout", type=float, default=QUERY_TIMEOUT,
                        help=f"Overall budget in seconds (default {QUERY_TIMEOUT:.0f})")
    parser.add_argument("--sources", action="store_true", help="Also print the source records as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log requests and poll ticks")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    query = " ".join(args.query).strip()
    if not query:
        print("Query is required", file=sys.stderr)
        return 1
    try:
        validate_config()
    except ConfigError as e:
        print(e.message, file=sys.stderr)
        return 1

    # Ctrl-C stops the poll loop at its next wait instead of killing a request mid-flight
    cancel = CancellationSignal()
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, lambda *_: cancel.cancel("interrupted"))

    with DeepSearchClient(SOURCEGRAPH_URL, SOURCEGRAPH_TOKEN) as client:
        try:
            result = submit_query(client, query, timeout=args.timeout, cancel=cancel)
        except QueryFailedError as e:
            print(e.message, file=sys.stderr)
            return 1

    print(result.answer)
    if args.sources:
        print(json.dumps(result.sources, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
