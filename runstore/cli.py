from __future__ import annotations

import argparse
import json
import logging
import sys

import pandas

from runstore.config import load_settings
from runstore.repository import RunRepository
from runstore.schema import create_schema
from runstore.stats import comparative_stats

logger = logging.getLogger("runstore")


def setup_logging(verbose: bool = False) -> None:
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if logger.handlers:
        return
    # Timestamps are useful for debugging
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(handler)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect stored profiler runs")
    parser.add_argument(
        "--config", help="YAML settings file (default: $RUNSTORE_CONFIG)"
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the runs table")

    show = sub.add_parser("show", help="Print one run's metadata and statistics")
    show.add_argument("run_id")
    show.add_argument("--namespace", default=None)

    hard_hit = sub.add_parser("hard-hit", help="Most requested endpoints")
    hard_hit.add_argument("--days", type=int, default=7)
    hard_hit.add_argument(
        "--column", choices=["url", "canonical_url"], default="url"
    )
    hard_hit.add_argument("--limit", type=int, default=25)

    stats = sub.add_parser("stats", help="Comparative statistics for a URL")
    stats.add_argument("url")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.verbose)
    settings = load_settings(args.config)

    with RunRepository.from_settings(settings) as repo:
        if args.command == "init-db":
            create_schema(repo.adapter.engine)
            logger.info("Created tables in %s", settings.db_url)
        elif args.command == "show":
            result = repo.get_run(args.run_id, args.namespace)
            if not result.found:
                logger.error("Run %s not found", args.run_id)
                return 1
            print(result.description)
            print(json.dumps(result.metadata, indent=2, default=str))
            print(json.dumps(result.comparative, indent=2, default=str))
        elif args.command == "hard-hit":
            rows = repo.get_hard_hit(
                args.days, column=args.column, criteria={"limit": args.limit}
            )
            df = pandas.DataFrame([dict(row) for row in rows.mappings()])
            print(df.to_string(index=False) if not df.empty else "No runs")
        elif args.command == "stats":
            stats = comparative_stats(repo.adapter, args.url, repo.normalizer(args.url))
            print(pandas.DataFrame(stats).to_string())
    return 0


if __name__ == "__main__":
    sys.exit(main())
