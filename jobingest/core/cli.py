from __future__ import annotations

import argparse
import json
import sys

from jobingest.core.orchestrator import IngestionOrchestrator
from jobingest.utils.config import ConfigError, load_config
from jobingest.utils.logging_utils import setup_logging, stderr_stream


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="jobingest", description="Scrape job boards and store deduplicated postings")
    parser.add_argument("--config", default="config.yaml")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--verbose", action="store_true", help="also log to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="scrape, deduplicate and store postings")
    run.add_argument("--source", action="append", dest="sources", metavar="NAME", help="limit to one source; repeatable")
    run.add_argument("--force-refresh", action="store_true", help="rewrite stored postings even when unchanged")
    sub.add_parser("health", help="check every source's base page")
    sub.add_parser("stats", help="show stored job, duplicate and scraper statistics")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    setup_logging(config.get("log_dir", "data/logs"), args.log_level, stderr_stream(args.verbose))

    try:
        orchestrator = IngestionOrchestrator(config)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    try:
        if args.command == "run":
            counts = orchestrator.run(args.sources, force_refresh=args.force_refresh)
            print("Run complete:", counts)
            return 1 if counts["sources_failed"] and not counts["scraped"] else 0
        if args.command == "health":
            health = orchestrator.health()
            for name, ok in health.items():
                print(f"{name}: {'ok' if ok else 'unhealthy'}")
            return 0 if all(health.values()) else 1
        print(json.dumps(orchestrator.stats(), indent=2, default=str))
        return 0
    finally:
        orchestrator.close()


if __name__ == "__main__":
    raise SystemExit(main())
