"""
CLI entry point for answercache diagnostics.

Usage:
    answercache normalize --query "How do I create a dashboard?"
    answercache similarity --query1 "..." --query2 "..." [--threshold 0.7]
    answercache stats
    answercache clear
"""

import argparse
import json
import logging
import sys

from answercache.cache.factory import build_response_cache
from answercache.cache.normalizer import QueryNormalizer
from answercache.config import get_settings


def _configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.logging.level.upper(), logging.INFO),
        format=settings.logging.format,
    )


def cmd_normalize(args):
    """Show the canonical form, tokens and cache key of one query."""
    normalizer = QueryNormalizer()
    canonical = normalizer.normalize(args.query)
    print(json.dumps({
        "original": args.query,
        "normalized": canonical,
        "tokens": normalizer.get_tokens_for_debug(args.query),
        "cache_key": normalizer.generate_cache_key(canonical),
    }, indent=2))


def cmd_similarity(args):
    """Compare two queries the way the fuzzy cache would."""
    threshold = args.threshold
    if threshold is None:
        threshold = get_settings().cache.similarity_threshold
    result = QueryNormalizer().compare_queries(args.query1, args.query2, threshold)
    print(json.dumps(result, indent=2))


def cmd_stats(args):
    """Print statistics of a freshly built cache and the Redis liveness."""
    cache = build_response_cache()
    stats = cache.get_stats()
    stats["l2_available"] = cache.is_distributed_available()
    print(json.dumps(stats, indent=2))


def cmd_clear(args):
    """Flush the shared cache tier (and this process's empty local tier)."""
    cache = build_response_cache()
    if not cache.distributed_enabled:
        print("Redis tier is disabled; nothing shared to clear.")
        return
    cache.clear()
    print("All caches cleared")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="answercache - tiered fuzzy response cache tools"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    p_norm = subparsers.add_parser("normalize", help="Normalize a single query")
    p_norm.add_argument("--query", required=True, help="Raw query text")

    p_sim = subparsers.add_parser("similarity", help="Compare two queries")
    p_sim.add_argument("--query1", required=True)
    p_sim.add_argument("--query2", required=True)
    p_sim.add_argument("--threshold", type=float, default=None,
                       help="Similarity threshold (default from config)")

    subparsers.add_parser("stats", help="Show cache statistics")
    subparsers.add_parser("clear", help="Flush the shared cache tier")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    _configure_logging()

    commands = {
        "normalize": cmd_normalize,
        "similarity": cmd_similarity,
        "stats": cmd_stats,
        "clear": cmd_clear,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
