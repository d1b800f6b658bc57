"""Diagnostic CLI for a deployed EFK logging stack.

Expects the search and dashboard services to be reachable, e.g. through
``kubectl port-forward``.

Usage:
    python -m efkcheck.cli_diagnose health
    python -m efkcheck.cli_diagnose indices
    python -m efkcheck.cli_diagnose verify-log --host rel-coherence --field log "Started"
    python -m efkcheck.cli_diagnose index-pattern 6abb1220-3feb-11e9-a9a3-4b1c09db6e6a
"""

import argparse
import sys

from efkcheck.eventually import ConditionTimeoutError, RetryPolicy, assert_eventually
from efkcheck.logging_config import configure_module_logging
from efkcheck.probes import (
    index_pattern_probe,
    index_pattern_with_id,
    log_records_probe,
    records_matching,
)
from efkcheck.search import DashboardClient, SearchClient, SearchError

logger = configure_module_logging("cli_diagnose")

DEFAULT_SEARCH_URL = "http://localhost:9200"
DEFAULT_DASHBOARD_URL = "http://localhost:5601"


def _banner(title: str):
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)


def cmd_health(search_url: str, dashboard_url: str) -> int:
    """Check search and dashboard reachability."""
    _banner("EFK STACK HEALTH CHECK")

    with SearchClient(search_url) as search:
        search_ok = search.is_alive()
    print(f"\n[Search]\n  {search_url}: {'✓ HEALTHY' if search_ok else '✗ UNREACHABLE'}")

    with DashboardClient(dashboard_url) as dashboard:
        dashboard_ok = dashboard.is_alive()
    print(
        f"\n[Dashboard]\n  {dashboard_url}: "
        f"{'✓ HEALTHY' if dashboard_ok else '✗ UNREACHABLE'}"
    )

    print("\n" + "=" * 70)
    if search_ok and dashboard_ok:
        print("✓ Logging stack is reachable")
        print("=" * 70 + "\n")
        return 0
    print("✗ Logging stack has issues. See details above.")
    print("=" * 70 + "\n")
    return 1


def cmd_indices(search_url: str) -> int:
    """List indices known to the search service."""
    _banner("SEARCH INDICES")

    try:
        with SearchClient(search_url) as search:
            lines = search.cat_indices()
    except SearchError as e:
        logger.error(f"Failed to list indices: {e}")
        print(f"\n✗ Failed to list indices: {e}\n")
        return 1

    print()
    if lines:
        for line in lines:
            print(f"  {line}")
    else:
        print("  (none found)")
    print()
    return 0


def cmd_verify_log(
    search_url: str,
    index: str,
    field: str,
    keywords,
    host: str,
    host_field: str,
    policy: RetryPolicy,
) -> int:
    """Wait for a log record to become searchable."""
    _banner("VERIFY LOG RECORD")
    print(f"\n  Index fragment: {index}")
    print(f"  Host: {host_field}={host}")
    print(f"  {field} contains any of: {keywords}")
    print(f"  Timeout: {policy.timeout:g}s (every {policy.sleep_interval:g}s)")

    with SearchClient(search_url) as search:

        def resolve_index() -> str:
            name = search.find_index(index)
            if name is None:
                raise LookupError(f"no index matching {index!r}")
            return name

        try:
            records = assert_eventually(
                log_records_probe(search, resolve_index, field, keywords, host_field, host),
                records_matching(host, keywords),
                policy,
                description="Log record not found",
            )
        except ConditionTimeoutError as e:
            print(f"\n✗ {e}\n")
            return 1

    print(f"\n✓ Found {len(records)} record(s):")
    for record in records[:10]:
        print(f"  - {record}")
    print()
    return 0


def cmd_index_pattern(dashboard_url: str, pattern_id: str, policy: RetryPolicy) -> int:
    """Wait for a dashboard index pattern to exist."""
    _banner("INDEX PATTERN")

    with DashboardClient(dashboard_url) as dashboard:
        try:
            pattern = assert_eventually(
                index_pattern_probe(dashboard, pattern_id),
                index_pattern_with_id(pattern_id),
                policy,
                description="Index pattern not provisioned",
            )
        except ConditionTimeoutError as e:
            print(f"\n✗ {e}\n")
            return 1

    title = pattern.attributes.get("title", "(untitled)")
    print(f"\n✓ {pattern.id}: {title}\n")
    return 0


def _positive_seconds(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0: {value}")
    return seconds


def _add_policy_arguments(parser):
    parser.add_argument(
        "--timeout",
        type=_positive_seconds,
        default=60.0,
        help="Seconds to wait (default: 60)",
    )
    parser.add_argument(
        "--retry",
        type=_positive_seconds,
        default=10.0,
        help="Seconds between attempts (default: 10)",
    )


def _policy(args) -> RetryPolicy:
    return RetryPolicy(retry_interval=args.retry, timeout=args.timeout)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="efkcheck Diagnostics - Inspect a deployed EFK logging stack",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m efkcheck.cli_diagnose health
  python -m efkcheck.cli_diagnose indices --search-url http://localhost:9200
  python -m efkcheck.cli_diagnose verify-log --host rel-coherence --field log "Started"
  python -m efkcheck.cli_diagnose index-pattern cloud-*
        """,
    )
    parser.add_argument("--search-url", default=DEFAULT_SEARCH_URL)
    parser.add_argument("--dashboard-url", default=DEFAULT_DASHBOARD_URL)

    subparsers = parser.add_subparsers(dest="command", help="Diagnostic command")

    subparsers.add_parser("health", help="Check search and dashboard reachability")
    subparsers.add_parser("indices", help="List search indices")

    verify = subparsers.add_parser("verify-log", help="Wait for a log record")
    verify.add_argument("keywords", nargs="+", help="Keywords (any may match)")
    verify.add_argument("--host", required=True, help="Host (or member) value")
    verify.add_argument("--field", default="log", help="Record field (default: log)")
    verify.add_argument(
        "--index", default="coherence-cluster-", help="Index name fragment"
    )
    verify.add_argument("--host-field", default="host", help="Host field name")
    _add_policy_arguments(verify)

    pattern = subparsers.add_parser("index-pattern", help="Wait for an index pattern")
    pattern.add_argument("pattern_id", help="Saved object id")
    _add_policy_arguments(pattern)

    args = parser.parse_args(argv)

    if args.command == "health":
        return cmd_health(args.search_url, args.dashboard_url)
    elif args.command == "indices":
        return cmd_indices(args.search_url)
    elif args.command == "verify-log":
        return cmd_verify_log(
            args.search_url,
            args.index,
            args.field,
            args.keywords,
            args.host,
            args.host_field,
            _policy(args),
        )
    elif args.command == "index-pattern":
        return cmd_index_pattern(args.dashboard_url, args.pattern_id, _policy(args))
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
