"""Operator CLI for the performance trend engine.

Usage:
    python -m trendwatch.cli analyze [--route /ilan/42] [--period 24h]
    python -m trendwatch.cli alerts
    python -m trendwatch.cli generate
    python -m trendwatch.cli resolve alert_1700000000000_ab12cd34e
    python -m trendwatch.cli summary
    python -m trendwatch.cli history /ilan/42 [--period 7d]

Output is JSON on stdout.
"""

import argparse
import asyncio
import json
import logging
import sys

from trendwatch.errors import TrendwatchError
from trendwatch.trends.models import PERIODS
from trendwatch.trends.service import PerformanceTrendService, build_service

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trendwatch", description="Performance trend analysis and alerting")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Compute trends for one or all routes")
    analyze.add_argument("--route", default=None)
    analyze.add_argument("--period", choices=PERIODS, default=None)

    sub.add_parser("alerts", help="List unresolved alerts")
    sub.add_parser("generate", help="Generate alerts from current trends")

    resolve = sub.add_parser("resolve", help="Mark an alert resolved")
    resolve.add_argument("alert_id")

    sub.add_parser("summary", help="Print the performance summary")

    history = sub.add_parser("history", help="Print a route's history within a period")
    history.add_argument("route")
    history.add_argument("--period", choices=PERIODS, default=None)

    return parser


async def run(args: argparse.Namespace, service: PerformanceTrendService) -> object:
    """Dispatch a parsed command to the service and return its JSON-able result."""
    if args.command == "analyze":
        return await service.analyze_trends(args.route, args.period)
    if args.command == "alerts":
        return await service.get_active_alerts()
    if args.command == "generate":
        return await service.generate_alerts()
    if args.command == "resolve":
        await service.resolve_alert(args.alert_id)
        return {"alertId": args.alert_id, "resolved": True}
    if args.command == "summary":
        return await service.get_performance_summary()
    if args.command == "history":
        return await service.get_route_history(args.route, args.period)
    msg = f"Unknown command: {args.command}"
    raise ValueError(msg)


async def _main(args: argparse.Namespace) -> int:
    service = build_service()
    try:
        result = await run(args, service)
    except TrendwatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await service.store.close()

    print(json.dumps(result, indent=2))
    return 0


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and run one command."""
    args = _build_parser().parse_args(argv)
    sys.exit(asyncio.run(_main(args)))


if __name__ == "__main__":
    main()
