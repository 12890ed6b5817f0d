#!/usr/bin/env python3
"""Command-line host for the SpotiSearch query handler."""

import argparse
import json
import sys
from typing import List, Optional

from .config import ConfigManager
from .config_schema import SpotiSearchConfig
from .services import ServiceResult
from .services.search_service import ResultItem, SearchService
from .utils.logger import setup_logging
from .version import get_app_info


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="spotisearch", description=get_app_info())
    parser.add_argument("--home", help="Configuration directory (default: $SPOTISEARCH_HOME or ~/.spotisearch)")
    parser.add_argument("--json", dest="as_json", action="store_true", help="Print machine-readable output")
    parser.add_argument("--log-level", help="Override the configured log level")
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Search tracks")
    search.add_argument("query", nargs="+")
    search.add_argument("--limit", type=int, help="Number of results (1-50)")

    play = sub.add_parser("play", help="Play the best match for a query")
    play.add_argument("query", nargs="+")
    play.add_argument("--device", help="Device id to play on instead of the automatic choice")

    queue = sub.add_parser("queue", help="Queue the best match for a query")
    queue.add_argument("query", nargs="+")

    sub.add_parser("devices", help="List available playback devices")
    sub.add_parser("test-connection", help="Check credentials against Spotify")
    return parser.parse_args(argv)


def _print_result(result: ServiceResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return

    if isinstance(result.data, list):
        for item in result.items:
            if isinstance(item, ResultItem):
                print(f"{item.text} - {item.subtext}")
                for action in item.actions:
                    print(f"    [{action.id}] {action.text}")
            else:
                print(item)
    if result.message:
        stream = sys.stdout if result.success else sys.stderr
        print(result.message, file=stream)


def _first_track_action(
    service: SearchService, query: str, action_id: str, device_id: Optional[str] = None
) -> ServiceResult:
    result = service.handle_query(query)
    if not result.success:
        return result
    if not result.data:
        return ServiceResult(success=False, message=f"No tracks found for '{query}'", error_code="NOT_FOUND")
    actions = {action.id: action for action in result.data[0].actions}
    if action_id in actions:
        return actions[action_id]()
    if device_id and any(d.id == device_id and d.is_active for d in service.client.get_devices()):
        # The active device has no play_on action; the default play targets it
        return actions["play"]()
    return ServiceResult(success=False, message=f"Action '{action_id}' not available", error_code="NO_ACTION")


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    manager = ConfigManager(args.home)
    config = manager.load_config()
    setup_logging(args.log_level or config.log_level)

    service = SearchService.create(manager, on_notice=lambda text: print(text, file=sys.stderr))
    try:
        if args.command == "search":
            if args.limit is not None:
                try:
                    service.config = SpotiSearchConfig(**{**service.config.to_dict(), "number_of_results": args.limit})
                except ValueError as e:
                    print(e, file=sys.stderr)
                    return 2
            result = service.handle_query(" ".join(args.query))
        elif args.command == "play":
            action_id = f"play_on_{args.device}" if args.device else "play"
            result = _first_track_action(service, " ".join(args.query), action_id, args.device)
        elif args.command == "queue":
            result = _first_track_action(service, " ".join(args.query), "queue")
        elif args.command == "devices":
            session = service.ensure_session()
            if session.success:
                devices = service.client.get_devices()
                result = ServiceResult(
                    success=True,
                    data=[f"{d.id}  {d.type:<12} {d.name}{'  (active)' if d.is_active else ''}" for d in devices],
                    message=f"Found {len(devices)} devices",
                )
            else:
                result = session
        else:
            result = service.test_connection()
    finally:
        service.close()

    _print_result(result, args.as_json)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
