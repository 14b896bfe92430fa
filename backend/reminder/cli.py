"""CLI for running and inspecting the reminder service."""
import argparse
import json
import sys
from typing import Any, Dict, Optional, Sequence

from pydantic import ValidationError

from reminder.core.config import RecurrenceConfig, Settings, get_settings
from reminder.core.logging_config import SensitiveDataFilter


def _apply_overrides(settings: Settings, args) -> Settings:
    recurrence: Dict[str, Any] = {}
    if args.interval is not None:
        recurrence["interval"] = args.interval
    if args.batch_size is not None:
        recurrence["batch_size"] = args.batch_size
    if args.min_elapsed is not None:
        recurrence["min_elapsed"] = args.min_elapsed

    update: Dict[str, Any] = {}
    if recurrence:
        merged = {**settings.recurrence.model_dump(), **recurrence}
        update["recurrence"] = RecurrenceConfig.model_validate(merged)

    metrics_update: Dict[str, Any] = {}
    if args.metrics_address is not None:
        metrics_update["address"] = args.metrics_address
    if args.no_metrics:
        metrics_update["enabled"] = False
    if metrics_update:
        update["metrics"] = settings.metrics.model_copy(update=metrics_update)

    return settings.model_copy(update=update) if update else settings


def _mask_secrets(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: ("***" if k == "password" and v else _mask_secrets(v))
            for k, v in value.items()
        }
    if isinstance(value, str):
        return SensitiveDataFilter.mask(value)
    return value


def cmd_start(args) -> int:
    """Start sending reminders."""
    from reminder.main import main as run_main

    try:
        settings = _apply_overrides(get_settings(), args)
    except ValidationError as e:
        print(f"invalid configuration: {e}", file=sys.stderr)
        return 2
    return run_main(settings)


def cmd_show_config(args) -> int:
    """Print the effective configuration with secrets masked."""
    try:
        settings = _apply_overrides(get_settings(), args)
    except ValidationError as e:
        print(f"invalid configuration: {e}", file=sys.stderr)
        return 2
    print(json.dumps(_mask_secrets(settings.model_dump(mode="json")), indent=2))
    return 0


def _add_overrides(parser: argparse.ArgumentParser):
    parser.add_argument("--interval", help="Tick period, e.g. 1h or 30m")
    parser.add_argument("--batch-size", type=int, help="Maximum repositories fetched per tick")
    parser.add_argument("--min-elapsed", help="Minimum age of the oldest evaluation, e.g. 1h")
    parser.add_argument("--metrics-address", help="host:port for the metrics server")
    parser.add_argument("--no-metrics", action="store_true", help="Disable the metrics server")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="reminder", description="Send reminders to re-evaluate stale repositories")
    sub = p.add_subparsers(dest="cmd")

    start = sub.add_parser("start", help="Start the reminder")
    _add_overrides(start)
    start.set_defaults(func=cmd_start)

    show = sub.add_parser("show-config", help="Print the effective configuration")
    _add_overrides(show)
    show.set_defaults(func=cmd_show_config)
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 1
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
