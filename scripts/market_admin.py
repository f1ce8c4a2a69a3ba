from __future__ import annotations

import argparse
import sys
from pathlib import Path

import yaml

# Ensure project root is importable when running as a standalone script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from marketbot.config.runtime import get_all_app_configs, get_app_config, set_app_config
from marketbot.config.settings import CATALOG_PATH
from marketbot.core.document import patch_file_values
from marketbot.core.errors import MarketError
from marketbot.db import get_rotation_log, init_db
from marketbot.services.market_state import RotationState
from marketbot.services.rotation import build_rotation_engine, perform_revert, perform_rotation


def _print_state(label: str, state: RotationState | None) -> None:
    if state is None:
        print(f"{label}: none")
        return
    print(f"{label}: as of {state.as_of}")
    for entry in state.active:
        print(f"  + {entry.quantity}x {entry.item} for {entry.price} {entry.currency}")
    for entry in state.retired:
        print(f"  - {entry.item} (was {entry.quantity}x for {entry.price})")


def _cmd_rotate(_args: argparse.Namespace) -> int:
    result = perform_rotation()
    _print_state("rotated", result.state)
    print(f"{result.changed_count} item(s) changed.")
    return 0


def _cmd_revert(_args: argparse.Namespace) -> int:
    state = perform_revert()
    _print_state("restored", state)
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    engine = build_rotation_engine()
    _print_state("current", engine.current_state())
    _print_state("previous", engine.previous_state() if engine.history.has_previous() else None)
    rows = get_rotation_log(args.limit)
    if rows:
        print("history:")
    for row in rows:
        print(f"  {row['created_at']}  {row['action']:<6}  {row['as_of']}  {row['changed_count']} item(s)")
    return 0


def _cmd_set(args: argparse.Namespace) -> int:
    segments = [s for s in str(args.path).split(args.separator) if s]
    if not segments:
        print("Empty key path.", file=sys.stderr)
        return 2
    value = args.value if args.raw else yaml.safe_load(args.value)
    data: dict = {segments[-1]: value}
    patch_file_values(args.file, segments[:-1], data)
    print(f"Updated {'.'.join(segments)} in {args.file}.")
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    if args.name and not args.value:
        print(f"{args.name} = {get_app_config(args.name)}")
        return 0
    if args.name:
        value = set_app_config(args.name, args.value)
        print(f"{args.name} = {value}")
        return 0
    for row in get_all_app_configs():
        print(f"{row['name']:<24} {row['value']!s:<16} default={row['default']}  {row['description']}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Operate the dynamic market rotation from a shell.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("rotate", help="Buff a new set of items.").set_defaults(func=_cmd_rotate)
    sub.add_parser("revert", help="Undo the last rotation.").set_defaults(func=_cmd_revert)

    status = sub.add_parser("status", help="Show current and previous rotation.")
    status.add_argument("--limit", type=int, default=5, help="History rows to show.")
    status.set_defaults(func=_cmd_status)

    set_cmd = sub.add_parser("set", help="Rewrite one scalar in the trade config, keeping its formatting.")
    set_cmd.add_argument("path", help="Key path, e.g. settings.title")
    set_cmd.add_argument("value", help="New value; parsed as YAML unless --raw.")
    set_cmd.add_argument("--raw", action="store_true", help="Store the value as a plain string.")
    set_cmd.add_argument("--separator", default=".", help="Key path separator. Default: '.'")
    set_cmd.add_argument("--file", default=str(CATALOG_PATH), help="Document to patch.")
    set_cmd.set_defaults(func=_cmd_set)

    config = sub.add_parser("config", help="List runtime config, or set NAME VALUE.")
    config.add_argument("name", nargs="?", default="")
    config.add_argument("value", nargs="?", default="")
    config.set_defaults(func=_cmd_config)

    args = parser.parse_args()
    init_db()
    try:
        return int(args.func(args))
    except (MarketError, KeyError, OSError, ValueError, yaml.YAMLError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
