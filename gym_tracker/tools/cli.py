"""
Command line access to the tool boundary.

Usage examples:
    # Create tables in a fresh database
    python -m gym_tracker.tools.cli init-db

    # Check that the database is reachable
    python -m gym_tracker.tools.cli check-db

    # List tools with their input schemas
    python -m gym_tracker.tools.cli list-tools

    # Call one tool as user 1
    python -m gym_tracker.tools.cli call log_workout --user-id 1 \\
        --params '{"exercise": "bench press", "sets": 3, "reps": 8, "weight": 80}'
"""
import argparse
import asyncio
import json
import sys

from gym_tracker.config.settings import get_settings
from gym_tracker.core.logging import configure_logging
from gym_tracker.db.database import check_database_health, close_all_engines, init_db
from gym_tracker.tools.dispatcher import dispatch, list_tools


def _print(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def init_db_command(args) -> int:
    await init_db()
    print("Database tables ensured")
    return 0


async def check_db_command(args) -> int:
    if await check_database_health():
        print("Database reachable")
        return 0
    print("Database unreachable")
    return 1


async def list_tools_command(args) -> int:
    _print(list_tools())
    return 0


async def call_command(args) -> int:
    if args.file:
        with open(args.file, "r") as f:
            params = json.load(f)
    else:
        params = json.loads(args.params or "{}")

    result = await dispatch(args.tool, params, args.user_id)
    _print(result)
    return 1 if "error" in result and "code" in result else 0


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Gym tracker tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create all tables").set_defaults(func=init_db_command)
    subparsers.add_parser("check-db", help="Check database connectivity").set_defaults(func=check_db_command)
    subparsers.add_parser("list-tools", help="List tools and their input schemas").set_defaults(
        func=list_tools_command
    )

    call_parser = subparsers.add_parser("call", help="Call one tool and print its JSON result")
    call_parser.add_argument("tool", help="Tool name, e.g. log_workout")
    call_parser.add_argument("--params", "-p", help="Tool parameters as a JSON object")
    call_parser.add_argument("--file", "-f", help="JSON file with the tool parameters")
    call_parser.add_argument(
        "--user-id",
        "-u",
        type=int,
        default=get_settings().default_user_id,
        help="Caller's user id",
    )
    call_parser.set_defaults(func=call_command)

    return parser


async def run(args) -> int:
    try:
        return await args.func(args)
    finally:
        await close_all_engines()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for CLI."""
    configure_logging()
    args = create_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
