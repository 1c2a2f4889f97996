"""
RoomSync CLI - Admin console on the command line.

Usage:
    roomsync create <theme_id>            Create a session
    roomsync start <session_id>           Start a session
    roomsync jump <session_id> <n>        Jump to puzzle n
    roomsync status <session_id>          Show session and device state
    roomsync list                         List sessions
    roomsync validate                     Check the puzzle catalog
    roomsync serve                        Run the API server

Sessions are kept in a JSON file (ROOMSYNC_STORE_PATH or --store) and
themes/puzzles are read from a JSON catalog (ROOMSYNC_CATALOG_PATH or
--catalog).
"""

import argparse
import asyncio
import logging
import sys

from .catalog import JsonFileCatalog, validate_catalog
from .config import Settings
from .errors import RoomSyncError
from .session import SessionController
from .store import FileSessionStore


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="RoomSync - Escape room session coordination",
        prog="roomsync",
    )
    parser.add_argument("--store", help="Session store file (default ~/.roomsync/sessions.json)")
    parser.add_argument("--catalog", help="Puzzle catalog JSON file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    create_parser = subparsers.add_parser("create", help="Create a session")
    create_parser.add_argument("theme_id", help="Theme to play")
    create_parser.add_argument("--code", help="Join code (generated if omitted)")

    start_parser = subparsers.add_parser("start", help="Start a pending session")
    start_parser.add_argument("session_id")
    start_parser.add_argument(
        "--require-devices", action="store_true",
        help="Refuse to start while a device role has no live device",
    )

    for name, help_text in [
        ("pause", "Pause a session"),
        ("resume", "Resume a paused session"),
        ("end", "End a session"),
        ("reset", "Reset to the first puzzle"),
        ("ending", "Jump to the ending"),
        ("resync", "Make every device replay its video"),
        ("resync-triggers", "Rebuild device state at the current puzzle"),
        ("status", "Show a session"),
        ("delete", "Delete a session"),
    ]:
        command_parser = subparsers.add_parser(name, help=help_text)
        command_parser.add_argument("session_id")

    jump_parser = subparsers.add_parser("jump", help="Jump to a puzzle")
    jump_parser.add_argument("session_id")
    jump_parser.add_argument("target", type=int, help="Puzzle sequence number")

    subparsers.add_parser("list", help="List sessions")

    validate_parser = subparsers.add_parser("validate", help="Check the puzzle catalog")
    validate_parser.add_argument("theme_id", nargs="?", help="Only this theme")

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "create": cmd_create,
        "start": cmd_start,
        "pause": cmd_pause,
        "resume": cmd_resume,
        "end": cmd_end,
        "reset": cmd_reset,
        "jump": cmd_jump,
        "ending": cmd_ending,
        "resync": cmd_resync,
        "resync-triggers": cmd_resync_triggers,
        "status": cmd_status,
        "delete": cmd_delete,
        "list": cmd_list,
        "validate": cmd_validate,
        "serve": cmd_serve,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    try:
        command(args)
    except RoomSyncError as e:
        print(f"Error: {e.message}")
        sys.exit(1)


def load_settings(args) -> Settings:
    settings = Settings.from_env()
    if args.store:
        settings.store_path = args.store
    if args.catalog:
        settings.catalog_path = args.catalog
    return settings


def make_controller(args) -> SessionController:
    settings = load_settings(args)
    if not settings.catalog_path:
        print("Error: no catalog (set ROOMSYNC_CATALOG_PATH or pass --catalog)")
        sys.exit(1)
    return SessionController(
        store=FileSessionStore(settings.store_path),
        catalog_source=JsonFileCatalog(settings.catalog_path),
        settings=settings,
    )


def print_session(session):
    print(f"Session: {session.session_id}")
    print(f"  Theme:   {session.theme_id}")
    print(f"  Code:    {session.join_code}")
    print(f"  Status:  {session.status.value}")
    print(f"  Puzzle:  {session.current_puzzle}")
    print(f"  Solved:  {', '.join(sorted(session.solved)) or '-'}")
    for role, record in sorted(session.devices.items()):
        media = ", ".join(f"{k}={v}" for k, v in record.media.to_dict().items() if v) or "-"
        print(f"  [{role}] {record.status.value}  {media}")


def cmd_create(args):
    """Create a session."""
    controller = make_controller(args)
    session = asyncio.run(controller.create(args.theme_id, join_code=args.code))
    print_session(session)


def cmd_start(args):
    controller = make_controller(args)
    session = asyncio.run(
        controller.start(args.session_id, require_all_devices=args.require_devices)
    )
    print_session(session)


def cmd_pause(args):
    print_session(asyncio.run(make_controller(args).pause(args.session_id)))


def cmd_resume(args):
    print_session(asyncio.run(make_controller(args).resume(args.session_id)))


def cmd_end(args):
    print_session(asyncio.run(make_controller(args).end(args.session_id)))


def cmd_reset(args):
    print_session(asyncio.run(make_controller(args).reset(args.session_id)))


def cmd_jump(args):
    print_session(asyncio.run(make_controller(args).jump(args.session_id, args.target)))


def cmd_ending(args):
    print_session(asyncio.run(make_controller(args).jump_to_ending(args.session_id)))


def cmd_resync(args):
    print_session(asyncio.run(make_controller(args).resync(args.session_id)))


def cmd_resync_triggers(args):
    print_session(asyncio.run(make_controller(args).resync_triggers(args.session_id)))


def cmd_status(args):
    print_session(asyncio.run(make_controller(args).get(args.session_id)))


def cmd_delete(args):
    asyncio.run(make_controller(args).delete(args.session_id))
    print(f"Deleted session {args.session_id}")


def cmd_list(args):
    """List sessions, newest first."""
    sessions = asyncio.run(make_controller(args).list_sessions())
    if not sessions:
        print("No sessions")
        return
    for session in sessions:
        print(
            f"{session.session_id}  {session.join_code}  {session.theme_id:<16} "
            f"{session.status.value:<8} puzzle {session.current_puzzle}"
        )


def cmd_validate(args):
    """Validate the puzzle catalog."""
    settings = load_settings(args)
    if not settings.catalog_path:
        print("Error: no catalog (set ROOMSYNC_CATALOG_PATH or pass --catalog)")
        sys.exit(1)
    source = JsonFileCatalog(settings.catalog_path)

    async def check():
        theme_ids = [args.theme_id] if args.theme_id else [t.theme_id for t in source.list_themes()]
        failed = False
        for theme_id in theme_ids:
            catalog = await source.load(theme_id)
            result = validate_catalog(catalog)
            print(f"{theme_id}: {'ok' if result.valid else 'INVALID'} "
                  f"({len(catalog.puzzles)} puzzles, {len(catalog.trigger_puzzles())} triggers)")
            for error in result.errors:
                print(f"  error: {error}")
            for warning in result.warnings:
                print(f"  warning: {warning}")
            failed = failed or not result.valid
        return failed

    if asyncio.run(check()):
        sys.exit(1)


def cmd_serve(args):
    """Run the API server."""
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn not installed. Install with: pip install uvicorn")
        sys.exit(1)

    from .api import APIService, build_controller, create_app

    app = create_app(APIService(build_controller(load_settings(args))))
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
