# entrypoint.py
import argparse
import asyncio
import sys
from typing import List, Optional
from config.settings import settings
from core.entities import SnapshotContext
from core.locks import LockRegistry
from service.snapshot_lifecycle_service import SnapshotLifecycleManager
from service.supervisor_service import BackendSupervisor
from util.errors import SnapshotFatalError
from util.logger import init_logger

EXIT_FATAL = 1
EXIT_COMMAND_NOT_FOUND = 127


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="serena-edge-entrypoint",
        description=(
            "Restore SERENA_HOME from the snapshot store, run the backend server, "
            "snapshot periodically and once more on shutdown."
        ),
    )
    parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        help="backend server command line, e.g. -- serena start-mcp-server --transport streamable-http",
    )
    args = parser.parse_args(argv)
    if args.command and args.command[0] == "--":
        args.command = args.command[1:]
    if not args.command:
        parser.error("a backend command is required")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logger = init_logger(role="entrypoint", stream=sys.stderr)

    context = SnapshotContext.from_settings(settings)
    manager = SnapshotLifecycleManager(context, locks=LockRegistry())
    supervisor = BackendSupervisor(args.command, manager)

    try:
        return asyncio.run(supervisor.run())
    except SnapshotFatalError as e:
        logger.error("entrypoint.abort reason=%s", e)
        return EXIT_FATAL
    except FileNotFoundError as e:
        logger.error("entrypoint.command_not_found command=%s err=%s", args.command[0], e)
        return EXIT_COMMAND_NOT_FOUND


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
