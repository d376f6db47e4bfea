#!/usr/bin/env python3
"""
configkey-py CLI Entry Point

Runs one config-key command against a single-node local cluster backed by a
SQLite store.
"""

import sys
import argparse
import logging
import asyncio
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from .cluster import LocalCluster
from .config import ServiceConfig
from .store import SqliteEngine


DEFAULT_DB = ".configkey/store.sqlite"

COMMANDS = ["get", "put", "set", "del", "rm", "exists", "list", "ls", "dump"]


def build_cmdmap(command: str, key: Optional[str], value: Optional[str]) -> dict:
    """Build the command map for a CLI invocation."""
    cmd = {"prefix": f"config-key {command}"}
    if key is not None:
        cmd["key"] = key
    if value is not None:
        cmd["val"] = value
    return cmd


async def run_command(args: argparse.Namespace) -> int:
    """
    Run a single config-key command.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    db_path = Path(args.db or DEFAULT_DB)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    data = b""
    if args.input:
        data = Path(args.input).read_bytes()

    config = ServiceConfig.from_env(max_entry_size=args.max_entry_size, tick_interval=0)
    engine = SqliteEngine(str(db_path))
    cluster = LocalCluster(engine, config=config)
    cluster.start(epoch=1)
    try:
        reply = await cluster.run_command(
            build_cmdmap(args.command, args.key, args.value), data=data
        )
    finally:
        cluster.shutdown()
        engine.close()

    if reply.data:
        sys.stdout.buffer.write(reply.data)
        sys.stdout.flush()
    if reply.status:
        print(reply.status, file=sys.stderr)
    return 0 if reply.ok else 1


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        prog="configkey",
        description="Quorum-coordinated config-key store",
    )
    parser.add_argument(
        "--db",
        help=f"Path to SQLite database (default: {DEFAULT_DB})",
    )
    parser.add_argument(
        "--max-entry-size",
        type=int,
        default=None,
        help="Maximum value size in bytes (default: CONFIGKEY_MAX_ENTRY_SIZE or 65536)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument("command", choices=COMMANDS, help="Config-key operation")
    parser.add_argument("key", nargs="?", help="Key (prefix for dump)")
    parser.add_argument("value", nargs="?", help="Value for put/set")
    parser.add_argument("-i", "--input", help="Read the put/set value from a file")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        sys.exit(asyncio.run(run_command(args)))
    except ValidationError as e:
        print(f"❌ invalid configuration: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
