"""Command line entry point for stream-to-mongo.

Usage:
    stream-to-mongo INPUT [--db-url URL] [--collection NAME] [--batch-size N]
                          [--operation {insert,update,delete}] [--index-name FIELD]

Options not given on the command line are read from ``STREAM_TO_MONGO_*``
environment variables. The final metrics are printed as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Callable, Sequence

from stream_to_mongo.errors import ConfigError, StreamToMongoError
from stream_to_mongo.models import OperationType, WriterConfig
from stream_to_mongo.sources import iter_json_records
from stream_to_mongo.stream import stream_to_mongo

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def _loop_factory() -> Callable[[], asyncio.AbstractEventLoop] | None:
    # uvloop is not available on Windows; fall back to the default loop
    if sys.platform == "win32":
        return None
    try:
        import uvloop
    except ImportError:
        # Install with: pip install stream-to-mongo[performance]
        return None
    return uvloop.new_event_loop


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="stream-to-mongo",
        description="Stream JSON records into a MongoDB collection in batches.",
    )
    parser.add_argument("input", help="JSON array or newline-delimited JSON file")
    parser.add_argument("--db-url", help="mongodb://host:port/databaseName")
    parser.add_argument("--collection", help="Target collection")
    parser.add_argument("--database", help="Database name, overrides the one in --db-url")
    parser.add_argument("--batch-size", type=int, help="Records per bulk write (default: 1)")
    parser.add_argument(
        "--operation",
        choices=[op.value for op in OperationType],
        help="Operation applied to each record (default: insert)",
    )
    parser.add_argument("--index-name", help="Match field for update and delete")
    parser.add_argument(
        "--ordered",
        action="store_true",
        default=None,
        help="Stop each bulk write at its first failing request",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    return parser


async def run(args: argparse.Namespace) -> int:
    """Run one stream and print its metrics.

    Args:
        args: Parsed command line arguments.

    Returns:
        Process exit status.
    """
    try:
        config = WriterConfig.from_env(
            db_url=args.db_url,
            collection=args.collection,
            database=args.database,
            batch_size=args.batch_size,
            operation_type=args.operation,
            index_name=args.index_name,
            ordered=args.ordered,
        )
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    try:
        metrics = await stream_to_mongo(iter_json_records(args.input), config)
    except (StreamToMongoError, OSError) as exc:
        logger.debug("Stream failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    print(json.dumps(metrics.to_dict(), indent=2))
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, run the stream and return the exit status."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    return asyncio.run(run(args), loop_factory=_loop_factory())


if __name__ == "__main__":
    sys.exit(main())
