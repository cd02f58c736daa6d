#!/usr/bin/env python3
"""File Tail Service: tails files and prints each new line."""

import argparse
import logging
import os
import signal
import sys
import threading

from filetail.config import ConfigError, load_config, load_yaml_config
from filetail.tail import Tail

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="File Tail Service")
    parser.add_argument(
        "paths", nargs="*", default=None,
        help="Paths or glob patterns of files to tail",
    )
    parser.add_argument(
        "--sincedb-path", dest="sincedb_path", default=None,
        help="Checkpoint file (default: $SINCEDB_PATH or $HOME/.sincedb)",
    )
    parser.add_argument(
        "--sincedb-write-interval", dest="sincedb_write_interval", type=float, default=None,
        help="Seconds between automatic checkpoint writes (default: 10)",
    )
    parser.add_argument(
        "--stat-interval", dest="stat_interval", type=float, default=None,
        help="Seconds between stat passes over known files (default: 1)",
    )
    parser.add_argument(
        "--discover-interval", dest="discover_interval", type=float, default=None,
        help="Seconds between glob rediscovery passes (default: 5)",
    )
    parser.add_argument(
        "--exclude", action="append", default=None,
        help="Basename glob to ignore (repeatable)",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--log-level", type=str.upper, choices=LOG_LEVELS,
        default=os.environ.get("LOG_LEVEL", "INFO"),
        help="Logging level (default: $LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--quiet-path", action="store_true",
        help="Print lines without the 'path: ' prefix",
    )
    return parser


def make_printer(quiet_path: bool = False, stream=None):
    out = stream or sys.stdout

    def _print(path: str, line: str):
        if quiet_path:
            out.write(line + "\n")
        else:
            out.write(f"{path}: {line}\n")
        out.flush()

    return _print


def main(argv: list[str] | None = None) -> int:
    parser = build_cli_parser()
    args = parser.parse_args(argv)
    # argparse does not check a default against choices
    if args.log_level.upper() not in LOG_LEVELS:
        parser.error(f"invalid log level {args.log_level!r} (choose from {', '.join(LOG_LEVELS)})")

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s [TAILER] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args, load_yaml_config(args.config))
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    if not config.paths:
        parser.error("no paths to tail (give them on the command line or in --config)")

    logger.info("Config: sincedb=%s, write_interval=%.1f, stat_interval=%.1f, discover_interval=%.1f",
                config.sincedb_path, config.sincedb_write_interval,
                config.stat_interval, config.discover_interval)

    shutdown_event = threading.Event()
    tailer = Tail(config)

    def _signal_handler(sig, frame):
        logger.info("Shutdown signal received, stopping...")
        shutdown_event.set()
        tailer.watch.wake()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    for path in config.paths:
        tailer.tail(path)
        logger.info("Tailing %s", path)

    try:
        tailer.subscribe(make_printer(args.quiet_path), shutdown_event)
    except KeyboardInterrupt:
        pass
    finally:
        logger.info("Shutting down...")
        tailer.close()

    logger.info("File Tail Service stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
