"""
Main entry point for stampsync.

This module handles:
- Command line argument parsing
- Logging configuration
- Running the reconciler
- Mapping errors to exit codes
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import List, Optional, TextIO

from stampsync.core.folder.reconciler import Reconciler, ReconcileOptions
from stampsync.core.models import ReconcileError, UsageError
from stampsync.services.hashing import HashAlgorithm


# =============================================================================
# Constants
# =============================================================================

APP_NAME = "stampsync"
APP_VERSION = "1.0.0"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

USAGE = f"{APP_NAME} [options] SRC-DIR DST-DIR"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class CommandLineArgs:
    """Parsed command line arguments."""
    source_path: str = ""
    dest_path: str = ""
    batch: bool = False
    update: bool = False
    keep_going: bool = False
    algorithm: HashAlgorithm = HashAlgorithm.MD5
    include_hidden: bool = False
    log_level: str = "WARNING"

    def to_options(self) -> ReconcileOptions:
        return ReconcileOptions(
            batch=self.batch,
            update=self.update,
            keep_going=self.keep_going,
            algorithm=self.algorithm,
            include_hidden=self.include_hidden,
        )


# =============================================================================
# Logging Setup
# =============================================================================

class LogFormatter(logging.Formatter):
    """Log formatter with colors for terminals."""

    COLORS = {
        logging.INFO: '\033[32m',      # Green
        logging.WARNING: '\033[33m',   # Yellow
        logging.ERROR: '\033[31m',     # Red
        logging.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, stream: TextIO, use_colors: bool = True):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        isatty = getattr(stream, 'isatty', None)
        self.use_colors = use_colors and isatty is not None and isatty()

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        if self.use_colors:
            color = self.COLORS.get(record.levelno, '')
            return f"{color}{formatted}{self.RESET}"

        return formatted


def setup_logging(level: str = "WARNING") -> logging.Logger:
    """
    Configure logging on stderr.

    stdout carries the match report, so log records never go there.
    """
    numeric_level = getattr(logging, level.upper(), logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(LogFormatter(sys.stderr))
    root_logger.addHandler(console_handler)

    return root_logger


# =============================================================================
# Command Line Parsing
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        usage=USAGE,
        description="Find files that are identical in two trees but whose "
                    "modification times differ, and report or repair them.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s photos backup/photos             Report mismatched timestamps
  %(prog)s -u photos backup/photos          Copy source timestamps to the backup
  %(prog)s -b photos backup/photos > fix.sh Write touch commands instead
        """
    )

    # Positional arguments
    parser.add_argument(
        'source',
        nargs='?',
        help='Source directory (timestamps are taken from here)'
    )
    parser.add_argument(
        'dest',
        nargs='?',
        help='Destination directory (timestamps are checked here)'
    )

    # Output mode
    parser.add_argument(
        '-b', '--batch',
        action='store_true',
        help='Output a shell script of touch commands to stdout'
    )
    parser.add_argument(
        '-u', '--update',
        action='store_true',
        help="Set each destination file's timestamp to the source file's"
    )
    parser.add_argument(
        '-k', '--keep-going',
        action='store_true',
        help='Record destination failures and continue the scan'
    )

    # Matching
    parser.add_argument(
        '-a', '--algorithm',
        choices=[algorithm.name for algorithm in HashAlgorithm],
        default=HashAlgorithm.MD5.name,
        help='Content hash algorithm (default: %(default)s)'
    )
    parser.add_argument(
        '--include-hidden',
        action='store_true',
        help='Descend into directories whose name starts with a dot'
    )

    # Logging
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug output'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default='WARNING',
        help='Log level'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'{APP_NAME} {APP_VERSION}'
    )

    return parser


def parse_arguments(args: Optional[List[str]] = None) -> CommandLineArgs:
    """
    Parse command line arguments.

    Args:
        args: Arguments to parse (defaults to sys.argv)

    Returns:
        Parsed arguments

    Raises:
        UsageError: source or destination missing
    """
    parser = build_parser()
    parsed = parser.parse_args(args)

    if parsed.source is None or parsed.dest is None:
        raise UsageError("Source and destination directories are required")

    result = CommandLineArgs(
        source_path=parsed.source,
        dest_path=parsed.dest,
        batch=parsed.batch,
        update=parsed.update,
        keep_going=parsed.keep_going,
        algorithm=HashAlgorithm.from_string(parsed.algorithm),
        include_hidden=parsed.include_hidden,
    )

    if parsed.debug:
        result.log_level = 'DEBUG'
    elif parsed.verbose:
        result.log_level = 'INFO'
    else:
        result.log_level = parsed.log_level

    return result


# =============================================================================
# Main
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Application main entry point.

    Returns:
        Exit code (0 for success)
    """
    try:
        args = parse_arguments(argv)
    except UsageError as e:
        print(f"usage: {USAGE}", file=sys.stderr)
        print(f"{APP_NAME}: error: {e}", file=sys.stderr)
        return EXIT_USAGE

    logger = setup_logging(args.log_level)
    logger.debug(f"Starting {APP_NAME} v{APP_VERSION}")

    reconciler = Reconciler(args.to_options(), output=sys.stdout, diagnostics=sys.stderr)

    try:
        stats = reconciler.run(args.source_path, args.dest_path)
    except ReconcileError as e:
        sys.stdout.flush()
        logger.debug("Run aborted", exc_info=True)
        print(str(e), file=sys.stderr)
        return EXIT_FAILURE

    if stats.has_failures:
        logger.warning(f"{len(stats.failures)} destination files could not be processed")
        return EXIT_FAILURE

    return EXIT_OK


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == '__main__':
    sys.exit(main())
