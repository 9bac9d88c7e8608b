#!/usr/bin/env python3
"""
music-sorter: organize audio files into <album artist>/<album> folders
based on their embedded tags.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from utils.config_loader import load_config, get_config_template
from utils.exceptions import MusicSorterError
from utils.logging_config import setup_logging, configure_library_logging
from pipeline.orchestrator import MusicOrganizer

EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_FATAL = 2
EXIT_INTERRUPTED = 130


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="music-sorter",
        description="Organize audio files into album artist / album folders using their tags",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s ~/Downloads/music ~/Music          # Organize into ~/Music
  %(prog)s --config sorter.yaml               # Paths taken from the config file
  %(prog)s ./incoming ./sorted --json         # Print the result as JSON

Environment variables override the config file, e.g.
  MUSIC_SORTER_SOURCE_PATH, MUSIC_SORTER_DESTINATION_PATH, MUSIC_SORTER_LOG_LEVEL
        """
    )

    parser.add_argument(
        "source",
        nargs="?",
        type=Path,
        help="Directory to scan for audio files (default: source_path from config)"
    )

    parser.add_argument(
        "destination",
        nargs="?",
        type=Path,
        help="Root of the organized tree (default: destination_path from config)"
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: $MUSIC_SORTER_CONFIG or ./config.yaml)"
    )

    parser.add_argument(
        "--no-recursive",
        action="store_true",
        help="Only organize files directly inside the source directory"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as a JSON object"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--print-config-template",
        action="store_true",
        help="Print a configuration file template and exit"
    )

    return parser.parse_args(argv)


def _report_fatal(error: MusicSorterError, as_json: bool):
    if as_json:
        print(json.dumps(error.to_dict()), file=sys.stderr)
    else:
        print(f"Error ({error.status_code}): {error}", file=sys.stderr)
        cause = error.__cause__
        if cause is not None:
            print(f"  Caused by: {cause}", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)

    if args.print_config_template:
        print(get_config_template())
        return EXIT_OK

    try:
        config = load_config(args.config)
        if args.no_recursive:
            config.recursive = False

        logger = setup_logging(config.logging, verbose=args.verbose)
        configure_library_logging()

        source = args.source or Path(config.source_path)
        destination = args.destination or Path(config.destination_path)

        logger.info(f"Source directory: {source}")
        logger.info(f"Destination directory: {destination}")

        organizer = MusicOrganizer(config)
        stats = organizer.organize(source, destination)

    except KeyboardInterrupt:
        print("\nOperation cancelled by user.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except MusicSorterError as e:
        _report_fatal(e, args.json)
        return EXIT_FATAL

    if args.json:
        print(json.dumps(stats.to_dict()))
    else:
        print(f"Successful: {stats.successful}")
        print(f"Failed: {stats.failed}")
        print(f"Skipped: {stats.skipped}")

    return EXIT_PARTIAL_FAILURE if stats.failed else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
