"""
timeliner command line.

Reads one or more bodyfiles (or stdin), applies an optional filter and prints
the merged timeline in chronological order.

Exit codes: 0 success, 1 data error, 2 configuration error.
"""

import argparse
import logging
import sys
from contextlib import closing
from typing import List, Optional

from timeliner import __version__
from timeliner.config import OUTPUT_FORMATS, TimelinerConfig
from timeliner.data.bodyfile_reader import BodyfileReader, open_bodyfile
from timeliner.filters.filter_engine import FilterEngine
from timeliner.output import write_timeline
from timeliner.timeline.timeline_builder import TimelineBuilder
from timeliner.utils.error_handler import CompileError, ErrorHandler, TimelinerError
from timeliner.utils.memory_monitor import MemoryMonitor

EXIT_OK = 0
EXIT_DATA_ERROR = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='timeliner',
        description='Build a chronological timeline from bodyfile records.',
        epilog=(
            "Filter variables: path/p, hour/h, min/m, day/D, weekday/w, date/d. "
            "Example: -f \"weekday == 'Sunday' && hour < 6\""
        )
    )
    parser.add_argument('bodyfiles', nargs='*', default=['-'],
                        help="Bodyfiles to read ('-' or nothing for stdin)")
    parser.add_argument('-f', '--filter', dest='filter',
                        help='Filter expression evaluated against each timestamp')
    parser.add_argument('--strict', action='store_true', default=None,
                        help='Only output the timestamps that matched the filter')
    parser.add_argument('--skip-errors', action='store_const', const='skip', dest='on_error',
                        help='Skip invalid lines instead of stopping')
    parser.add_argument('-o', '--output-format', choices=OUTPUT_FORMATS,
                        help='Output format (default: mactime)')
    parser.add_argument('-c', '--config', help='JSON configuration file')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Increase log verbosity (-v info, -vv debug)')
    parser.add_argument('--log-file', help='Also write logs to this file')
    parser.add_argument('-V', '--version', action='version',
                        version=f'%(prog)s {__version__}')
    return parser


def _log_level(config: TimelinerConfig, verbose: int) -> int:
    if verbose >= 2:
        return logging.DEBUG
    if verbose == 1:
        return min(logging.INFO, config.log_level)
    return config.log_level


def _prepare_stdout():
    # Paths decoded with surrogateescape must round-trip to the same bytes
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(errors="surrogateescape")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    handler = ErrorHandler('timeliner')

    try:
        config = TimelinerConfig(args.config)
        config.update({
            'filter': args.filter,
            'strict': args.strict,
            'on_error': args.on_error,
            'output_format': args.output_format,
            'log_file': args.log_file,
        })
    except ValueError as e:
        handler.setup_logging(logging.WARNING)
        handler.handle_error(e, "Invalid configuration", raise_exception=False)
        return EXIT_CONFIG_ERROR

    handler.setup_logging(_log_level(config, args.verbose), config.log_file)

    engine = None
    if config.filter_expression:
        try:
            engine = FilterEngine(config.filter_expression)
        except CompileError as e:
            handler.handle_error(e, "Invalid filter expression", logging.CRITICAL, False)
            handler.logger.error(e.details)
            return EXIT_CONFIG_ERROR

    builder = TimelineBuilder(
        memory_monitor=MemoryMonitor(),
        memory_check_interval=config.memory_check_interval
    )

    def records():
        for path in args.bodyfiles:
            with open_bodyfile(path) as stream:
                reader = BodyfileReader(stream, engine, on_error=config.on_error,
                                        error_handler=handler)
                yield from reader
                handler.logger.info(
                    f"{path}: {reader.records_matched} of {reader.records_parsed} records "
                    f"kept, {reader.skipped} skipped"
                )

    with handler.error_context((TimelinerError, OSError), "Could not build timeline", reraise=False) as ctx:
        with closing(records()) as source:
            builder.ingest(source, strict=config.strict)
    if ctx.error is not None:
        return EXIT_DATA_ERROR

    try:
        _prepare_stdout()
        write_timeline(builder, sys.stdout, config.output_format)
        sys.stdout.flush()
    except BrokenPipeError:
        # Reader went away (e.g. piped into head)
        return EXIT_OK
    except OSError as e:
        handler.handle_error(e, "Could not write timeline", raise_exception=False)
        return EXIT_DATA_ERROR

    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
