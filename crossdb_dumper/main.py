#!/usr/bin/env python3
"""
Cross-Database Dumper - CLI Entry Point
=======================================
Dumps a SQLite, MySQL or PostgreSQL database as a single SQL script that
rebuilds it on any of the three, with support for:
- Dependency-ordered tables, indexes and views
- Chunked multi-row INSERTs with conflict handling
- Identity/sequence resets after load
- Splitting output into parts and gzip compression
"""

import argparse
import logging
import sys
from typing import Optional

import yaml

from .config import ConfigLoader
from .database_dumper import DatabaseDumper
from .models import ConflictMode, Dialect
from .utils import print_dry_run_info, setup_logging

DIALECT_CHOICES = [d.value for d in Dialect]
MAX_CHUNK_SIZE = 10000


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='crossdb-dump',
        description='Cross-Database Dumper - portable SQL dumps for SQLite, MySQL and PostgreSQL'
    )
    parser.add_argument(
        'format',
        nargs='?',
        choices=DIALECT_CHOICES,
        help='Target dialect of the generated script'
    )
    parser.add_argument(
        'output',
        nargs='?',
        help='Output file (default: stdout)'
    )
    parser.add_argument(
        '-c', '--config',
        help='Path to configuration file'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show what would be dumped without actually dumping'
    )
    parser.add_argument(
        '--from',
        dest='source_dialect',
        choices=DIALECT_CHOICES,
        help='Source database dialect (default: sqlite)'
    )
    parser.add_argument(
        '--db-path',
        help='Path of the SQLite source database'
    )
    parser.add_argument(
        '--tables',
        help='Comma-separated list of tables to dump (default: all)'
    )
    parser.add_argument(
        '--chunk-size',
        type=int,
        help='Rows per INSERT statement; 0 dumps the schema only (default: 100)'
    )
    parser.add_argument(
        '--on-conflict',
        choices=[m.value for m in ConflictMode],
        help='Behaviour when a row already exists on the target (default: fail)'
    )
    parser.add_argument(
        '--exclude-schema',
        action='store_true',
        help='Dump data only, without CREATE statements'
    )
    parser.add_argument(
        '--no-header',
        action='store_true',
        help='Omit the comment header'
    )
    parser.add_argument(
        '--max-statements',
        type=int,
        help='Split the output into files of at most this many statements'
    )
    parser.add_argument(
        '--strict',
        action='store_true',
        help='Exit with an error when any warning was recorded'
    )
    return parser


def apply_cli_overrides(config: ConfigLoader, args: argparse.Namespace) -> None:
    """CLI flags take precedence over the configuration file."""
    config.apply_overrides('source', {'dialect': args.source_dialect, 'path': args.db_path})
    config.apply_overrides('target', {'dialect': args.format})
    config.apply_overrides('dump', {
        'tables': args.tables,
        'chunk_size': args.chunk_size,
        'conflict_mode': args.on_conflict,
        'include_schema': False if args.exclude_schema else None,
        'include_header': False if args.no_header else None,
        'strict': True if args.strict else None,
    })
    config.apply_overrides('output', {
        'file': args.output,
        'max_statements': args.max_statements,
    })


def main(argv: Optional[list[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.chunk_size is not None and not 0 <= args.chunk_size <= MAX_CHUNK_SIZE:
        parser.error(f"--chunk-size must be between 0 and {MAX_CHUNK_SIZE}")
    if args.max_statements is not None and args.max_statements < 1:
        parser.error("--max-statements must be at least 1")

    # Load configuration
    try:
        config = ConfigLoader(args.config)
    except FileNotFoundError:
        print(f"Error: Configuration file '{args.config}' not found")
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file: {e}")
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    apply_cli_overrides(config, args)

    # Setup logging; keep stdout clean when the dump itself goes there
    log_settings = config.get_logging_settings()
    if args.verbose:
        log_settings['level'] = 'DEBUG'
    log_stream = sys.stdout if config.get_output_settings().get('file') else sys.stderr
    setup_logging(log_settings, log_stream)

    try:
        dumper = DatabaseDumper(config)
    except ValueError as e:
        logging.error(f"Configuration error: {e}")
        sys.exit(1)

    # Dry run mode
    if args.dry_run:
        logging.info("DRY RUN MODE - No data will be dumped")
        print_dry_run_info(dumper.source_settings, dumper.target.value, dumper.options, dumper.output_settings)
        sys.exit(0)

    # Run dump
    try:
        stats = dumper.run()

        # Print summary
        logging.info("=" * 50)
        logging.info("DUMP COMPLETE")
        logging.info(f"Source: {stats.source}")
        logging.info(f"Target: {stats.target}")
        logging.info(f"Tables: {stats.total_tables}")
        logging.info(f"Total Rows: {stats.total_rows}")
        for path in stats.files:
            logging.info(f"File: {path}")

        if stats.diagnostics:
            logging.warning(f"Warnings: {len(stats.diagnostics)}")
            for warning in stats.diagnostics.warnings:
                logging.warning(f"  - [{warning.kind.value}] {warning.message}")
            if config.get_dump_settings().get('strict'):
                logging.error("Strict mode: warnings were recorded")
                sys.exit(1)

    except Exception as e:
        logging.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
