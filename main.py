"""
List Bulk Importer: command line entry point.

Usage:
    # Test run: first 100 rows only
    python main.py --site https://xyz.supabase.co --list Projects \
        --file exports/projects.csv --map "Project Name=Title" \
        --map "Status=Status" --test-run

    # Full import keeping the source Created/Modified dates
    python main.py --site https://xyz.supabase.co --list Projects \
        --file exports/projects.csv --map-file projects_map.json \
        --preserve-dates

Keys are read from LIST_IMPORT_API_KEY and LIST_IMPORT_SERVICE_KEY (or .env).

Exit codes: 0 completed, 1 aborted (missing file, connection, schema),
2 configuration error.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

import structlog
from pydantic import ValidationError as PydanticValidationError

from config import Settings, configure_logging, get_settings
from exceptions import AppError, ConfigurationError
from services.import_service import run_import

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_CONFIG = 2


def parse_map_entries(entries: Sequence[str]) -> dict[str, str]:
    """
    Parse "Header=Field" pairs.

    Raises:
        ConfigurationError: On a malformed or duplicate entry
    """
    column_map: dict[str, str] = {}
    for entry in entries:
        header, sep, field = entry.partition("=")
        header, field = header.strip(), field.strip()
        if not sep or not header or not field:
            raise ConfigurationError(
                f"Invalid --map entry '{entry}', expected Header=Field"
            )
        if header in column_map:
            raise ConfigurationError(f"Source header '{header}' is mapped twice")
        column_map[header] = field
    return column_map


def load_map_file(path: str) -> dict[str, str]:
    """
    Load a column map from a JSON object file.

    Raises:
        ConfigurationError: If the file is missing or not a string mapping
    """
    map_path = Path(path)
    if not map_path.is_file():
        raise ConfigurationError(f"Column map file not found: {path}")
    try:
        data = json.loads(map_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Column map file is not valid JSON: {e}") from e
    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise ConfigurationError("Column map file must be a JSON object of strings")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bulk-load a delimited file into an existing destination table."
    )
    parser.add_argument("--site", help="Destination project URL")
    parser.add_argument("--list", dest="list_name", help="Target table name")
    parser.add_argument("--file", dest="source_path", help="Source file path")
    parser.add_argument(
        "--map",
        action="append",
        default=[],
        metavar="HEADER=FIELD",
        help="Map a source header to a destination field (repeatable)",
    )
    parser.add_argument(
        "--map-file",
        help="JSON object of source header -> destination field",
    )
    parser.add_argument(
        "--preserve-dates",
        action="store_true",
        default=None,
        help="Overwrite Created/Modified with the source values after creation",
    )
    parser.add_argument(
        "--trim-choice-values",
        action="store_true",
        default=None,
        help="Trim single-choice values before matching",
    )
    parser.add_argument("--batch-size", type=int, help="Records per batch (default: 100)")
    parser.add_argument("--sleep-every", type=int, help="Rest after every N batches (default: 10)")
    parser.add_argument("--sleep-seconds", type=float, help="Rest duration in seconds (default: 1)")
    parser.add_argument(
        "--test-run",
        action="store_true",
        default=None,
        help="Import only the first --test-run-limit rows",
    )
    parser.add_argument("--test-run-limit", type=int, help="Rows for a test run (default: 100)")
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=None,
        help="Map every row and report invalid values without writing",
    )
    parser.add_argument("--title-field", help="Column that must never be empty (default: Title)")
    parser.add_argument("--delimiter", dest="csv_delimiter", help="Source delimiter (default: ,)")
    parser.add_argument("--encoding", dest="csv_encoding", help="Source encoding (default: utf-8-sig)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--json-logs", action="store_true", help="Render JSON log lines")
    return parser


def apply_arguments(settings: Settings, args: argparse.Namespace) -> Settings:
    """
    Overlay CLI flags on settings. Flags not given keep the settings value.

    The merged values are validated against Settings again.

    Raises:
        ConfigurationError: On a malformed map or an out-of-range value
    """
    overrides = {
        "site_url": args.site,
        "list_name": args.list_name,
        "source_path": args.source_path,
        "preserve_dates": args.preserve_dates,
        "trim_choice_values": args.trim_choice_values,
        "batch_size": args.batch_size,
        "sleep_every": args.sleep_every,
        "sleep_seconds": args.sleep_seconds,
        "test_run": args.test_run,
        "test_run_limit": args.test_run_limit,
        "validate_only": args.validate_only,
        "title_field": args.title_field,
        "csv_delimiter": args.csv_delimiter,
        "csv_encoding": args.csv_encoding,
        "log_level": args.log_level,
    }
    update = {key: value for key, value in overrides.items() if value is not None}

    column_map = dict(settings.column_map)
    if args.map_file:
        column_map.update(load_map_file(args.map_file))
    if args.map:
        column_map.update(parse_map_entries(args.map))
    update["column_map"] = column_map

    try:
        return Settings.model_validate({**settings.model_dump(), **update})
    except PydanticValidationError as e:
        invalid = {
            ".".join(str(part) for part in error["loc"]): error["msg"]
            for error in e.errors()
        }
        raise ConfigurationError(
            f"Invalid option value: {', '.join(invalid)}",
            details=invalid
        ) from e


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except PydanticValidationError as e:
        configure_logging("INFO", json_logs=args.json_logs)
        logger.error("settings_invalid", error=str(e))
        return EXIT_CONFIG

    try:
        settings = apply_arguments(settings, args)
    except ConfigurationError as e:
        configure_logging(settings.log_level, json_logs=args.json_logs)
        logger.error("configuration_error", code=e.code, error=e.message, details=e.details)
        return EXIT_CONFIG

    configure_logging(
        settings.log_level,
        json_logs=args.json_logs or settings.is_production
    )

    try:
        run_import(settings)
    except ConfigurationError as e:
        logger.error("configuration_error", code=e.code, error=e.message, details=e.details)
        return EXIT_CONFIG
    except AppError as e:
        logger.error("import_failed", code=e.code, error=e.message, details=e.details)
        return EXIT_ABORTED

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
