"""
Import orchestrator.

Drives one run end to end:

    IDLE -> READING -> (TRUNCATING) -> IMPORTING -> DONE
                                               `-> ABORTED

IMPORTING loops map batch -> submit batch -> pace until the source is
consumed. Nothing is persisted between runs; a re-run starts from the first
row and creates duplicates unless the destination rejects them.
"""

import time
from dataclasses import dataclass
from enum import Enum
from itertools import islice
from typing import Callable, Iterable, Iterator, Mapping, Optional
import structlog

from config.database import Credentials, ListSession, connect
from config.settings import Settings
from models.records import ImportSummary, MappedRecord
from exceptions import AppError, ConfigurationError
from parsers.csv_reader import Row, ensure_source_file, read_rows
from services.batch_submitter import BatchSubmitter
from services.batcher import partition
from services.row_mapper import RowMapper
from services.schema_service import SchemaService
from services.throttle import ThrottleController

logger = structlog.get_logger(__name__)


class ImportState(str, Enum):
    IDLE = "IDLE"
    READING = "READING"
    TRUNCATING = "TRUNCATING"
    IMPORTING = "IMPORTING"
    DONE = "DONE"
    ABORTED = "ABORTED"


@dataclass
class ImportOptions:
    """Per-run behaviour, usually built from Settings."""
    preserve_dates: bool = False
    trim_choice_values: bool = False
    batch_size: int = 100
    test_run: bool = False
    test_run_limit: int = 100
    validate_only: bool = False
    delimiter: str = ","
    encoding: str = "utf-8-sig"
    title_field: str = "Title"
    title_prefix: str = "Import_"
    id_field: str = "id"
    schema_rpc: str = "list_fields"
    timestamp_rpc: str = "overwrite_item_timestamps"

    @classmethod
    def from_settings(cls, settings: Settings) -> "ImportOptions":
        return cls(
            preserve_dates=settings.preserve_dates,
            trim_choice_values=settings.trim_choice_values,
            batch_size=settings.batch_size,
            test_run=settings.test_run,
            test_run_limit=settings.test_run_limit,
            validate_only=settings.validate_only,
            delimiter=settings.csv_delimiter,
            encoding=settings.csv_encoding,
            title_field=settings.title_field,
            title_prefix=settings.title_prefix,
            id_field=settings.id_field,
            schema_rpc=settings.schema_rpc,
            timestamp_rpc=settings.timestamp_rpc,
        )


RowReader = Callable[..., Iterable[Row]]


class ImportService:
    """
    Runs one import against one destination table.

    The session is passed in rather than looked up, so independent imports
    can share a process.
    """

    def __init__(
        self,
        session: ListSession,
        list_name: str,
        column_map: Mapping[str, str],
        options: Optional[ImportOptions] = None,
        throttle: Optional[ThrottleController] = None,
        reader: RowReader = read_rows,
        timer: Callable[[], float] = time.monotonic
    ):
        self.session = session
        self.list_name = list_name
        self.column_map = dict(column_map)
        self.options = options or ImportOptions()
        self.throttle = throttle or ThrottleController()
        self.reader = reader
        self.timer = timer
        self.state = ImportState.IDLE

    def validate(self) -> None:
        """
        Check configuration before any remote call.

        Raises:
            ConfigurationError: On empty column map, batch size < 1, or
                preserve-dates without a privileged session
        """
        validate_import_config(
            column_map=self.column_map,
            batch_size=self.options.batch_size,
            list_name=self.list_name,
        )
        if (
            self.options.preserve_dates
            and not self.options.validate_only
            and not self.session.can_overwrite_timestamps
        ):
            raise ConfigurationError(
                "Preserving dates requires a service key for the privileged overwrite"
            )

    def run(self, source_path: str) -> ImportSummary:
        """
        Import source_path into the table.

        Returns:
            ImportSummary

        Raises:
            ConfigurationError: Invalid configuration
            SourceFileNotFoundError: Source file missing
            SchemaReadError: Field list unavailable
            SourceFileParseError: Source file unreadable mid-run
        """
        started = self.timer()
        summary = ImportSummary(
            list_name=self.list_name,
            test_run=self.options.test_run,
            validate_only=self.options.validate_only,
        )

        try:
            self.validate()
            ensure_source_file(source_path)

            schema = SchemaService(self.session, self.options.schema_rpc).load_choice_schema(
                self.list_name
            )
            mapper = RowMapper(
                self.column_map,
                schema,
                preserve_dates=self.options.preserve_dates,
                trim_choice_values=self.options.trim_choice_values,
            )
            submitter = None
            if not self.options.validate_only:
                submitter = BatchSubmitter(
                    self.session,
                    self.list_name,
                    self.throttle,
                    title_field=self.options.title_field,
                    title_prefix=self.options.title_prefix,
                    preserve_dates=self.options.preserve_dates,
                    timestamp_rpc=self.options.timestamp_rpc,
                    id_field=self.options.id_field,
                )

            self.state = ImportState.READING
            logger.info(
                "import_starting",
                list_name=self.list_name,
                source=str(source_path),
                batch_size=self.options.batch_size,
                test_run=self.options.test_run,
                validate_only=self.options.validate_only,
                preserve_dates=self.options.preserve_dates,
            )
            rows = self._read(source_path)

            self.state = ImportState.IMPORTING
            for batch_number, batch in enumerate(
                partition(rows, self.options.batch_size), start=1
            ):
                first_row = summary.rows_processed + 1
                summary.rows_processed += len(batch)

                records = self._map_batch(mapper, batch, first_row, summary)

                if submitter is None:
                    continue

                result = submitter.submit(records, batch_number)
                summary.batches_submitted += 1
                summary.items_created += result.created
                summary.timestamp_failures += len(result.timestamp_failures)
                if result.lost:
                    summary.batches_lost += 1
                    summary.records_lost += len(result.creation_failures)

                logger.info(
                    "batch_submitted",
                    batch=batch_number,
                    created=result.created,
                    total_created=summary.items_created,
                )

                if self.throttle.pace(batch_number):
                    summary.rests += 1

        except AppError as e:
            self.state = ImportState.ABORTED
            summary.elapsed_seconds = self.timer() - started
            logger.error(
                "import_aborted",
                code=e.code,
                error=e.message,
                rows_processed=summary.rows_processed,
                items_created=summary.items_created,
            )
            raise

        summary.elapsed_seconds = self.timer() - started
        self.state = ImportState.DONE
        log_summary(summary)

        return summary

    def _read(self, source_path: str) -> Iterator[Row]:
        rows: Iterator[Row] = iter(self.reader(
            source_path,
            delimiter=self.options.delimiter,
            encoding=self.options.encoding,
        ))
        if self.options.test_run:
            self.state = ImportState.TRUNCATING
            logger.info("test_run_truncating", limit=self.options.test_run_limit)
            rows = islice(rows, self.options.test_run_limit)
        return rows

    def _map_batch(
        self,
        mapper: RowMapper,
        batch: list[Row],
        first_row: int,
        summary: ImportSummary
    ) -> list[MappedRecord]:
        records = []
        for offset, row in enumerate(batch):
            record, warnings = mapper.map(row, row_number=first_row + offset)
            summary.warnings += len(warnings)
            records.append(record)
        return records


def validate_import_config(
    column_map: Mapping[str, str],
    batch_size: int,
    list_name: Optional[str] = None
) -> None:
    """
    Reject configuration that would fail mid-run.

    Raises:
        ConfigurationError: On the first problem found
    """
    if not list_name:
        raise ConfigurationError("Target list name is required")
    if not column_map:
        raise ConfigurationError("Column map must have at least one entry")
    empty = [header for header, field in column_map.items() if not header or not field]
    if empty:
        raise ConfigurationError(
            "Column map entries need both a source header and a destination field",
            details={"invalid": empty}
        )
    if batch_size < 1:
        raise ConfigurationError(
            "Batch size must be at least 1",
            details={"batch_size": batch_size}
        )


def log_summary(summary: ImportSummary) -> None:
    """Emit the single end-of-run summary line."""
    log = logger.info if summary.success else logger.warning
    log(
        "import_complete",
        status="success" if summary.success else "partial",
        items_created=summary.items_created,
        elapsed=summary.elapsed_display,
        rows_processed=summary.rows_processed,
        warnings=summary.warnings,
        batches_lost=summary.batches_lost,
        records_lost=summary.records_lost,
        timestamp_failures=summary.timestamp_failures,
        test_run=summary.test_run,
        validate_only=summary.validate_only,
    )


def run_import(
    settings: Settings,
    sleep: Callable[[float], None] = time.sleep
) -> ImportSummary:
    """
    Run an import from settings: validate, check the file, connect, import.

    Configuration and the source file are checked before the destination is
    contacted.

    Raises:
        ConfigurationError, SourceFileNotFoundError, AuthError,
        SchemaReadError, SourceFileParseError
    """
    validate_import_config(settings.column_map, settings.batch_size, settings.list_name)
    if not settings.source_path:
        raise ConfigurationError("Source file path is required")
    if not settings.site_url or not settings.api_key:
        raise ConfigurationError("Site URL and API key are required")
    if settings.preserve_dates and not settings.validate_only and not settings.timestamps_configured:
        raise ConfigurationError(
            "Preserving dates requires a service key for the privileged overwrite"
        )

    ensure_source_file(settings.source_path)

    session = connect(
        settings.site_url,
        Credentials(api_key=settings.api_key, service_key=settings.service_key),
        probe_table=settings.list_name,
    )
    throttle = ThrottleController(
        sleep_every=settings.sleep_every,
        sleep_seconds=settings.sleep_seconds,
        max_retries=settings.max_retries,
        backoff_base_seconds=settings.backoff_base_seconds,
        backoff_max_seconds=settings.backoff_max_seconds,
        sleep=sleep,
    )
    service = ImportService(
        session,
        settings.list_name,
        settings.column_map,
        options=ImportOptions.from_settings(settings),
        throttle=throttle,
    )
    return service.run(settings.source_path)
