"""
Batch submitter.

Submits one batch of mapped records as a single remote insert, then,
when preserving dates, overwrites the created items' timestamps through
a privileged database function.

Phase order matters: timestamps are only written for items the insert
created, and a failed overwrite never undoes the creations.
"""

import re
from datetime import datetime
from typing import Any, Callable, Optional
import structlog

import pandas as pd

from config.database import ListSession
from models.records import BatchResult, ItemFailure, MappedRecord
from exceptions import (
    BatchSubmitError,
    ConfigurationError,
    RateLimitedError,
    TimestampOverwriteError,
)
from services.throttle import ThrottleController, is_rate_limited

logger = structlog.get_logger(__name__)

TITLE_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

# pandas resolves these against the clock; a source date must be absolute
RELATIVE_DATE_WORDS = re.compile(r"\b(now|today|tomorrow|yesterday)\b", re.IGNORECASE)


def parse_timestamp(raw: Optional[str]) -> Optional[str]:
    """
    Parse a retained timestamp to ISO-8601.

    "2021-01-05" -> "2021-01-05T00:00:00"
    Unparseable, empty or relative values ("today", "now") return None.
    """
    if raw is None or not str(raw).strip():
        return None
    text = str(raw).strip()
    if RELATIVE_DATE_WORDS.search(text) or not any(ch.isdigit() for ch in text):
        return None
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.isoformat()


class BatchSubmitter:
    """
    Sends batches to one destination table.

    Args:
        session: Connected destination session
        list_name: Target table
        throttle: Provides rate-limit backoff
        title_field: Column that must never be empty
        title_prefix: Prefix for synthesized titles
        preserve_dates: Run the timestamp overwrite phase
        timestamp_rpc: Privileged database function for the overwrite
        id_field: Primary key column returned by the insert
        clock: Current time, for synthesized titles
    """

    def __init__(
        self,
        session: ListSession,
        list_name: str,
        throttle: ThrottleController,
        title_field: str = "Title",
        title_prefix: str = "Import_",
        preserve_dates: bool = False,
        timestamp_rpc: str = "overwrite_item_timestamps",
        id_field: str = "id",
        clock: Callable[[], datetime] = datetime.now
    ):
        if preserve_dates and not session.can_overwrite_timestamps:
            raise ConfigurationError(
                "Preserving dates requires a service key for the privileged overwrite"
            )

        self.session = session
        self.list_name = list_name
        self.throttle = throttle
        self.title_field = title_field
        self.title_prefix = title_prefix
        self.preserve_dates = preserve_dates
        self.timestamp_rpc = timestamp_rpc
        self.id_field = id_field
        self.clock = clock

    def build_item(self, record: MappedRecord) -> dict[str, Any]:
        """Payload for one record, with a synthesized title when empty."""
        item: dict[str, Any] = dict(record.values)

        title = item.get(self.title_field)
        if title is None or (isinstance(title, str) and not title.strip()):
            item[self.title_field] = (
                f"{self.title_prefix}{self.clock().strftime(TITLE_TIMESTAMP_FORMAT)}"
            )

        return item

    def submit(self, batch: list[MappedRecord], batch_number: int = 1) -> BatchResult:
        """
        Submit one batch.

        Args:
            batch: Mapped records in source order
            batch_number: 1-based batch number, for reporting

        Returns:
            BatchResult with created count and per-item failures
        """
        result = BatchResult(batch_number=batch_number, size=len(batch))
        if not batch:
            return result

        payload = [self.build_item(record) for record in batch]

        # Phase 1: creation
        try:
            rows = self.throttle.call_with_backoff(self._insert, payload, batch_number)
        except (BatchSubmitError, RateLimitedError) as e:
            logger.error(
                "batch_lost",
                batch=batch_number,
                size=len(batch),
                first_row=batch[0].row_number,
                error=e.message
            )
            result.lost = True
            result.failures = [
                ItemFailure(row_number=record.row_number, phase="create", reason=e.message)
                for record in batch
            ]
            return result

        result.created = len(batch)
        logger.info("batch_created", batch=batch_number, created=result.created)

        # Phase 2: timestamp overwrite
        if self.preserve_dates:
            self._overwrite_timestamps(batch, rows, result)

        return result

    def _insert(self, payload: list[dict], batch_number: int) -> list[dict]:
        try:
            response = (
                self.session.client.table(self.list_name)
                .insert(payload)
                .execute()
            )
        except Exception as e:
            if is_rate_limited(e):
                raise RateLimitedError("insert", str(e)) from e
            raise BatchSubmitError(batch_number, str(e), size=len(payload)) from e

        return response.data or []

    def _overwrite_timestamps(
        self,
        batch: list[MappedRecord],
        rows: list[dict],
        result: BatchResult
    ) -> None:
        items: list[dict[str, Any]] = []
        owners: list[MappedRecord] = []

        for index, record in enumerate(batch):
            if record.retained is None:
                continue

            created = parse_timestamp(record.retained.created_raw)
            modified = parse_timestamp(record.retained.modified_raw)
            if created is None and modified is None:
                continue

            item_id = rows[index].get(self.id_field) if index < len(rows) else None
            if item_id is None:
                result.failures.append(ItemFailure(
                    row_number=record.row_number,
                    phase="timestamps",
                    reason="Destination did not return the created item id"
                ))
                continue

            item: dict[str, Any] = {"id": item_id}
            if created is not None:
                item["created"] = created
            if modified is not None:
                item["modified"] = modified
            items.append(item)
            owners.append(record)

        if not items:
            return

        try:
            self.throttle.call_with_backoff(self._overwrite, items, result.batch_number)
        except (TimestampOverwriteError, RateLimitedError) as e:
            logger.error(
                "timestamp_overwrite_failed",
                batch=result.batch_number,
                items=len(items),
                error=e.message
            )
            result.failures.extend(
                ItemFailure(row_number=record.row_number, phase="timestamps", reason=e.message)
                for record in owners
            )
            return

        result.timestamps_overwritten = len(items)
        logger.debug("timestamps_overwritten", batch=result.batch_number, items=len(items))

    def _overwrite(self, items: list[dict], batch_number: int) -> None:
        try:
            (
                self.session.admin_client
                .rpc(self.timestamp_rpc, {"list_name": self.list_name, "items": items})
                .execute()
            )
        except Exception as e:
            if is_rate_limited(e):
                raise RateLimitedError("timestamp overwrite", str(e)) from e
            raise TimestampOverwriteError(batch_number, str(e), size=len(items)) from e
