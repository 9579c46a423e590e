"""
Import pipeline records.

A source row becomes a MappedRecord, records travel in batches, each batch
yields a BatchResult, and the run ends with an ImportSummary.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

from pydantic import Field

from models.base import BaseSchema

FieldValue = Union[str, list[str]]


@dataclass(frozen=True)
class RetainedTimestamps:
    """Raw Created/Modified values copied from the source row, unparsed."""
    created_raw: Optional[str] = None
    modified_raw: Optional[str] = None


@dataclass
class MappedRecord:
    """Destination-ready record. Keys are destination fields, never source headers."""
    values: dict[str, FieldValue] = field(default_factory=dict)
    retained: Optional[RetainedTimestamps] = None
    row_number: int = 0


@dataclass(frozen=True)
class InvalidChoice:
    """A value that matched none of a choice field's allowed values."""
    field: str
    value: str
    row_number: int = 0

    @property
    def message(self) -> str:
        return f"Row {self.row_number}: '{self.value}' is not a valid choice for {self.field}"


@dataclass(frozen=True)
class ItemFailure:
    """One record that a remote phase did not accept."""
    row_number: int
    phase: Literal["create", "timestamps"]
    reason: str


@dataclass
class BatchResult:
    """Outcome of submitting one batch."""
    batch_number: int
    size: int
    created: int = 0
    timestamps_overwritten: int = 0
    failures: list[ItemFailure] = field(default_factory=list)
    lost: bool = False

    @property
    def creation_failures(self) -> list[ItemFailure]:
        return [f for f in self.failures if f.phase == "create"]

    @property
    def timestamp_failures(self) -> list[ItemFailure]:
        return [f for f in self.failures if f.phase == "timestamps"]


def format_elapsed(seconds: float) -> str:
    """
    Format a duration as hh:mm:ss.

    Hours are not wrapped at 24, so a 25 hour run reads 25:00:00.
    """
    total = max(0, int(round(seconds)))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class ImportSummary(BaseSchema):
    """Totals for one run, logged once at completion."""

    list_name: str = Field(..., description="Target table")
    rows_processed: int = Field(0, ge=0, description="Rows read (after truncation)")
    items_created: int = Field(0, ge=0, description="Items accepted by the destination")
    warnings: int = Field(0, ge=0, description="Invalid choice values dropped")
    batches_submitted: int = Field(0, ge=0, description="Batches sent")
    batches_lost: int = Field(0, ge=0, description="Batches whose creation failed")
    records_lost: int = Field(0, ge=0, description="Records in lost batches")
    timestamp_failures: int = Field(0, ge=0, description="Items whose timestamp overwrite failed")
    rests: int = Field(0, ge=0, description="Pacing pauses taken")
    test_run: bool = Field(False, description="Run was truncated to the test limit")
    validate_only: bool = Field(False, description="Run mapped rows without writing")
    elapsed_seconds: float = Field(0.0, ge=0, description="Wall-clock duration")

    @property
    def elapsed_display(self) -> str:
        return format_elapsed(self.elapsed_seconds)

    @property
    def success(self) -> bool:
        """True if every batch was created and every overwrite applied."""
        return self.batches_lost == 0 and self.timestamp_failures == 0
