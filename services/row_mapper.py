"""
Row mapper.

Turns one source row into a destination-ready record using the column map
and the classified choice fields. Invalid choice values are dropped with a
warning; they never abort the row.
"""

import re
from typing import Mapping, Optional
import structlog

from models.fields import FieldKind, ChoiceSchema
from models.records import (
    FieldValue,
    InvalidChoice,
    MappedRecord,
    RetainedTimestamps,
)
from exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

MULTI_CHOICE_SEPARATORS = re.compile(r"[,;]")

# Source columns captured when preserving timestamps. Not configurable.
CREATED_COLUMN = "Created"
MODIFIED_COLUMN = "Modified"


def split_multi_choice(raw: str) -> list[str]:
    """
    Split a multi-choice cell on "," or ";".

    Pieces are trimmed and empty pieces dropped:
    "Red; blue,,Green " -> ["Red", "blue", "Green"]
    """
    pieces = (piece.strip() for piece in MULTI_CHOICE_SEPARATORS.split(raw))
    return [piece for piece in pieces if piece]


class RowMapper:
    """
    Maps source rows to destination records.

    Args:
        column_map: Source header -> destination field
        schema: Classified choice fields
        preserve_dates: Capture Created/Modified for the overwrite phase
        trim_choice_values: Trim single-choice values before matching.
            Multi-choice pieces are always trimmed.
    """

    def __init__(
        self,
        column_map: Mapping[str, str],
        schema: ChoiceSchema,
        preserve_dates: bool = False,
        trim_choice_values: bool = False
    ):
        if not column_map:
            raise ConfigurationError("Column map must have at least one entry")

        self.column_map = dict(column_map)
        self.schema = schema
        self.preserve_dates = preserve_dates
        self.trim_choice_values = trim_choice_values

        # Resolved once so the per-row loop never inspects types again
        self._kinds = {
            destination: schema.kind_of(destination)
            for destination in self.column_map.values()
        }

    def map(
        self,
        row: Mapping[str, Optional[str]],
        row_number: int = 0
    ) -> tuple[MappedRecord, list[InvalidChoice]]:
        """
        Map one row.

        Args:
            row: Header -> raw value
            row_number: 1-based source row number, for reporting

        Returns:
            (record, warnings). One warning per rejected value.
        """
        record = MappedRecord(row_number=row_number)
        warnings: list[InvalidChoice] = []

        for header, destination in self.column_map.items():
            if header not in row:
                continue

            raw = row[header]
            if raw is None or not str(raw).strip():
                continue
            raw = str(raw)

            kind = self._kinds[destination]

            if kind == FieldKind.CHOICE:
                value = self._map_choice(destination, raw, row_number, warnings)
            elif kind == FieldKind.MULTI_CHOICE:
                value = self._map_multi_choice(destination, raw, row_number, warnings)
            else:
                value = raw

            if value is not None:
                record.values[destination] = value

        if self.preserve_dates:
            record.retained = RetainedTimestamps(
                created_raw=row.get(CREATED_COLUMN),
                modified_raw=row.get(MODIFIED_COLUMN),
            )

        return record, warnings

    def _map_choice(
        self,
        field: str,
        raw: str,
        row_number: int,
        warnings: list[InvalidChoice]
    ) -> Optional[FieldValue]:
        candidate = raw.strip() if self.trim_choice_values else raw
        canonical = self.schema.canonical(field, candidate)
        if canonical is None:
            self._warn(field, raw, row_number, warnings)
        return canonical

    def _map_multi_choice(
        self,
        field: str,
        raw: str,
        row_number: int,
        warnings: list[InvalidChoice]
    ) -> Optional[FieldValue]:
        matched: list[str] = []

        for piece in split_multi_choice(raw):
            canonical = self.schema.canonical(field, piece)
            if canonical is None:
                self._warn(field, piece, row_number, warnings)
            elif canonical not in matched:
                matched.append(canonical)

        # Never write an empty selection
        return matched or None

    def _warn(
        self,
        field: str,
        value: str,
        row_number: int,
        warnings: list[InvalidChoice]
    ) -> None:
        warning = InvalidChoice(field=field, value=value, row_number=row_number)
        warnings.append(warning)
        logger.warning(
            "invalid_choice_value",
            row=row_number,
            field=field,
            value=value
        )
