"""
Models for destination fields and import records.
"""

from models.base import BaseSchema, FrozenSchema
from models.fields import FieldKind, FieldDescriptor, ChoiceSchema
from models.records import (
    FieldValue,
    RetainedTimestamps,
    MappedRecord,
    InvalidChoice,
    ItemFailure,
    BatchResult,
    ImportSummary,
    format_elapsed,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",

    # Fields
    "FieldKind",
    "FieldDescriptor",
    "ChoiceSchema",

    # Records
    "FieldValue",
    "RetainedTimestamps",
    "MappedRecord",
    "InvalidChoice",
    "ItemFailure",
    "BatchResult",
    "ImportSummary",
    "format_elapsed",
]
