"""
Destination field models.

Field descriptors are read once per run from the destination and
classified into single-choice, multi-choice and pass-through fields.
"""

from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from models.base import FrozenSchema


class FieldKind(str, Enum):
    """Closed set of field kinds the row mapper distinguishes."""
    CHOICE = "CHOICE"
    MULTI_CHOICE = "MULTI_CHOICE"
    OTHER = "OTHER"

    @classmethod
    def from_type_tag(cls, tag: Optional[str]) -> "FieldKind":
        """
        Normalize a remote type tag.

        "Choice", "choice" -> CHOICE
        "MultiChoice", "multi_choice", "multi-choice" -> MULTI_CHOICE
        anything else -> OTHER
        """
        if not tag:
            return cls.OTHER
        key = tag.strip().lower().replace("_", "").replace("-", "")
        if key == "choice":
            return cls.CHOICE
        if key == "multichoice":
            return cls.MULTI_CHOICE
        return cls.OTHER


class FieldDescriptor(FrozenSchema):
    """One destination column."""

    internal_name: str = Field(..., min_length=1, description="Destination column name")
    type_kind: FieldKind = Field(FieldKind.OTHER, description="Field kind")
    allowed_values: tuple[str, ...] = Field(
        default=(),
        description="Allowed values, only meaningful for choice kinds"
    )

    @field_validator("type_kind", mode="before")
    @classmethod
    def parse_type_tag(cls, value):
        if isinstance(value, FieldKind):
            return value
        return FieldKind.from_type_tag(value)

    @field_validator("allowed_values", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return tuple(value or ())

    @property
    def is_choice(self) -> bool:
        return self.type_kind in (FieldKind.CHOICE, FieldKind.MULTI_CHOICE)


class ChoiceSchema:
    """
    Classified view of the destination fields.

    choice_fields and multi_choice_fields map a field name to its allowed
    values in source order. Lookups are case-insensitive and return the
    allowed value's stored casing.
    """

    def __init__(
        self,
        choice_fields: Optional[dict[str, tuple[str, ...]]] = None,
        multi_choice_fields: Optional[dict[str, tuple[str, ...]]] = None
    ):
        self.choice_fields = dict(choice_fields or {})
        self.multi_choice_fields = dict(multi_choice_fields or {})
        self._lookup: dict[str, dict[str, str]] = {}

        for name, values in {**self.choice_fields, **self.multi_choice_fields}.items():
            table: dict[str, str] = {}
            for value in values:
                # First allowed value wins when two differ only by case
                table.setdefault(value.lower(), value)
            self._lookup[name] = table

    def kind_of(self, field_name: str) -> FieldKind:
        if field_name in self.choice_fields:
            return FieldKind.CHOICE
        if field_name in self.multi_choice_fields:
            return FieldKind.MULTI_CHOICE
        return FieldKind.OTHER

    def canonical(self, field_name: str, value: str) -> Optional[str]:
        """Return the allowed value matching value ignoring case, or None."""
        return self._lookup.get(field_name, {}).get(value.lower())

    def __repr__(self) -> str:
        return (
            f"ChoiceSchema(choice={sorted(self.choice_fields)}, "
            f"multi_choice={sorted(self.multi_choice_fields)})"
        )
