"""
Destination schema service.

Reads the target table's field descriptors once per run and classifies
them into single-choice, multi-choice and pass-through fields.
"""

from typing import Iterable
import structlog

from pydantic import ValidationError as PydanticValidationError

from config.database import ListSession
from models.fields import FieldKind, FieldDescriptor, ChoiceSchema
from exceptions import SchemaReadError

logger = structlog.get_logger(__name__)


def classify_fields(fields: Iterable[FieldDescriptor]) -> ChoiceSchema:
    """
    Partition fields into choice and multi-choice mappings.

    Pure function of the field list. Fields of any other kind are
    pass-through and do not appear in either mapping.

    Args:
        fields: Field descriptors from the destination

    Returns:
        ChoiceSchema with name -> allowed values for each choice kind
    """
    choice_fields: dict[str, tuple[str, ...]] = {}
    multi_choice_fields: dict[str, tuple[str, ...]] = {}

    for descriptor in fields:
        if descriptor.type_kind == FieldKind.CHOICE:
            choice_fields[descriptor.internal_name] = descriptor.allowed_values
        elif descriptor.type_kind == FieldKind.MULTI_CHOICE:
            multi_choice_fields[descriptor.internal_name] = descriptor.allowed_values

    return ChoiceSchema(choice_fields, multi_choice_fields)


class SchemaService:
    """
    Field discovery for one destination session.

    The destination exposes its column metadata through a database
    function (default "list_fields") returning one row per column:
    {"internal_name", "type_kind", "allowed_values"}.
    """

    def __init__(self, session: ListSession, schema_rpc: str = "list_fields"):
        self.session = session
        self.schema_rpc = schema_rpc

    def list_fields(self, list_name: str) -> list[FieldDescriptor]:
        """
        Read the field descriptors of a table.

        Args:
            list_name: Target table name

        Returns:
            Field descriptors in destination order

        Raises:
            SchemaReadError: If the call fails or returns malformed rows
        """
        logger.debug("reading_fields", list_name=list_name)

        try:
            result = (
                self.session.client
                .rpc(self.schema_rpc, {"list_name": list_name})
                .execute()
            )
        except Exception as e:
            logger.error("read_fields_failed", list_name=list_name, error=str(e))
            raise SchemaReadError(list_name, str(e)) from e

        rows = result.data or []

        try:
            fields = [FieldDescriptor.model_validate(row) for row in rows]
        except PydanticValidationError as e:
            logger.error("field_descriptor_invalid", list_name=list_name, error=str(e))
            raise SchemaReadError(list_name, f"Malformed field descriptor: {e}") from e

        logger.info("fields_loaded", list_name=list_name, count=len(fields))

        return fields

    def load_choice_schema(self, list_name: str) -> ChoiceSchema:
        """Read and classify the table's fields."""
        schema = classify_fields(self.list_fields(list_name))

        logger.info(
            "choice_fields_classified",
            choice=len(schema.choice_fields),
            multi_choice=len(schema.multi_choice_fields)
        )

        return schema
