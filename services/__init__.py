"""
Import pipeline services.

Each service handles one stage of the import.
"""

from services.schema_service import SchemaService, classify_fields
from services.row_mapper import RowMapper, split_multi_choice
from services.batcher import partition
from services.throttle import ThrottleController, is_rate_limited
from services.batch_submitter import BatchSubmitter, parse_timestamp
from services.import_service import (
    ImportService,
    ImportOptions,
    ImportState,
    run_import,
    validate_import_config,
)

__all__ = [
    "SchemaService",
    "classify_fields",
    "RowMapper",
    "split_multi_choice",
    "partition",
    "ThrottleController",
    "is_rate_limited",
    "BatchSubmitter",
    "parse_timestamp",
    "ImportService",
    "ImportOptions",
    "ImportState",
    "run_import",
    "validate_import_config",
]
