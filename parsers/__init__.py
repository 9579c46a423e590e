"""
Source file parsers module.
"""

from parsers.csv_reader import (
    Row,
    ensure_source_file,
    read_rows,
)

__all__ = [
    "Row",
    "ensure_source_file",
    "read_rows",
]
