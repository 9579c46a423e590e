"""
Delimited source file reader.

Reads the file lazily in chunks so large exports never sit in memory at
once. Every cell is kept as the raw string the file contains; empty cells
come back as "".
"""

from pathlib import Path
from typing import Iterator, Union
import structlog

import pandas as pd

from exceptions import SourceFileNotFoundError, SourceFileParseError

logger = structlog.get_logger(__name__)

Row = dict[str, str]

DEFAULT_CHUNK_SIZE = 5000


def ensure_source_file(path: Union[str, Path]) -> Path:
    """
    Check the source file exists.

    Raises:
        SourceFileNotFoundError: If path is missing or not a file
    """
    source = Path(path)
    if not source.is_file():
        raise SourceFileNotFoundError(str(path))
    return source


def read_rows(
    path: Union[str, Path],
    delimiter: str = ",",
    encoding: str = "utf-8-sig",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[Row]:
    """
    Yield source rows as header -> raw string dicts, in file order.

    Args:
        path: Source file path
        delimiter: Field delimiter
        encoding: File encoding (utf-8-sig strips a BOM from the first header)
        chunk_size: Rows parsed per pandas chunk

    Yields:
        Row dicts

    Raises:
        SourceFileNotFoundError: If the file does not exist
        SourceFileParseError: If the file cannot be parsed
    """
    source = ensure_source_file(path)

    logger.debug("reading_source_file", path=str(source), delimiter=delimiter)

    try:
        chunks = pd.read_csv(
            source,
            sep=delimiter,
            encoding=encoding,
            dtype=str,
            keep_default_na=False,
            na_filter=False,
            skipinitialspace=False,
            chunksize=chunk_size,
        )
        for chunk in chunks:
            # Header cells are compared exactly against the column map
            chunk.columns = [str(c) for c in chunk.columns]
            for record in chunk.to_dict(orient="records"):
                yield record

    except pd.errors.EmptyDataError:
        logger.warning("source_file_empty", path=str(source))
        return

    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        logger.error("source_file_parse_failed", path=str(source), error=str(e))
        raise SourceFileParseError(str(source), f"Could not parse source file: {e}") from e
