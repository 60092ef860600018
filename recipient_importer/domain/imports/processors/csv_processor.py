import io
import logging
from typing import Dict, Iterator

import pandas as pd

from recipient_importer.domain.imports.exceptions import UnsupportedFormatError

logger = logging.getLogger(__name__)

DEFAULT_READ_CHUNK_ROWS = 5000


def iter_csv_records(file_content: bytes, chunk_rows: int = DEFAULT_READ_CHUNK_ROWS) -> Iterator[Dict[str, str]]:
    """
    Lazily decode CSV bytes into ordered column -> value records.

    The first row is the header and cells map to it by position; a trailing
    delimiter on data rows is dropped rather than shifting the columns.
    Every cell is kept as a string (no type inference, no NaN), so an email
    such as ``0001@x.io`` or an empty cell survives unchanged. Rows whose
    cells are all empty are skipped.

    Args:
        file_content: CSV file content as bytes
        chunk_rows: Number of rows pandas reads per step

    Yields:
        One dict per data row, keys in header order

    Raises:
        UnsupportedFormatError: If the content is not decodable as CSV
    """
    if not file_content or not file_content.strip():
        logger.info("CSV source is empty; no records to decode")
        return

    try:
        reader = pd.read_csv(
            io.BytesIO(file_content),
            dtype=str,
            index_col=False,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
            chunksize=chunk_rows,
        )
        decoded = 0
        with reader:
            for frame in reader:
                for record in frame.to_dict("records"):
                    # Short rows come back as NaN even with dtype=str
                    for key, value in record.items():
                        if pd.isna(value):
                            record[key] = None
                    if not any(value for value in record.values()):
                        continue
                    decoded += 1
                    yield record
    except pd.errors.EmptyDataError:
        return
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        logger.error(f"Error decoding CSV source: {e}")
        raise UnsupportedFormatError(f"Source could not be decoded as CSV: {str(e)}")

    logger.info(f"Decoded {decoded} CSV records")
