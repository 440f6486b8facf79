"""
Delimited-text parser with header renaming and per-field transforms
"""

import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
import pandas as pd
from core.exceptions import ParseError
import logging

logger = logging.getLogger(__name__)

FieldTransform = Callable[[Any], Any]


@dataclass
class CSVTransformOptions:
    """
    How raw CSV rows become records.

    Attributes:
        column_mapping: Raw header -> output field name
        fields: Output field name -> transform applied after trimming
        trim: Strip whitespace from string values
    """
    column_mapping: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, FieldTransform] = field(default_factory=dict)
    trim: bool = True


def parse_csv(
    source: Union[str, Path, bytes],
    options: Optional[CSVTransformOptions] = None
) -> List[Dict[str, Any]]:
    """
    Parse a CSV file (or in-memory bytes) into one dict per row.

    All values are read as text; blank lines are skipped. Transforms are
    keyed by the output field name, i.e. after ``column_mapping`` applied.

    Raises:
        ParseError: If the file is missing, unreadable or a transform fails
    """
    options = options or CSVTransformOptions()
    label = "<memory>" if isinstance(source, (bytes, bytearray)) else str(source)

    if isinstance(source, (bytes, bytearray)):
        handle = io.BytesIO(source)
    else:
        path = Path(source)
        if not path.exists():
            raise ParseError("CSV file not found", context={"file_path": label})
        handle = path

    logger.info(f"Reading CSV from {label}")

    try:
        df = pd.read_csv(
            handle,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        logger.warning(f"CSV file is empty: {label}")
        return []
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise ParseError(
            "Failed to parse CSV",
            context={"file_path": label},
            original_exception=e
        )

    df.columns = df.columns.str.strip()
    if options.column_mapping:
        df = df.rename(columns=options.column_mapping)

    records = []
    for index, row in enumerate(df.to_dict(orient="records")):
        if all(value == "" for value in row.values()):
            continue

        record = {}
        for key, value in row.items():
            if options.trim and isinstance(value, str):
                value = value.strip()

            transform = options.fields.get(key)
            if transform is not None:
                try:
                    value = transform(value)
                except (TypeError, ValueError) as e:
                    raise ParseError(
                        f"Failed to transform field '{key}'",
                        context={"file_path": label, "line_number": index + 2, "value": value},
                        original_exception=e
                    )
            record[key] = value
        records.append(record)

    logger.info(f"Read {len(records)} records from CSV")
    return records
