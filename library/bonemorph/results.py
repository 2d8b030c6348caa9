"""
Results table shared by the measurement commands.
"""

import os
import json
import numpy as np
import pandas as pd
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

LABEL_COLUMN = 'Label'


class ResultsTable:
    """
    Table of measurements with one row per image label.

    A measurement goes to the first row with the same label whose column is
    still empty, so repeated runs on the same image add rows instead of
    overwriting earlier values.
    """

    def __init__(self):
        self._rows: List[Dict[str, Any]] = []
        self._columns: List[str] = [LABEL_COLUMN]

    def set_measurement_in_first_free_row(self, label: str, heading: str, value: float) -> None:
        """
        Add one measurement.

        Args:
            label: Row label, usually the image title
            heading: Column heading
            value: Measured value
        """
        if not heading or heading == LABEL_COLUMN:
            raise ValueError(f"Invalid column heading: {heading!r}")

        if heading not in self._columns:
            self._columns.append(heading)

        for row in self._rows:
            if row[LABEL_COLUMN] == label and heading not in row:
                row[heading] = value
                return

        self._rows.append({LABEL_COLUMN: label, heading: value})

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def get_value(self, heading: str, row: int) -> Optional[float]:
        return self._rows[row].get(heading)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self._rows, columns=self._columns)

    def update(self, other: 'ResultsTable') -> None:
        """Append all measurements of another table."""
        for row in other._rows:
            label = row[LABEL_COLUMN]
            for heading, value in row.items():
                if heading != LABEL_COLUMN:
                    self.set_measurement_in_first_free_row(label, heading, value)


def json_default(value):
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    return str(value)


def save_dataframe(df: pd.DataFrame, output_path: str, format: str = 'csv') -> None:
    """
    Save a results table to file.

    Args:
        df: Table to save
        output_path: Path to output file
        format: Output format ('json', 'csv', 'excel')
    """
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    if format == 'json':
        with open(output_path, 'w') as f:
            json.dump(df.to_dict(orient='records'), f, indent=2, default=json_default)
    elif format == 'csv':
        df.to_csv(output_path, index=False)
    elif format == 'excel':
        df.to_excel(output_path, index=False)
    else:
        raise ValueError(f"Unknown output format: {format}")

    logger.info(f"Results saved to {output_path}")


def format_from_path(path: str) -> str:
    """Output format implied by a file extension, json when unknown."""
    suffix = os.path.splitext(path)[1].lower().lstrip('.')
    if suffix == 'csv':
        return 'csv'
    if suffix in ('xlsx', 'xls'):
        return 'excel'
    return 'json'
