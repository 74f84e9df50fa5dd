"""
Dataset I/O

Reading input datasets and writing annotated results with pandas.

Every cell is read as a string (empty cells become ""), so comment text,
ids with leading zeros and mixed-type columns survive unchanged.

Usage:
    from data_tagger.data_io import read_dataset, write_results

    rows = read_dataset("survey.csv", target_column="Comment")
    ...
    write_results(result.rows, "survey_tagged.csv")
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd

from .errors import ConfigurationError
from .pipeline.schemas import AI_ERROR_COLUMN, Row

EXCEL_SUFFIXES = (".xlsx",)


def read_dataset(
    path: Union[str, Path],
    target_column: Optional[str] = None,
    sheet_name: Optional[str] = None,
) -> List[Dict[str, str]]:
    """
    Load a CSV or Excel file as a list of row dicts.

    Args:
        path: Path to .csv or .xlsx file
        target_column: Column that must exist (optional)
        sheet_name: Sheet to read for Excel files (default: first sheet)

    Returns:
        Rows in file order, all values as strings

    Raises:
        ConfigurationError: If the file is missing, unreadable, or lacks
            target_column
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Input file not found: {path}")
    if path.suffix.lower() == ".xls":
        raise ConfigurationError(
            f"Legacy .xls files are not supported, save {path.name} as .xlsx or .csv"
        )

    try:
        if path.suffix.lower() in EXCEL_SUFFIXES:
            df = pd.read_excel(path, sheet_name=sheet_name or 0, dtype=str).fillna("")
        else:
            df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, ValueError) as e:
        raise ConfigurationError(f"Could not read {path}: {e}") from e

    df.columns = [str(column).strip() for column in df.columns]

    if target_column is not None and target_column not in df.columns:
        raise ConfigurationError(
            f"Column '{target_column}' not found. Available: {', '.join(df.columns)}"
        )

    return df.to_dict(orient="records")


def results_to_dataframe(rows: Sequence[Row]) -> pd.DataFrame:
    """
    Convert annotated rows to a DataFrame.

    Columns keep first-seen order across all rows; AI_Error is blank for
    rows that did not fail.

    Args:
        rows: Annotated rows from a ClassificationResult

    Returns:
        DataFrame with one row per annotated row
    """
    columns: List[str] = []
    seen = set()
    for row in rows:
        for key in row:
            if key not in seen:
                seen.add(key)
                columns.append(key)

    df = pd.DataFrame(list(rows), columns=columns)
    if AI_ERROR_COLUMN in df.columns:
        df[AI_ERROR_COLUMN] = df[AI_ERROR_COLUMN].fillna("")
    return df


def write_results(rows: Sequence[Row], path: Union[str, Path]) -> Path:
    """
    Write annotated rows to CSV (or Excel for .xlsx paths).

    Args:
        rows: Annotated rows
        path: Output path

    Returns:
        The path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = results_to_dataframe(rows)

    if path.suffix.lower() == ".xlsx":
        df.to_excel(path, index=False)
    else:
        df.to_csv(path, index=False, encoding="utf-8-sig")
    return path


def default_output_path(input_path: Union[str, Path]) -> Path:
    """survey.csv -> survey_tagged.csv (always CSV)."""
    input_path = Path(input_path)
    return input_path.with_name(f"{input_path.stem}_tagged.csv")


def preview_rows(rows: Sequence[Dict[str, Any]], column: str, n: int = 3) -> None:
    """Print the first n values of the target column."""
    print(f"\nFirst {min(n, len(rows))} of {len(rows)} rows ({column}):")
    for i, row in enumerate(rows[:n], 1):
        text = str(row.get(column, ""))
        print(f"  {i}. {text[:100]}{'...' if len(text) > 100 else ''}")
