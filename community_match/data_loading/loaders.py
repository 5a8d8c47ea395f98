"""
Data loading functions for batch survey ingestion.

This module loads survey responses exported as CSV (one row per person,
one column per survey field) and turns them into validated
SurveyResponse objects. Rows that fail validation are reported, not
silently dropped.
"""

import logging
import math
from pathlib import Path
from typing import Dict, List, Any, Tuple

import pandas as pd

from ..errors import ValidationError
from ..survey.schema import (
    SurveyResponse,
    ALL_DIMENSIONS,
    FREE_TEXT_FIELDS,
)

logger = logging.getLogger(__name__)

TEXT_COLUMNS = ["email", "first_name", "last_name", "phone", "social_links"] + list(FREE_TEXT_FIELDS)

# Multi-valued cells use this separator, e.g. "Morning;Evening"
LIST_SEPARATOR = ";"


def validate_survey_columns(df: pd.DataFrame) -> List[str]:
    """
    Check that all Likert columns are present.

    Args:
        df: Raw survey DataFrame

    Returns:
        List of missing column names (empty if valid)
    """
    return [col for col in ALL_DIMENSIONS if col not in df.columns]


def _to_int_or_none(value: Any) -> Any:
    """Turn pandas cell values into int/None, leaving anything else for validation."""
    if value is None:
        return None
    if isinstance(value, str):
        # One bad cell turns the whole column into strings; parse each cell alone
        text = value.strip()
        if not text:
            return None
        parsed = pd.to_numeric(text, errors="coerce")
        if pd.isna(parsed):
            return value
        value = float(parsed)
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return int(value)
        return value
    try:
        return int(value) if not isinstance(value, (bool, str)) else value
    except (TypeError, ValueError):
        return value


def _normalize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Convert one DataFrame record into the flat survey field mapping."""
    normalized = dict(row)

    for col in ALL_DIMENSIONS:
        normalized[col] = _to_int_or_none(row.get(col))

    if "age" in row:
        normalized["age"] = _to_int_or_none(row["age"])

    times = row.get("preferred_times")
    if isinstance(times, str) and times.strip():
        normalized["preferred_times"] = [t.strip() for t in times.split(LIST_SEPARATOR) if t.strip()]
    else:
        normalized["preferred_times"] = []

    return normalized


def load_survey_responses(
    filepath: str,
    delimiter: str = ","
) -> Tuple[List[SurveyResponse], List[Tuple[int, str]]]:
    """
    Load survey responses from CSV.

    The file should contain:
    - The 18 Likert columns (integers 1-10)
    - Optional contact columns (email, first_name, last_name, age, phone,
      social_links, preferred_times)
    - Optional free-text answer columns

    Args:
        filepath: Path to the CSV file
        delimiter: Field delimiter (default: comma)

    Returns:
        Tuple of (valid responses, list of (row_index, error) for rejected rows)

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is empty or Likert columns are missing
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Survey data file not found: {filepath}")

    logger.info(f"Loading survey responses from {filepath} (delimiter: {repr(delimiter)})")
    df = pd.read_csv(filepath, sep=delimiter)

    if df.empty:
        raise ValueError(f"Survey data file is empty: {filepath}")

    missing_cols = validate_survey_columns(df)
    if missing_cols:
        raise ValueError(f"Survey data is missing Likert columns: {missing_cols}")

    # Free text is optional: blank cells become empty answers
    for col in TEXT_COLUMNS:
        if col in df.columns:
            df[col] = df[col].fillna("").astype(str)

    responses = []
    rejected = []
    for idx, row in enumerate(df.to_dict(orient="records")):
        try:
            responses.append(SurveyResponse.from_flat_dict(_normalize_row(row)))
        except ValidationError as e:
            logger.warning(f"Rejected row {idx}: {e}")
            rejected.append((idx, str(e)))

    logger.info(f"Loaded {len(responses)} valid responses, rejected {len(rejected)}")
    return responses, rejected
