"""Data loading module for batch survey ingestion."""

from .loaders import load_survey_responses, validate_survey_columns

__all__ = ["load_survey_responses", "validate_survey_columns"]
