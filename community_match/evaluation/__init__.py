"""Evaluation module for scoring configuration analysis."""

from .metrics import (
    compute_score_distribution_stats,
    sanity_check_monotonicity,
    audit_scorer,
    EvaluationReport,
    create_evaluation_report
)

__all__ = [
    "compute_score_distribution_stats",
    "sanity_check_monotonicity",
    "audit_scorer",
    "EvaluationReport",
    "create_evaluation_report"
]
