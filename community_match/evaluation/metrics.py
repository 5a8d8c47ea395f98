"""
Offline checks of a scoring configuration over a candidate pool.

Compatibility has no ground truth, so a configuration is judged by what
it does to the pool rather than by accuracy:

- where pairwise scores land relative to the ranking threshold
- whether range, symmetry, self-match and reconstruction hold for every pair
- whether scores still fall as weighted distance rises

Run before bumping the algorithm version after any tuning.
"""

import logging
import math
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, List, Any, Optional, Sequence, Tuple
import json

import numpy as np
from scipy.stats import spearmanr

from ..errors import RecordIntegrityError
from ..ranking.ranker import CandidateProfile
from ..scoring.config import ScoringConfig
from ..scoring.pairwise import score

logger = logging.getLogger(__name__)

# Tolerance for float comparisons of scores
SCORE_TOLERANCE = 1e-9


@dataclass
class ScoreDistributionStats:
    """Shape of the pairwise final-score distribution."""
    mean: float
    std: float
    min: float
    max: float
    quantiles: Dict[str, float]  # e.g., {"p10": 20.0, "p50": 55.0, "p90": 80.0}
    share_above_threshold: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mean": float(self.mean),
            "std": float(self.std),
            "min": float(self.min),
            "max": float(self.max),
            "quantiles": {k: float(v) for k, v in self.quantiles.items()},
            "share_above_threshold": self.share_above_threshold,
        }


@dataclass
class ScorerAudit:
    """Invariant violations found while scoring a pool pairwise."""
    n_pairs: int
    n_skipped: int = 0
    range_violations: List[str] = field(default_factory=list)
    symmetry_violations: List[str] = field(default_factory=list)
    reconstruction_violations: List[str] = field(default_factory=list)
    self_match_violations: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not (self.range_violations or self.symmetry_violations
                    or self.reconstruction_violations or self.self_match_violations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_pairs": self.n_pairs,
            "n_skipped": self.n_skipped,
            "passed": self.passed,
            "range_violations": self.range_violations,
            "symmetry_violations": self.symmetry_violations,
            "reconstruction_violations": self.reconstruction_violations,
            "self_match_violations": self.self_match_violations,
        }


@dataclass
class MonotonicityCheck:
    """Rank agreement between weighted distance and final score."""
    correlation_with_distance: float
    is_monotonic: bool
    n_violations: int
    violation_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correlation_with_distance": float(self.correlation_with_distance),
            "is_monotonic": bool(self.is_monotonic),
            "n_violations": int(self.n_violations),
            "violation_rate": float(self.violation_rate)
        }


@dataclass
class EvaluationReport:
    """
    Complete evaluation report for one scoring configuration.

    Contains distribution statistics, invariant audit and monotonicity.
    """
    algorithm_version: str
    fingerprint: str
    distribution_stats: Optional[ScoreDistributionStats]
    audit: ScorerAudit
    monotonicity_check: Optional[MonotonicityCheck] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "algorithm_version": self.algorithm_version,
            "fingerprint": self.fingerprint,
            "audit": self.audit.to_dict(),
        }
        if self.distribution_stats:
            result["distribution_stats"] = self.distribution_stats.to_dict()
        if self.monotonicity_check:
            result["monotonicity_check"] = self.monotonicity_check.to_dict()
        return result

    def save(self, filepath: str) -> None:
        """Write the report as indented JSON."""
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Evaluation report written to {filepath}")

    def summary(self) -> str:
        """Render the report as a plain-text block for the CLI."""
        lines = [
            f"Evaluation Report: {self.algorithm_version} ({self.fingerprint})",
            "=" * 50,
            "",
            f"Audit ({self.audit.n_pairs} pairs, {self.audit.n_skipped} skipped): "
            f"{'PASSED' if self.audit.passed else 'FAILED'}",
            f"  Range violations:          {len(self.audit.range_violations)}",
            f"  Symmetry violations:       {len(self.audit.symmetry_violations)}",
            f"  Reconstruction violations: {len(self.audit.reconstruction_violations)}",
            f"  Self-match violations:     {len(self.audit.self_match_violations)}",
        ]

        if self.distribution_stats:
            stats = self.distribution_stats
            lines.extend([
                "",
                "Score Distribution:",
                f"  Mean: {stats.mean:.2f}",
                f"  Std:  {stats.std:.2f}",
                f"  Min:  {stats.min:.2f}",
                f"  Max:  {stats.max:.2f}",
            ])
            for q_name, q_value in stats.quantiles.items():
                lines.append(f"  {q_name}: {q_value:.2f}")
            if stats.share_above_threshold is not None:
                lines.append(f"  Above threshold: {stats.share_above_threshold:.1%}")

        if self.monotonicity_check:
            lines.extend([
                "",
                "Monotonicity Check:",
                f"  Correlation with distance: {self.monotonicity_check.correlation_with_distance:.4f}",
                f"  Is monotonic: {self.monotonicity_check.is_monotonic}",
                f"  Violation rate: {self.monotonicity_check.violation_rate:.2%}",
            ])

        return "\n".join(lines)


def compute_score_distribution_stats(
    scores: np.ndarray,
    quantiles: Sequence[float] = (0.1, 0.25, 0.5, 0.75, 0.9),
    threshold: Optional[float] = None
) -> ScoreDistributionStats:
    """Summarize pairwise final scores, optionally against a ranking threshold."""
    values = np.asarray(scores, dtype=float)
    cut_points = np.percentile(values, [q * 100 for q in quantiles])

    return ScoreDistributionStats(
        mean=float(values.mean()),
        std=float(values.std()),
        min=float(values.min()),
        max=float(values.max()),
        quantiles={f"p{int(q * 100)}": float(v) for q, v in zip(quantiles, cut_points)},
        share_above_threshold=None if threshold is None else float(np.mean(values >= threshold)),
    )


def sanity_check_monotonicity(
    final_scores: np.ndarray,
    weighted_distances: np.ndarray,
    threshold: float = 0.5,
    max_points: int = 1000
) -> MonotonicityCheck:
    """
    Measure how consistently scores drop as weighted distance rises.

    Bonuses and penalties may reorder close pairs, so a handful of
    discordant pairs is expected. A weak negative rank correlation means
    the adjustments are swamping the distance term.

    Only the first max_points pairs take part in the discordance count.
    """
    rho, _ = spearmanr(weighted_distances, final_scores)
    # spearmanr returns nan on constant input
    correlation = 0.0 if math.isnan(rho) else -float(rho)

    s = np.asarray(final_scores, dtype=float)[:max_points]
    d = np.asarray(weighted_distances, dtype=float)[:max_points]
    upper = np.triu_indices(len(s), k=1)
    # Discordant: both distance and score move in the same direction
    concordance = np.subtract.outer(d, d)[upper] * np.subtract.outer(s, s)[upper]
    n_violations = int(np.count_nonzero(concordance > 0))
    n_comparisons = concordance.size

    return MonotonicityCheck(
        correlation_with_distance=correlation,
        is_monotonic=correlation >= threshold,
        n_violations=n_violations,
        violation_rate=n_violations / n_comparisons if n_comparisons else 0.0,
    )


def _sample_pairs(n_persons: int, max_pairs: int) -> List[Tuple[int, int]]:
    pairs = list(combinations(range(n_persons), 2))
    if len(pairs) <= max_pairs:
        return pairs
    rng = np.random.RandomState(42)
    idx = np.sort(rng.choice(len(pairs), size=max_pairs, replace=False))
    return [pairs[i] for i in idx]


def audit_scorer(
    pool: Sequence[CandidateProfile],
    config: ScoringConfig,
    max_pairs: int = 5000
) -> Tuple[ScorerAudit, np.ndarray, np.ndarray]:
    """
    Score a pool pairwise and check the scoring invariants.

    Args:
        pool: Candidate profiles
        config: Scoring configuration under evaluation
        max_pairs: Cap on the number of pairs scored

    Returns:
        Tuple of (ScorerAudit, final scores, weighted distances)
    """
    pairs = _sample_pairs(len(pool), max_pairs)
    audit = ScorerAudit(n_pairs=len(pairs))
    scores = []
    distances = []

    for person in pool:
        try:
            self_details = score(person.vector, person.vector, person.age, person.age, config)
        except RecordIntegrityError:
            continue
        if abs(self_details.final_score - 100.0) > SCORE_TOLERANCE:
            audit.self_match_violations.append(person.candidate_id)

    for i, j in pairs:
        a, b = pool[i], pool[j]
        label = f"{a.candidate_id}|{b.candidate_id}"
        try:
            ab = score(a.vector, b.vector, a.age, b.age, config)
            ba = score(b.vector, a.vector, b.age, a.age, config)
        except RecordIntegrityError as e:
            logger.warning(f"Skipping pair {label}: {e}")
            audit.n_skipped += 1
            continue

        if not 0.0 <= ab.final_score <= 100.0:
            audit.range_violations.append(label)
        if abs(ab.final_score - ba.final_score) > SCORE_TOLERANCE:
            audit.symmetry_violations.append(label)
        if abs(ab.recompute_final_score() - ab.final_score) > SCORE_TOLERANCE:
            audit.reconstruction_violations.append(label)

        scores.append(ab.final_score)
        distances.append(ab.weighted_distance)

    return audit, np.asarray(scores, dtype=float), np.asarray(distances, dtype=float)


def create_evaluation_report(
    pool: Sequence[CandidateProfile],
    config: ScoringConfig,
    threshold: Optional[float] = None,
    max_pairs: int = 5000
) -> EvaluationReport:
    """
    Audit a pool under one scoring configuration and summarize its scores.

    Args:
        pool: Candidate profiles to score pairwise
        config: Scoring configuration under evaluation
        threshold: Ranking threshold, to report the qualifying share
        max_pairs: Cap on the number of pairs scored

    Returns:
        EvaluationReport stamped with the version and fingerprint
    """
    audit, scores, distances = audit_scorer(pool, config, max_pairs)

    dist_stats = None
    monotonicity = None
    if len(scores) > 0:
        dist_stats = compute_score_distribution_stats(scores, threshold=threshold)
    if len(scores) > 2:
        monotonicity = sanity_check_monotonicity(scores, distances)

    report = EvaluationReport(
        algorithm_version=config.algorithm_version,
        fingerprint=config.fingerprint(),
        distribution_stats=dist_stats,
        audit=audit,
        monotonicity_check=monotonicity,
    )
    logger.info(f"Evaluated {audit.n_pairs} pairs: audit {'passed' if audit.passed else 'failed'}")
    return report
