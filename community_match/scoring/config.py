"""
Versioned configuration for pairwise compatibility scoring.

Every tunable of the scoring algorithm lives here: per-dimension weights,
the high-value bonus table, the alignment/opposition penalty table and the
age penalty curve. The whole set is versioned by ``algorithm_version`` and
stamped on every match envelope, so historical results stay interpretable.

A fingerprint (sha256 over the canonical parameters, version excluded) is
available so that a deployment can pin it and detect parameter edits that
were made without a version bump.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, asdict, field
from typing import Dict, Any, List, Optional

from ..errors import ValidationError
from ..survey.schema import ALL_DIMENSIONS, LIKERT_MIN, LIKERT_MAX

logger = logging.getLogger(__name__)

PENALTY_CATEGORIES = ("alignment", "opposition")


@dataclass(frozen=True)
class PenaltyPair:
    """
    One entry of the penalty table.

    Single-dimension entries (``dimension_b`` is None) fire when the two
    profiles differ by at least ``gap`` on ``dimension_a``. Two-dimension
    entries describe a trade-off: they fire when one profile exceeds the
    other by at least ``gap`` on ``dimension_a`` while being exceeded by at
    least ``gap`` on ``dimension_b``.

    Attributes:
        label: Name recorded in alignment_issues / opposing_values
        dimension_a: First dimension
        dimension_b: Second dimension, or None for a single-dimension entry
        category: "alignment" or "opposition"
        gap: Minimum difference on the 1-10 scale
        penalty: Points subtracted when the entry fires
    """
    label: str
    dimension_a: str
    category: str
    gap: float
    penalty: float
    dimension_b: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        if self.dimension_b is None:
            del d["dimension_b"]
        return d


@dataclass(frozen=True)
class AgePenaltyConfig:
    """
    Piecewise-linear age penalty.

    penalty = min(max_penalty, per_year * max(0, age_difference - tolerance_years))
    """
    tolerance_years: int = 10
    per_year: float = 1.5
    max_penalty: float = 20.0


@dataclass
class ScoringConfig:
    """
    Configuration for pairwise compatibility scoring.

    Attributes:
        algorithm_version: Version tag stamped on every envelope
        likert_min: Lower bound of the rating scale
        likert_max: Upper bound of the rating scale
        high_threshold: Rating at or above which a value counts as "high"
        weights: Per-dimension weight; dimensions absent default to 1.0
        high_value_bonuses: Bonus per dimension when both profiles are high
        penalty_pairs: Alignment and opposition penalty table
        age: Age penalty curve
    """
    algorithm_version: str = "weighted-distance-v1"
    likert_min: int = LIKERT_MIN
    likert_max: int = LIKERT_MAX
    high_threshold: float = 7
    weights: Dict[str, float] = field(default_factory=dict)
    high_value_bonuses: Dict[str, float] = field(default_factory=dict)
    penalty_pairs: List[PenaltyPair] = field(default_factory=list)
    age: AgePenaltyConfig = field(default_factory=AgePenaltyConfig)

    def __post_init__(self):
        self.penalty_pairs = [
            p if isinstance(p, PenaltyPair) else PenaltyPair(**p)
            for p in self.penalty_pairs
        ]
        if isinstance(self.age, dict):
            self.age = AgePenaltyConfig(**self.age)

    def validate(self) -> None:
        """Validate configuration values."""
        if self.likert_max <= self.likert_min:
            raise ValidationError(
                f"likert_max must exceed likert_min, got [{self.likert_min}, {self.likert_max}]"
            )
        if not self.likert_min <= self.high_threshold <= self.likert_max:
            raise ValidationError(f"high_threshold out of scale: {self.high_threshold}")

        for table_name, table in [("weights", self.weights),
                                  ("high_value_bonuses", self.high_value_bonuses)]:
            for dim, value in table.items():
                if dim not in ALL_DIMENSIONS:
                    raise ValidationError(f"Unknown dimension in {table_name}: {dim}")
                if value < 0:
                    raise ValidationError(f"{table_name}[{dim}] must be non-negative, got {value}")

        if self.weight_total() <= 0:
            raise ValidationError("At least one dimension must carry a positive weight")

        for pair in self.penalty_pairs:
            if pair.category not in PENALTY_CATEGORIES:
                raise ValidationError(f"Unknown penalty category for {pair.label}: {pair.category}")
            for dim in (pair.dimension_a, pair.dimension_b):
                if dim is not None and dim not in ALL_DIMENSIONS:
                    raise ValidationError(f"Unknown dimension in penalty pair {pair.label}: {dim}")
            if pair.gap <= 0 or pair.penalty < 0:
                raise ValidationError(f"Penalty pair {pair.label} needs gap > 0 and penalty >= 0")

        if self.age.tolerance_years < 0 or self.age.per_year < 0 or self.age.max_penalty < 0:
            raise ValidationError(f"Age penalty parameters must be non-negative: {self.age}")

    def weight_for(self, dimension: str) -> float:
        return float(self.weights.get(dimension, 1.0))

    def weight_vector(self) -> List[float]:
        """Weights in ALL_DIMENSIONS order."""
        return [self.weight_for(d) for d in ALL_DIMENSIONS]

    def weight_total(self) -> float:
        return sum(self.weight_vector())

    @property
    def max_distance(self) -> float:
        """Weighted distance between the most opposite possible profiles."""
        return (self.likert_max - self.likert_min) * self.weight_total()

    @property
    def distance_scale(self) -> float:
        """Scale constant k: maximum distance maps to 0 similarity."""
        return 100.0 / self.max_distance

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "algorithm_version": self.algorithm_version,
            "likert_min": self.likert_min,
            "likert_max": self.likert_max,
            "high_threshold": self.high_threshold,
            "weights": dict(self.weights),
            "high_value_bonuses": dict(self.high_value_bonuses),
            "penalty_pairs": [p.to_dict() for p in self.penalty_pairs],
            "age": asdict(self.age),
        }

    def fingerprint(self) -> str:
        """Short sha256 of the canonical parameters (version excluded)."""
        params = self.to_dict()
        del params["algorithm_version"]
        # Weights default to 1.0, so resolve them to make equivalent configs match
        params["weights"] = dict(zip(ALL_DIMENSIONS, self.weight_vector()))
        canonical = json.dumps(params, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScoringConfig":
        """Create from dictionary."""
        d = {k: v for k, v in d.items() if k != "fingerprint"}
        return cls(**d)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ScoringConfig":
        """Create from main config dictionary."""
        scoring_config = dict(config.get("scoring", {}))
        scoring_config.pop("fingerprint", None)
        scoring = cls(**scoring_config)
        scoring.validate()
        return scoring

    def save(self, filepath: str) -> None:
        """Save to JSON file."""
        with open(filepath, "w") as f:
            json.dump({**self.to_dict(), "fingerprint": self.fingerprint()}, f, indent=2)
        logger.info(f"Saved scoring config {self.algorithm_version} to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> "ScoringConfig":
        """Load from JSON file."""
        with open(filepath, "r") as f:
            d = json.load(f)
        return cls.from_dict(d)
