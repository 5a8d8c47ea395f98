"""Tests for response quality assessment and the review gate."""

import pytest

from community_match.errors import ValidationError
from community_match.survey import QualityConfig, QualityStatus, assess, review
from community_match.survey.quality import (
    compute_completeness,
    compute_consistency,
    compute_response_length_avg,
)
from community_match.survey.schema import QualityMetrics

# =============================================================================
# Completeness
# =============================================================================


@pytest.mark.unit
def test_completeness_full_response(make_response) -> None:
    """Test a fully filled response is 100% complete."""
    assert compute_completeness(make_response()) == pytest.approx(100.0)


@pytest.mark.unit
def test_completeness_three_blank_answers(make_response) -> None:
    """Test 8 of 11 required fields filled gives 72.73%."""
    response = make_response(job_career="", life_achievements="", dream_building="")
    assert compute_completeness(response) == pytest.approx(8 / 11 * 100)
    assert round(compute_completeness(response), 2) == 72.73


@pytest.mark.unit
def test_completeness_whitespace_counts_as_empty(make_response) -> None:
    """Test whitespace-only answers are not counted as filled."""
    response = make_response(core_values="   ", first_name="")
    assert compute_completeness(response) == pytest.approx(9 / 11 * 100)


# =============================================================================
# Response length
# =============================================================================


@pytest.mark.unit
def test_response_length_avg_no_text(make_response) -> None:
    """Test zero free-text answers gives 0, not an error."""
    blanks = {name: "" for name in (
        "job_career", "life_achievements", "dream_building", "community_space",
        "core_values", "qualities_seek", "deal_breakers", "skills_abilities",
    )}
    assert compute_response_length_avg(make_response(**blanks)) == 0.0


@pytest.mark.unit
def test_response_length_avg_ignores_blank_answers(make_response) -> None:
    """Test only non-empty answers contribute to the mean."""
    response = make_response(
        job_career="abcd", life_achievements="ab", dream_building="",
        community_space="", core_values="", qualities_seek="",
        deal_breakers="", skills_abilities="",
    )
    assert compute_response_length_avg(response) == pytest.approx(3.0)


# =============================================================================
# Consistency
# =============================================================================


@pytest.mark.unit
def test_consistency_all_checks_pass(make_response) -> None:
    """Test aligned ratings give full consistency."""
    score, failed = compute_consistency(
        make_response(), QualityConfig().alignment_checks, tolerance=3
    )
    assert score == pytest.approx(100.0)
    assert failed == ()


@pytest.mark.unit
def test_consistency_one_failed_check(make_response) -> None:
    """Test a large gap on one pair fails that check only."""
    response = make_response(start_village=9, interest_off_grid=2)
    score, failed = compute_consistency(response, QualityConfig().alignment_checks, tolerance=3)

    assert score == pytest.approx(200 / 3)
    assert failed == ("start_village~interest_off_grid",)


@pytest.mark.unit
def test_consistency_tolerance_is_inclusive(make_response) -> None:
    """Test a gap equal to the tolerance still passes."""
    response = make_response(ambition=8, interest_business=5)
    score, _ = compute_consistency(response, [("ambition", "interest_business")], tolerance=3)
    assert score == pytest.approx(100.0)


@pytest.mark.unit
def test_consistency_no_checks(make_response) -> None:
    """Test an empty check list counts as fully consistent."""
    assert compute_consistency(make_response(), [], tolerance=3) == (100.0, ())


# =============================================================================
# Assess and review
# =============================================================================


@pytest.mark.unit
def test_assess_combines_signals(make_response) -> None:
    """Test assess fills every metric field."""
    metrics = assess(make_response(spirituality=10, interest_spiritual=1))

    assert metrics.completeness == pytest.approx(100.0)
    assert metrics.response_length_avg > 20
    assert metrics.failed_checks == ("spirituality~interest_spiritual",)


@pytest.mark.unit
def test_review_approves_good_response(make_response) -> None:
    """Test a complete, consistent response passes review."""
    assert review(assess(make_response())) == QualityStatus.APPROVED


@pytest.mark.unit
@pytest.mark.parametrize("metrics", [
    QualityMetrics(completeness=50.0, response_length_avg=40.0, consistency_score=100.0),
    QualityMetrics(completeness=100.0, response_length_avg=5.0, consistency_score=100.0),
    QualityMetrics(completeness=100.0, response_length_avg=40.0, consistency_score=0.0),
])
def test_review_rejects_weak_metrics(metrics) -> None:
    """Test each gate alone can reject a profile."""
    assert review(metrics, QualityConfig()) == QualityStatus.REJECTED


@pytest.mark.unit
def test_quality_config_from_config(default_config) -> None:
    """Test the packaged config maps onto QualityConfig."""
    config = QualityConfig.from_config(default_config)
    config.validate()

    assert config.consistency_tolerance == 3
    assert ("ambition", "interest_business") in config.alignment_checks
    assert config.min_completeness == 80.0


@pytest.mark.unit
def test_quality_config_rejects_unknown_dimension() -> None:
    """Test validate catches a misspelled alignment check."""
    config = QualityConfig(alignment_checks=[("ambition", "interest_buisness")])
    with pytest.raises(ValidationError, match="interest_buisness"):
        config.validate()


@pytest.mark.unit
def test_quality_config_dict_round_trip() -> None:
    """Test to_dict/from_dict preserves the alignment table as tuples."""
    config = QualityConfig(consistency_tolerance=2, min_response_length=10.0)
    assert QualityConfig.from_dict(config.to_dict()) == config
