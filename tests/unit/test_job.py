"""Tests for the matching job: review, pool construction and envelope storage."""

import pytest

from community_match.delivery import DeliveryState, MatchPoller, PollPolicy, submit_response
from community_match.errors import RecordIntegrityError, RecordNotFound
from community_match.matching import MatchingJob, build_candidate_pool, candidate_from_record, review_pending
from community_match.persistence import MATCHES_FIELD, JsonFileRecordStore
from community_match.ranking import MatchRanker, RankingConfig

BLANK_NARRATIVE = {name: "" for name in (
    "job_career", "life_achievements", "dream_building", "community_space",
    "core_values", "qualities_seek", "deal_breakers", "skills_abilities",
)}


@pytest.fixture
def populated_store(store, make_response):
    """Store with three good submissions and one that fails review."""
    ids = {}
    clock_values = iter([f"2026-01-0{i}T00:00:00+00:00" for i in range(1, 5)])

    def clock():
        return next(clock_values)

    ids["ada"] = submit_response(store, make_response(fill=5), clock=clock).record_id
    ids["bo"] = submit_response(
        store, make_response(fill=6, first_name="Bo", email="bo@example.org"), clock=clock
    ).record_id
    ids["cy"] = submit_response(
        store, make_response(fill=9, first_name="Cy", email="cy@example.org", age=58), clock=clock
    ).record_id
    ids["dee"] = submit_response(
        store, make_response(first_name="Dee", email="dee@example.org", **BLANK_NARRATIVE), clock=clock
    ).record_id
    return store, ids


@pytest.fixture
def job(populated_store, scoring_config, fixed_clock) -> MatchingJob:
    store, _ = populated_store
    return MatchingJob(store, MatchRanker(scoring_config, RankingConfig(), clock=fixed_clock))


# =============================================================================
# Review and pool
# =============================================================================


@pytest.mark.unit
def test_review_pending_gates_pool(populated_store) -> None:
    """Test approved records become matchable and rejected ones do not."""
    store, ids = populated_store
    counts = review_pending(store)

    assert counts == {"approved": 3, "rejected": 1}
    assert store.get_by_id(ids["ada"])["should_match"] is True
    assert store.get_by_id(ids["dee"])["quality_status"] == "rejected"
    assert store.get_by_id(ids["dee"])["should_match"] is False


@pytest.mark.unit
def test_review_pending_is_idempotent(populated_store) -> None:
    """Test a second review finds nothing left to decide."""
    store, _ = populated_store
    review_pending(store)
    assert review_pending(store) == {"approved": 0, "rejected": 0}


@pytest.mark.unit
def test_pool_ordered_by_arrival(populated_store) -> None:
    """Test the pool holds approved records in submission order."""
    store, ids = populated_store
    assert build_candidate_pool(store) == []

    review_pending(store)
    pool = build_candidate_pool(store)

    assert [c.candidate_id for c in pool] == [ids["ada"], ids["bo"], ids["cy"]]
    assert pool[1].name == "Bo Lovelace"
    assert pool[2].age == 58


@pytest.mark.unit
def test_candidate_from_record_keeps_broken_vector() -> None:
    """Test a stored record missing scores still loads, and fails on scoring."""
    candidate = candidate_from_record({"id": "x", "attribute_scores": {"agency": 5}})

    assert candidate.candidate_id == "x"
    with pytest.raises(RecordIntegrityError):
        candidate.vector.as_array()


# =============================================================================
# Envelope storage
# =============================================================================


@pytest.mark.unit
def test_run_for_subject_stores_envelope(job, populated_store) -> None:
    """Test the envelope is attached to the subject's record."""
    store, ids = populated_store
    review_pending(store)

    envelope = job.run_for_subject(ids["ada"])
    record = store.get_by_id(ids["ada"])

    assert record[MATCHES_FIELD] == envelope.to_dict()
    assert record["status"] == "matched"
    assert envelope.total_evaluated == 2
    assert [m.user_id for m in envelope.matches] == [ids["bo"]]


@pytest.mark.unit
def test_rerun_replaces_envelope(job, populated_store) -> None:
    """Test a later run replaces the stored envelope."""
    store, ids = populated_store
    review_pending(store)
    job.run_for_subject(ids["ada"])

    job.ranker.ranking_config = RankingConfig(threshold=0.0)
    envelope = job.run_for_subject(ids["ada"])

    assert store.get_by_id(ids["ada"])[MATCHES_FIELD]["above_threshold"] == envelope.above_threshold == 2


@pytest.mark.unit
def test_run_for_unknown_subject(job) -> None:
    """Test an unknown subject raises RecordNotFound."""
    with pytest.raises(RecordNotFound):
        job.run_for_subject("ghost")


@pytest.mark.unit
def test_run_for_pool(job, populated_store) -> None:
    """Test every matchable record gets an envelope."""
    store, ids = populated_store
    review_pending(store)

    envelopes = job.run_for_pool()

    assert set(envelopes) == {ids["ada"], ids["bo"], ids["cy"]}
    assert MATCHES_FIELD not in store.get_by_id(ids["dee"])


@pytest.mark.unit
def test_submit_match_poll_end_to_end(job, populated_store) -> None:
    """Test a submission is delivered through the polling protocol."""
    store, ids = populated_store
    review_pending(store)

    poller = MatchPoller(store, ids["bo"], PollPolicy(interval_seconds=0.0, max_attempts=5))
    assert poller.poll_once() == DeliveryState.PENDING_MATCH

    job.run_for_subject(ids["bo"])
    outcome = poller.run()

    assert outcome.state == DeliveryState.MATCHED
    assert outcome.attempts == 2
    assert {m.user_id for m in outcome.envelope.matches} == {ids["ada"]}


@pytest.mark.unit
def test_job_from_config(store, default_config) -> None:
    """Test the job picks up scoring and ranking from config."""
    default_config["ranking"]["threshold"] = 75.0
    job = MatchingJob.from_config(store, default_config)

    assert job.ranker.ranking_config.threshold == 75.0
    assert job.ranker.scoring_config.algorithm_version == "weighted-distance-v1"


# =============================================================================
# Integrity faults in stored records
# =============================================================================


@pytest.mark.unit
def test_run_for_pool_skips_malformed_subject(job, populated_store) -> None:
    """Test one broken stored vector does not stop the rest of the batch."""
    store, ids = populated_store
    review_pending(store)
    scores = store.get_by_id(ids["ada"])["attribute_scores"]
    del scores["empathy"]
    store.update(ids["ada"], {"attribute_scores": scores})

    envelopes = job.run_for_pool()

    assert set(envelopes) == {ids["bo"], ids["cy"]}
    assert MATCHES_FIELD not in store.get_by_id(ids["ada"])
    assert envelopes[ids["bo"]].total_evaluated == 1
    assert MATCHES_FIELD in store.get_by_id(ids["cy"])


@pytest.mark.unit
def test_review_pending_skips_record_without_metrics(populated_store) -> None:
    """Test a pending record lacking metrics is left pending, not fatal."""
    store, ids = populated_store
    store.insert({"id": "bare", "quality_status": "pending", "should_match": False})
    store.insert({
        "id": "partial", "quality_status": "pending", "should_match": False,
        "quality_metrics": {"completeness": 100.0},
    })

    assert review_pending(store) == {"approved": 3, "rejected": 1}
    assert store.get_by_id("bare")["quality_status"] == "pending"
    assert store.get_by_id("partial")["should_match"] is False


# =============================================================================
# Separate processes sharing one store file
# =============================================================================


@pytest.mark.unit
def test_poll_sees_envelope_from_separate_store_instance(
    tmp_path, make_response, scoring_config, fixed_clock
) -> None:
    """Test a poller's store picks up an envelope written by another instance."""
    path = str(tmp_path / "store.json")
    writer = JsonFileRecordStore(path)
    subject = submit_response(writer, make_response(fill=5)).record_id
    submit_response(writer, make_response(fill=6, first_name="Bo", email="bo@example.org"))

    poller_store = JsonFileRecordStore(path)
    poller = MatchPoller(poller_store, subject, PollPolicy(interval_seconds=0.0, max_attempts=3))
    assert poller.poll_once() == DeliveryState.PENDING_MATCH

    review_pending(JsonFileRecordStore(path))
    matcher = MatchingJob(
        JsonFileRecordStore(path), MatchRanker(scoring_config, RankingConfig(), clock=fixed_clock)
    )
    matcher.run_for_subject(subject)

    outcome = poller.run()
    assert outcome.state == DeliveryState.MATCHED
    assert outcome.attempts == 2
    assert outcome.envelope.total_evaluated == 1
