"""Tests for batch survey loading from CSV."""

import pandas as pd
import pytest

from community_match.data_loading import load_survey_responses, validate_survey_columns
from community_match.survey import ContactTime


def _write_csv(path, rows, sep=","):
    df = pd.DataFrame(rows)
    df.to_csv(path, index=False, sep=sep)
    return str(path)


@pytest.fixture
def csv_row(survey_row):
    """Flat survey row shaped like a spreadsheet export."""

    def _factory(**overrides):
        row = survey_row(**overrides)
        times = row.pop("preferred_times")
        row["preferred_times"] = ";".join(times)
        return row

    return _factory


@pytest.mark.unit
def test_load_valid_rows(tmp_path, csv_row) -> None:
    """Test rows become SurveyResponse objects with typed fields."""
    path = _write_csv(tmp_path / "survey.csv", [
        csv_row(email="a@example.org", agency=9, preferred_times=["Morning", "Evening"]),
        csv_row(email="b@example.org", age=None, phone="555 0100"),
    ])

    responses, rejected = load_survey_responses(path)

    assert rejected == []
    assert len(responses) == 2
    assert responses[0].core.agency == 9
    assert isinstance(responses[0].core.agency, int)
    assert responses[0].contact.preferred_times == frozenset({ContactTime.MORNING, ContactTime.EVENING})
    assert responses[0].contact.age == 30
    assert responses[1].contact.age is None


@pytest.mark.unit
def test_invalid_rows_reported(tmp_path, csv_row) -> None:
    """Test a row with an out-of-range rating is rejected with its index."""
    path = _write_csv(tmp_path / "survey.csv", [
        csv_row(),
        csv_row(empathy=11),
        csv_row(),
    ])

    responses, rejected = load_survey_responses(path)

    assert len(responses) == 2
    assert [idx for idx, _ in rejected] == [1]
    assert "empathy" in rejected[0][1]


@pytest.mark.unit
def test_non_numeric_rating_rejects_only_its_row(tmp_path, csv_row) -> None:
    """Test a text rating rejects its row while the rest of the column still parses."""
    path = _write_csv(tmp_path / "survey.csv", [
        csv_row(email="a@example.org", empathy=7),
        csv_row(email="b@example.org", empathy="ten"),
        csv_row(email="c@example.org", empathy=4),
    ])

    responses, rejected = load_survey_responses(path)

    assert [r.contact.email for r in responses] == ["a@example.org", "c@example.org"]
    assert responses[0].core.empathy == 7
    assert isinstance(responses[1].core.empathy, int)
    assert [idx for idx, _ in rejected] == [1]
    assert "'ten'" in rejected[0][1]


@pytest.mark.unit
def test_blank_text_cells_become_empty(tmp_path, csv_row) -> None:
    """Test missing free-text cells load as empty answers."""
    path = _write_csv(tmp_path / "survey.csv", [csv_row(deal_breakers="", skills_abilities="")])

    responses, _ = load_survey_responses(path)

    assert responses[0].narrative.deal_breakers == ""
    assert responses[0].narrative.skills_abilities == ""


@pytest.mark.unit
def test_custom_delimiter(tmp_path, csv_row) -> None:
    """Test a tab-delimited export loads."""
    path = _write_csv(tmp_path / "survey.tsv", [csv_row()], sep="\t")
    responses, _ = load_survey_responses(path, delimiter="\t")
    assert len(responses) == 1


@pytest.mark.unit
def test_missing_likert_column(tmp_path, csv_row) -> None:
    """Test a file without a rating column raises ValueError."""
    row = csv_row()
    del row["teamwork"]
    path = _write_csv(tmp_path / "survey.csv", [row])

    with pytest.raises(ValueError, match="teamwork"):
        load_survey_responses(path)


@pytest.mark.unit
def test_missing_file(tmp_path) -> None:
    """Test a missing file raises FileNotFoundError."""
    with pytest.raises(FileNotFoundError):
        load_survey_responses(str(tmp_path / "absent.csv"))


@pytest.mark.unit
def test_validate_survey_columns(csv_row) -> None:
    """Test the column check lists exactly the missing ratings."""
    df = pd.DataFrame([csv_row()]).drop(columns=["ambition", "interest_wellness"])
    assert validate_survey_columns(df) == ["ambition", "interest_wellness"]
