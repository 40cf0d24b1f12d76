import pytest

from gamr.engine.errors import InvalidInputError
from gamr.engine.scoring import (
    MAX_RAW_SCORE,
    Priority,
    ScoreResult,
    average_to_percent,
    classify,
    compute_score,
    to_percent,
)


def test_raw_score_is_product_of_factors():
    for p in range(1, 4):
        for v in range(1, 5):
            for i in range(1, 6):
                assert compute_score(p, v, i).raw_score == p * v * i


def test_extremes():
    assert compute_score(1, 1, 1) == ScoreResult(raw_score=1, priority=Priority.LOW)
    assert compute_score(3, 4, 5) == ScoreResult(raw_score=60, priority=Priority.CRITICAL)


def test_compute_score_is_pure():
    assert compute_score(2, 3, 4) == compute_score(2, 3, 4)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (1, Priority.LOW),
        (9, Priority.LOW),
        (10, Priority.MEDIUM),
        (24, Priority.MEDIUM),
        (25, Priority.HIGH),
        (44, Priority.HIGH),
        (45, Priority.CRITICAL),
        (60, Priority.CRITICAL),
    ],
)
def test_classify_thresholds(raw, expected):
    assert classify(raw) is expected


def test_classify_is_monotonic():
    severities = [classify(raw).severity for raw in range(1, MAX_RAW_SCORE + 1)]
    assert severities == sorted(severities)


@pytest.mark.parametrize(
    "factors, field",
    [
        ((0, 1, 1), "probability"),
        ((4, 1, 1), "probability"),
        ((1, 5, 1), "vulnerability"),
        ((1, 1, 6), "impact"),
        ((1, 1, -2), "impact"),
    ],
)
def test_out_of_range_factor_is_rejected(factors, field):
    with pytest.raises(InvalidInputError) as exc:
        compute_score(*factors)
    assert exc.value.field == field
    assert exc.value.code == "INVALID_INPUT"


@pytest.mark.parametrize("value", [2.0, "2", True, None])
def test_non_integer_factor_is_rejected(value):
    with pytest.raises(InvalidInputError):
        compute_score(value, 1, 1)


def test_classify_rejects_out_of_range():
    with pytest.raises(InvalidInputError):
        classify(0)
    with pytest.raises(InvalidInputError):
        classify(61)


def test_to_percent():
    assert to_percent(1) == 2
    assert to_percent(30) == 50
    assert to_percent(45) == 75
    assert to_percent(60) == 100
    assert compute_score(3, 4, 5).percent == 100


def test_priority_severity_order():
    assert Priority.LOW.severity < Priority.MEDIUM.severity < Priority.HIGH.severity < Priority.CRITICAL.severity


def test_average_to_percent_matches_to_percent():
    for raw in (1, 24, 45, MAX_RAW_SCORE):
        assert average_to_percent(float(raw)) == to_percent(raw)
    assert average_to_percent(30.5) == 51


@pytest.mark.parametrize("value", [0.5, 60.5, True, "30"])
def test_average_to_percent_rejects_out_of_domain(value):
    with pytest.raises(InvalidInputError):
        average_to_percent(value)
