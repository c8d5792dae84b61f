"""
Unit tests for the bar/pie aggregation helpers.
"""
import pytest
from insightboard.services.aggregation import (
    UNKNOWN_LABEL,
    category_label,
    frequency_distribution,
    group_average,
)


@pytest.mark.unit
def test_group_average_means_per_category():
    rows = [{"cat": "x", "val": 10}, {"cat": "x", "val": 20}, {"cat": "y", "val": 5}]
    assert dict(group_average(rows, "cat", "val")) == {"x": 15, "y": 5}


@pytest.mark.unit
def test_group_average_keeps_first_seen_order():
    rows = [{"cat": c, "val": 1} for c in ["b", "a", "b", "c", "a"]]
    assert [label for label, _ in group_average(rows, "cat", "val")] == ["b", "a", "c"]


@pytest.mark.unit
def test_group_average_missing_category_is_unknown():
    rows = [{"cat": None, "val": 4}, {"val": 6}, {"cat": "", "val": 2}]
    assert group_average(rows, "cat", "val") == [(UNKNOWN_LABEL, 4.0)]


@pytest.mark.unit
def test_group_average_non_numeric_values_count_as_zero():
    rows = [{"cat": "x", "val": "oops"}, {"cat": "x", "val": 10}, {"cat": "x", "val": None}]
    label, mean = group_average(rows, "cat", "val")[0]
    assert label == "x"
    assert mean == pytest.approx(10 / 3)


@pytest.mark.unit
def test_frequency_distribution_sorted_by_count():
    rows = [{"c": "A"}] * 5 + [{"c": "B"}] * 9 + [{"c": "C"}] * 2
    assert frequency_distribution(rows, "c") == [("B", 9), ("A", 5), ("C", 2)]


@pytest.mark.unit
def test_frequency_distribution_ties_keep_insertion_order():
    rows = [{"c": v} for v in ["q", "p", "r", "p", "q", "r"]]
    assert [name for name, _ in frequency_distribution(rows, "c")] == ["q", "p", "r"]


@pytest.mark.unit
def test_category_label_stringifies_values():
    assert category_label(None) == UNKNOWN_LABEL
    assert category_label(True) == "true"
    assert category_label(3.0) == "3"
    assert category_label(2.5) == "2.5"
    assert category_label("North") == "North"
