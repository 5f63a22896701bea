"""
test_classifier.py — Tests for the critical review classifier

Called by: pytest
Depends on: reviewwatch/services/classifier.py
"""

import math

import pytest

from reviewwatch.services.classifier import CRITICAL_RATING_MAX, is_critical


def test_threshold_is_three():
    assert CRITICAL_RATING_MAX == 3


@pytest.mark.parametrize("rating", [1, 2, 3, 2.5, 3.0])
def test_at_or_below_threshold_is_critical(rating):
    assert is_critical(rating) is True


@pytest.mark.parametrize("rating", [4, 5, 3.5])
def test_above_threshold_is_not_critical(rating):
    assert is_critical(rating) is False


@pytest.mark.parametrize("rating", [None, "2", math.nan, math.inf, -math.inf, True, False])
def test_non_finite_or_non_numeric_is_not_critical(rating):
    assert is_critical(rating) is False
