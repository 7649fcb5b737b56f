"""
Tests for reduced-rank regression: learning coefficients and closed-form fits.
"""

import numpy as np
import pytest

from singular_bic.exceptions import DimensionMismatchError
from singular_bic.families import (LearnCoef, ReducedRankRegressions,
                                   reduced_rank_learning_coefficient)
from singular_bic.models.reduced_rank import fit_reduced_rank_regression
from singular_bic.simulation import simulate_reduced_rank


@pytest.fixture
def rank_two_data(rng):
    coefficients = np.zeros((4, 5))
    coefficients[0, 0] = 1.0
    coefficients[1, 1] = 1.0
    return simulate_reduced_rank(200, coefficients, rng)

# ------------------------------------------------------------------------------
# Learning coefficients
# ------------------------------------------------------------------------------


@pytest.mark.parametrize(
    "M, N, H, r, expected",
    [
        (5, 4, 3, 2, LearnCoef(8.0, 1)),     # main case, even
        (5, 4, 1, 0, LearnCoef(2.0, 1)),     # main case, even
        (4, 4, 2, 1, LearnCoef(5.0, 2)),     # main case, odd: multiplicity 2
        (2, 5, 1, 0, LearnCoef(1.0, 1)),     # M + H < N + r
        (5, 2, 1, 0, LearnCoef(1.0, 1)),     # N + H < M + r
    ],
)
def test_aoyagi_watanabe_cases(M, N, H, r, expected):
    assert reduced_rank_learning_coefficient(M, N, H, r) == expected


def test_family_dimensions_and_identity():
    family = ReducedRankRegressions(num_covariates=5, num_responses=4, max_rank=4)
    assert family.num_models() == 5
    assert [family.get_dimension(i) for i in range(1, 6)] == [0, 8, 14, 18, 20]
    for model in range(1, 6):
        assert family.learn_coef(model, model) == LearnCoef(family.get_dimension(model) / 2, 1)
    assert family.learn_coef(4, 3) == LearnCoef(8.0, 1)


def test_max_rank_bounded_by_shape():
    with pytest.raises(ValueError):
        ReducedRankRegressions(num_covariates=2, num_responses=3, max_rank=3)

# ------------------------------------------------------------------------------
# Data and fits
# ------------------------------------------------------------------------------


def test_data_must_be_pair(rank_two_data):
    family = ReducedRankRegressions(num_covariates=5, num_responses=4, max_rank=2)
    X, Y = rank_two_data
    with pytest.raises(DimensionMismatchError):
        family.set_data(X)
    with pytest.raises(DimensionMismatchError):
        family.set_data((X[:, :4], Y))
    with pytest.raises(DimensionMismatchError):
        family.set_data((X[:100], Y))
    family.set_data((X, Y))
    assert family.get_num_samples() == 200


def test_full_rank_equals_least_squares(rank_two_data):
    X, Y = rank_two_data
    result = fit_reduced_rank_regression(X, Y, 4)
    ols, *_ = np.linalg.lstsq(X, Y, rcond=None)
    np.testing.assert_allclose(result['coefficients'], ols.T, atol=1e-8)


def test_fitted_rank_and_monotone_likelihood(rank_two_data):
    X, Y = rank_two_data
    lls = []
    for rank in range(5):
        result = fit_reduced_rank_regression(X, Y, rank)
        assert np.linalg.matrix_rank(result['coefficients']) == rank
        lls.append(result['log_likelihood'])
    assert all(a <= b + 1e-9 for a, b in zip(lls, lls[1:]))
    # The first two ranks carry the signal
    assert lls[2] - lls[1] > 50
    assert lls[3] - lls[2] < 20
