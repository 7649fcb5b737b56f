"""
Tests for the BIC / sBIC scoring engine.
"""

import time

import numpy as np
import pandas as pd
import pytest

from singular_bic.engine import _solve_log_root, score
from singular_bic.exceptions import DataNotSetError, InvalidPenaltyError
from singular_bic.families import (CustomModelPoset, FamilyState, GaussianMixtures,
                                   LatentClassAnalyses)
from singular_bic.poset import Poset
from singular_bic.simulation import simulate_latent_classes

DATA = np.zeros((100, 1))


def _chain_family(log_likelihoods, dimensions, learn_coef_fn=None, converged=None):
    """Chain family whose fits return fixed log-likelihoods."""
    converged = converged or {}

    def fit(data, complexity, **options):
        return {'log_likelihood': log_likelihoods[complexity - 1],
                'converged': converged.get(complexity, True)}

    if learn_coef_fn is None:
        learn_coef_fn = lambda sup, sub: ((dimensions[sup - 1] + dimensions[sub - 1]) / 4, 1)
    return CustomModelPoset(Poset.chain(len(dimensions)), dimensions, learn_coef_fn, fit)

# ------------------------------------------------------------------------------
# Quadratic solver
# ------------------------------------------------------------------------------


@pytest.mark.parametrize("p, lii, b, c", [
    (1.0, 1.0, 1.0, 1.0),
    (0.5, 2.0, 0.1, 3.0),
    (2.0, 1e-3, 5.0, 1e-2),
])
def test_log_root_solves_quadratic(p, lii, b, c):
    x = np.exp(_solve_log_root(np.log(p), np.log(lii), np.log(b), np.log(c)))
    assert p * x ** 2 + (b - p * lii) * x - c == pytest.approx(0.0, abs=1e-10 * max(1.0, c))
    assert x > 0


def test_log_root_survives_extreme_scales():
    # Same equation shifted by exp(-5000): the log root shifts by -5000
    base = _solve_log_root(0.0, 0.0, np.log(0.3), np.log(0.7))
    shifted = _solve_log_root(0.0, -5000.0, np.log(0.3) - 5000.0, np.log(0.7) - 10000.0)
    assert np.isfinite(shifted)
    assert shifted == pytest.approx(base - 5000.0)

# ------------------------------------------------------------------------------
# Scores
# ------------------------------------------------------------------------------


def test_bic_column_and_minimal_model():
    family = _chain_family([-50.0, -45.0, -44.0], [1, 3, 5])
    result = score(family, DATA)
    table = result.table
    assert list(table.index) == [1, 2, 3]
    expected_bic = 2 * np.array([-50.0, -45.0, -44.0]) - np.array([1, 3, 5]) * np.log(100)
    np.testing.assert_allclose(table['BIC'], expected_bic)
    # A model without submodels gets exactly its BIC
    assert table.loc[1, 'sBIC'] == table.loc[1, 'BIC']
    assert table.loc[1, 'dominant'] == 1


def test_sbic_solves_fixed_point_equation():
    lls = [-10.0, -8.0]
    coefs = {(1, 1): 0.5, (2, 2): 1.0, (2, 1): 0.75}
    family = _chain_family(lls, [1, 2], learn_coef_fn=lambda sup, sub: (coefs[sup, sub], 1))
    result = score(family, DATA)

    n = 100
    l11 = np.exp(lls[0]) * n ** -0.5
    l22 = np.exp(lls[1]) * n ** -1.0
    l21 = np.exp(lls[1]) * n ** -0.75
    l1 = np.exp(result.table.loc[1, 'sBIC'] / 2)
    l2 = np.exp(result.table.loc[2, 'sBIC'] / 2)
    assert l1 == pytest.approx(l11)
    assert (l2 - l22) * l2 + (l2 - l21) * l1 == pytest.approx(0.0, abs=1e-14)


def test_sbic_is_finite_for_large_samples():
    family = _chain_family([-5000.0, -4990.0, -4989.0], [2, 5, 8])
    result = score(family, np.zeros((2000, 1)))
    assert np.all(np.isfinite(result.table['sBIC']))


def test_multiplicity_adds_log_log_term():
    family = _chain_family([-10.0, -9.0], [1, 3],
                           learn_coef_fn=lambda sup, sub: (1.0, 2))
    plain = _chain_family([-10.0, -9.0], [1, 3],
                          learn_coef_fn=lambda sup, sub: (1.0, 1))
    with_m = score(family, DATA).table.loc[2, 'sBIC']
    without_m = score(plain, DATA).table.loc[2, 'sBIC']
    assert with_m > without_m


def test_selection_and_relative_view():
    family = _chain_family([-50.0, -30.0, -29.5], [1, 3, 5])
    result = score(family, DATA)
    table = result.table
    assert result.selected_bic == int(table['BIC'].idxmax())
    assert result.selected_sbic == int(table['sBIC'].idxmax())
    relative = result.relative()
    assert relative['BIC'].max() == 0.0
    assert relative['sBIC'].max() == 0.0


def test_diamond_poset_scores():
    poset = Poset.from_edges(4, [(2, 1), (3, 1), (4, 2), (4, 3)])
    lls = {1: -40.0, 2: -35.0, 3: -36.0, 4: -34.5}
    family = CustomModelPoset(
        poset, [2, 4, 4, 6],
        learn_coef_fn=lambda sup, sub: (1.0 + 0.5 * sub, 1),
        fit_fn=lambda data, complexity, **options: {'log_likelihood': lls[complexity]},
    )
    result = score(family, DATA)
    assert np.all(np.isfinite(result.table['sBIC']))
    assert result.table['dominant'].notna().all()


def test_score_is_idempotent():
    family = _chain_family([-50.0, -45.0, -44.0], [1, 3, 5])
    first = score(family, DATA).table
    second = score(family, DATA).table
    pd.testing.assert_frame_equal(first, second)

# ------------------------------------------------------------------------------
# Re-scoring and state
# ------------------------------------------------------------------------------


@pytest.fixture
def lca_family(rng):
    data = simulate_latent_classes(150, [0.5, 0.5], np.array([[0.8] * 5, [0.2] * 5]), rng)
    family = LatentClassAnalyses(num_states=2, num_variables=5, max_num_classes=2)
    return family, data


def test_penalty_change_does_not_refit(lca_family):
    family, data = lca_family
    first = score(family, data, n_init=2)
    assert family.state == FamilyState.FULLY_FITTED
    writes = family.fit_cache.writes

    second = score(family, None, penalty=10.0)
    assert family.fit_cache.writes == writes
    assert family.get_penalty() == {'phi': 10.0}
    pd.testing.assert_series_equal(first.table['BIC'], second.table['BIC'])
    pd.testing.assert_series_equal(first.table['log_likelihood'],
                                   second.table['log_likelihood'])
    # Only the bounds moved: sBIC follows the new phi
    assert not first.table['sBIC'].equals(second.table['sBIC'])


def test_new_data_refits(lca_family):
    family, data = lca_family
    score(family, data, n_init=2)
    writes = family.fit_cache.writes
    score(family, data[:100], n_init=2)
    assert family.fit_cache.writes == writes + 2


def test_score_without_data():
    family = _chain_family([-1.0, -0.5], [1, 2])
    assert family.state == FamilyState.CONSTRUCTED
    with pytest.raises(DataNotSetError):
        score(family)


def test_unknown_penalty():
    family = _chain_family([-1.0, -0.5], [1, 2])
    with pytest.raises(InvalidPenaltyError):
        score(family, DATA, penalty=2.0)


def test_non_family_rejected():
    with pytest.raises(TypeError):
        score(object(), DATA)

# ------------------------------------------------------------------------------
# Failures
# ------------------------------------------------------------------------------


def test_failed_fit_is_reported_as_nan():
    family = _chain_family([-50.0, -45.0, -44.0], [1, 3, 5], converged={2: False})
    result = score(family, DATA)
    table = result.table
    assert np.isnan(table.loc[2, 'log_likelihood'])
    assert np.isnan(table.loc[2, 'BIC'])
    assert np.isnan(table.loc[2, 'sBIC'])
    assert pd.isna(table.loc[2, 'dominant'])
    assert np.isfinite(table.loc[3, 'sBIC'])
    assert result.selected_sbic != 2
    assert family.state == FamilyState.PARTIALLY_FITTED


def test_failed_fit_is_retried_on_rescoring():
    attempts = []

    def flaky(data, complexity, **options):
        attempts.append(complexity)
        if complexity == 2 and attempts.count(2) == 1:
            raise np.linalg.LinAlgError("singular matrix")
        return {'log_likelihood': -10.0 + complexity}

    family = CustomModelPoset(Poset.chain(2), [1, 2], lambda sup, sub: (0.75, 1), flaky)
    assert np.isnan(score(family, DATA).table.loc[2, 'sBIC'])
    assert np.isfinite(score(family).table.loc[2, 'sBIC'])
    assert attempts.count(1) == 1


def test_timed_out_fit_is_unavailable():
    def slow_second(data, complexity, **options):
        if complexity == 2:
            time.sleep(1.0)
        return {'log_likelihood': -10.0 + complexity}

    family = CustomModelPoset(Poset.chain(3), [1, 2, 3], lambda sup, sub: (0.5 * sub, 1),
                              slow_second)
    result = score(family, DATA, n_jobs=3, fit_timeout=0.1)
    assert np.isnan(result.table.loc[2, 'sBIC'])
    assert np.isfinite(result.table.loc[3, 'sBIC'])


def test_fit_raising_arbitrary_error_is_unavailable():
    def broken_second(data, complexity, **options):
        if complexity == 2:
            raise ValueError("bad starting values")
        return {'log_likelihood': -10.0 + complexity}

    family = CustomModelPoset(Poset.chain(3), [1, 2, 3], lambda sup, sub: (0.5 * sub, 1),
                              broken_second)
    table = score(family, DATA).table
    assert np.isnan(table.loc[2, 'sBIC'])
    assert np.isfinite(table.loc[1, 'sBIC'])
    assert np.isfinite(table.loc[3, 'sBIC'])


def test_fit_without_log_likelihood_is_unavailable():
    def incomplete(data, complexity, **options):
        if complexity == 2:
            return {'converged': True}
        return {'log_likelihood': -10.0 + complexity}

    family = CustomModelPoset(Poset.chain(2), [1, 2], lambda sup, sub: (0.75, 1), incomplete)
    table = score(family, DATA).table
    assert np.isnan(table.loc[2, 'log_likelihood'])
    assert np.isfinite(table.loc[1, 'sBIC'])


def test_more_components_than_samples_is_unavailable(rng):
    family = GaussianMixtures(dim=1, max_num_components=8)
    result = score(family, rng.standard_normal(6), n_init=1)
    table = result.table
    assert np.isnan(table.loc[7, 'sBIC'])
    assert np.isnan(table.loc[8, 'sBIC'])
    assert np.isfinite(table.loc[1, 'sBIC'])
    assert result.selected_sbic is not None


def test_queued_fits_are_not_charged_for_a_slow_fit():
    def slow_second(data, complexity, **options):
        if complexity == 2:
            time.sleep(1.0)
        return {'log_likelihood': -10.0 + complexity}

    family = CustomModelPoset(Poset.chain(4), [1, 2, 3, 4], lambda sup, sub: (0.5 * sub, 1),
                              slow_second)
    # One worker: models 3 and 4 wait in the queue behind model 2
    table = score(family, DATA, n_jobs=1, fit_timeout=0.3).table
    assert np.isnan(table.loc[2, 'sBIC'])
    assert np.isfinite(table.loc[3, 'sBIC'])
    assert np.isfinite(table.loc[4, 'sBIC'])
