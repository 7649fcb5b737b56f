"""
Tests for the Gaussian latent forest family.
"""

import numpy as np
import pytest

from singular_bic.exceptions import InvalidRelationError
from singular_bic.families import (LatentForests, LearnCoef, forest_dimension,
                                   forest_is_nested, forest_structures)
from singular_bic.models.factor import independence_log_likelihood
from singular_bic.models.forest import fit_latent_forest


@pytest.fixture(scope="module")
def family():
    return LatentForests(num_covariates=4)


@pytest.fixture
def star_data(rng):
    """500 draws of 4 variables hanging off one latent variable."""
    hub = rng.standard_normal((500, 1))
    return hub @ np.array([[0.9, 0.8, 0.7, 0.6]]) + 0.6 * rng.standard_normal((500, 4))

# ------------------------------------------------------------------------------
# Structures
# ------------------------------------------------------------------------------


def test_number_of_structures_is_bell_number():
    assert [len(forest_structures(m)) for m in (1, 2, 3, 4, 5)] == [1, 2, 5, 15, 52]


def test_first_model_is_empty_forest(family):
    assert family.num_models() == 15
    assert family.get_structure(1) == ((0,), (1,), (2,), (3,))
    assert family.get_dimension(1) == 4
    assert family.poset.minimal_models() == [1]


def test_dimensions():
    assert forest_dimension(((0, 1), (2,), (3,))) == 5
    assert forest_dimension(((0, 1), (2, 3))) == 6
    assert forest_dimension(((0, 1, 2), (3,))) == 7
    assert forest_dimension(((0, 1, 2, 3),)) == 8


def test_nesting_relation():
    star = ((0, 1, 2, 3),)
    assert forest_is_nested(star, ((0, 1), (2,), (3,)))
    assert forest_is_nested(star, ((0, 1, 2), (3,)))
    # Two trees cannot merge into one star
    assert not forest_is_nested(star, ((0, 1), (2, 3)))
    assert not forest_is_nested(((0, 1), (2, 3)), ((0, 2), (1,), (3,)))


def test_poset_is_not_a_chain(family):
    full_star = family.get_model([(0, 1, 2, 3)])
    triples = [family.get_model([t]) for t in [(0, 1, 2), (0, 1, 3), (0, 2, 3), (1, 2, 3)]]
    assert family.parents(full_star) == sorted(triples)
    two_edges = family.get_model([(0, 1), (2, 3)])
    assert family.parents(two_edges) == sorted(
        [family.get_model([(0, 1)]), family.get_model([(2, 3)])]
    )
    assert 1 in family.ancestors(full_star)


def test_dimension_grows_along_poset(family):
    for sup, sub in family.poset.edges():
        assert family.get_dimension(sup) >= family.get_dimension(sub)

# ------------------------------------------------------------------------------
# Learning coefficients
# ------------------------------------------------------------------------------


def test_learning_coefficients(family):
    full_star = family.get_model([(0, 1, 2, 3)])
    edge = family.get_model([(0, 1)])
    triple = family.get_model([(0, 1, 2)])
    two_edges = family.get_model([(0, 1), (2, 3)])

    assert family.learn_coef(full_star, 1) == LearnCoef(3.0, 1)
    assert family.learn_coef(full_star, edge) == LearnCoef(3.5, 1)
    assert family.learn_coef(full_star, triple) == LearnCoef(4.0, 1)
    assert family.learn_coef(two_edges, 1) == LearnCoef(3.0, 1)
    assert family.learn_coef(full_star, full_star) == LearnCoef(4.0, 1)


def test_learning_coefficient_of_unrelated_pair(family):
    with pytest.raises(InvalidRelationError):
        family.learn_coef(family.get_model([(0, 1), (2, 3)]), family.get_model([(0, 1, 2)]))


def test_bounds_never_exceed_regular_value(family):
    for sup in range(1, family.num_models() + 1):
        for sub in family.ancestors(sup):
            assert family.learn_coef(sup, sub).lam <= family.get_dimension(sup) / 2

# ------------------------------------------------------------------------------
# Fits
# ------------------------------------------------------------------------------


def test_empty_forest_is_independence_model(star_data):
    result = fit_latent_forest(star_data, ((0,), (1,), (2,), (3,)))
    assert result['log_likelihood'] == pytest.approx(independence_log_likelihood(star_data))


def test_block_likelihoods_add_up(star_data):
    result = fit_latent_forest(star_data, ((0, 1, 2), (3,)))
    assert result['log_likelihood'] == pytest.approx(sum(result['block_log_likelihoods']))
    assert result['converged']


def test_star_fits_better_than_edges(star_data):
    family = LatentForests(num_covariates=4)
    family.set_data(star_data)
    star = family.log_like_mle(family.get_model([(0, 1, 2, 3)]))
    edges = family.log_like_mle(family.get_model([(0, 1), (2, 3)]))
    empty = family.log_like_mle(1)
    assert star > edges > empty
