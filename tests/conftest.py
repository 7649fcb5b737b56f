"""
Shared test fixtures and configuration for singular_bic tests.
"""

import numpy as np
import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--runslow",
        action="store_true",
        default=False,
        help="Run simulation studies marked as slow",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--runslow"):
        return
    skip_slow = pytest.mark.skip(reason="needs --runslow")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def rng():
    """Seeded generator, fresh for every test."""
    return np.random.default_rng(20240617)


@pytest.fixture
def factor_data(rng):
    """300 draws of 5 variables from a one-factor model."""
    loadings = np.array([0.9, 0.8, 0.7, 0.6, 0.5])[:, np.newaxis]
    factors = rng.standard_normal((300, 1))
    return factors @ loadings.T + rng.standard_normal((300, 5)) * 0.5
