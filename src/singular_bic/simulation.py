"""
Simulation studies of model selection.

Data simulators for each model class, a replicate runner that scores freshly
simulated data sets with BIC and sBIC, and a tabulation of how often each
criterion selected each complexity.

Each replicate builds its own family: families hold a fit cache tied to
their bound data, so sharing one family between concurrently running
replicates would mix their fits. ``run_replicates`` only needs a
``map``-shaped callable, so replicates can be spread over processes with
e.g. ``concurrent.futures.ProcessPoolExecutor().map`` as long as the family
factory and simulator are picklable.
"""

import logging
from functools import partial
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .engine import Penalty, score
from .families.base import ModelPoset

logger = logging.getLogger(__name__)


# =============================================================================
# DATA SIMULATORS
# =============================================================================

def simulate_factor_analysis(n: int, loadings: np.ndarray, uniquenesses: np.ndarray,
                             rng: np.random.Generator) -> np.ndarray:
    """Draw n rows from N(0, loadings @ loadings.T + diag(uniquenesses))."""
    loadings = np.asarray(loadings, dtype=float)
    if loadings.ndim == 1:
        loadings = loadings[:, np.newaxis]
    factors = rng.standard_normal((n, loadings.shape[1]))
    noise = rng.standard_normal((n, loadings.shape[0])) * np.sqrt(uniquenesses)
    return factors @ loadings.T + noise


def simulate_latent_classes(n: int, class_probs: Sequence[float], item_probs: Any,
                            rng: np.random.Generator) -> np.ndarray:
    """
    Draw n rows of category codes from a latent class model.

    Args:
        n: Number of observations
        class_probs: (n_classes,) class weights
        item_probs: Either a list with one (n_classes, num_states[v]) array per
                    variable, or an (n_classes, n_vars) matrix of P(x_v = 1)
                    for binary variables
        rng: Random generator

    Returns:
        (n, n_vars) integer matrix
    """
    class_probs = np.asarray(class_probs, dtype=float)
    if isinstance(item_probs, np.ndarray) and item_probs.ndim == 2:
        item_probs = [np.column_stack([1 - p, p]) for p in item_probs.T]

    classes = rng.choice(len(class_probs), size=n, p=class_probs)
    columns = []
    for probs in item_probs:
        cumulative = np.cumsum(np.asarray(probs, dtype=float)[classes], axis=1)
        u = rng.random(n)[:, np.newaxis]
        codes = (u > cumulative).sum(axis=1)
        columns.append(np.minimum(codes, cumulative.shape[1] - 1))
    return np.column_stack(columns)


def simulate_gaussian_mixture(n: int, weights: Sequence[float], means: np.ndarray,
                              covariances: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Draw n rows from a Gaussian mixture with full covariances."""
    weights = np.asarray(weights, dtype=float)
    means = np.asarray(means, dtype=float)
    covariances = np.asarray(covariances, dtype=float)
    components = rng.choice(len(weights), size=n, p=weights)
    data = np.empty((n, means.shape[1]))
    for k in range(len(weights)):
        rows = components == k
        data[rows] = rng.multivariate_normal(means[k], covariances[k], size=int(rows.sum()))
    return data


def simulate_reduced_rank(n: int, coefficients: np.ndarray,
                          rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    """
    Draw (X, Y) with standard normal covariates and Y = X @ C.T + noise.

    ``coefficients`` is the (N, M) matrix C; the noise is standard normal.
    """
    coefficients = np.asarray(coefficients, dtype=float)
    num_responses, num_covariates = coefficients.shape
    X = rng.standard_normal((n, num_covariates))
    Y = X @ coefficients.T + rng.standard_normal((n, num_responses))
    return X, Y


# =============================================================================
# REPLICATES
# =============================================================================

def _run_replicate(job: Tuple[int, np.random.SeedSequence],
                   make_family: Callable[[], ModelPoset],
                   simulate: Callable[[np.random.Generator], Any],
                   penalty: Optional[Penalty],
                   score_options: Dict) -> Dict:
    replicate, seed_seq = job
    rng = np.random.default_rng(seed_seq)
    family = make_family()
    result = score(family, simulate(rng), penalty, **score_options)
    logger.debug(f"Replicate {replicate}: BIC {result.selected_bic}, sBIC {result.selected_sbic}")
    return {'replicate': replicate, 'BIC': result.selected_bic, 'sBIC': result.selected_sbic}


def run_replicates(make_family: Callable[[], ModelPoset],
                   simulate: Callable[[np.random.Generator], Any],
                   num_replicates: int, penalty: Optional[Penalty] = None,
                   seed: int = 0, map_fn: Callable[..., Iterable] = map,
                   **score_options) -> pd.DataFrame:
    """
    Score ``num_replicates`` simulated data sets.

    Args:
        make_family: Zero-argument factory returning a fresh family
        simulate: ``simulate(rng)`` returning one data set
        num_replicates: Number of replicates
        penalty: Penalty passed to ``score``
        seed: Root seed; replicate k draws from the k-th spawned child seed
        map_fn: Parallel-map capability, ``map_fn(function, iterable)``
        **score_options: Passed through to ``score``

    Returns:
        DataFrame with columns replicate, BIC and sBIC (selected complexities)
    """
    seeds = np.random.SeedSequence(seed).spawn(num_replicates)
    worker = partial(_run_replicate, make_family=make_family, simulate=simulate,
                     penalty=penalty, score_options=score_options)
    logger.info(f"Running {num_replicates} replicates (seed {seed})")
    rows = list(map_fn(worker, enumerate(seeds)))
    return pd.DataFrame(rows, columns=['replicate', 'BIC', 'sBIC'])


def tabulate_selections(selections: pd.DataFrame,
                        criteria: Sequence[str] = ('BIC', 'sBIC'),
                        normalize: bool = False) -> pd.DataFrame:
    """
    Count how often each criterion selected each complexity.

    Returns:
        DataFrame with one row per criterion and one column per selected
        complexity (proportions per criterion when ``normalize``)
    """
    long = selections.melt(id_vars='replicate', value_vars=list(criteria),
                           var_name='criterion', value_name='complexity')
    return pd.crosstab(long['criterion'], long['complexity'],
                       normalize='index' if normalize else False)
