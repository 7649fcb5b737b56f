"""
Gaussian mixture models with full covariance matrices.

Fitting is delegated to scikit-learn's EM implementation with several
initializations; the single-component model has a closed form (sample mean
and ML covariance) and never touches the optimizer.
"""

import warnings
from typing import Dict

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.mixture import GaussianMixture


def _as_matrix(data: np.ndarray) -> np.ndarray:
    """Univariate data may be passed as a flat vector."""
    data = np.asarray(data, dtype=float)
    return data[:, np.newaxis] if data.ndim == 1 else data


def single_gaussian_log_likelihood(data: np.ndarray) -> float:
    """
    Closed-form log-likelihood of one Gaussian at its MLE.

    -n/2 * (d log(2 pi) + log det S + d), S the divide-by-n covariance.
    """
    data = _as_matrix(data)
    n_obs, dim = data.shape
    centered = data - data.mean(axis=0)
    cov = centered.T @ centered / n_obs
    _, logdet = np.linalg.slogdet(cov)
    return float(-n_obs / 2 * (dim * np.log(2 * np.pi) + logdet + dim))


def fit_gaussian_mixture(data: np.ndarray, n_components: int, n_init: int = 10,
                         max_iter: int = 1000, tol: float = 1e-6,
                         seed: int = 42) -> Dict:
    """
    Fit a Gaussian mixture by EM.

    Args:
        data: (n_obs, dim) observations (or a flat vector when dim == 1)
        n_components: Number of mixture components
        n_init: Number of EM initializations (best one is kept)
        max_iter: Maximum EM iterations per initialization
        tol: Convergence threshold on the per-sample lower bound
        seed: Random state passed to scikit-learn

    Returns:
        Dictionary with:
        - weights: (n_components,) mixture weights
        - means: (n_components, dim) component means
        - covariances: (n_components, dim, dim) component covariances
        - log_likelihood: Total log-likelihood of the fitted mixture
        - converged: Whether EM met the tolerance
        - n_iter: EM iterations of the best initialization
    """
    data = _as_matrix(data)
    model = GaussianMixture(
        n_components=n_components,
        covariance_type='full',
        n_init=n_init,
        max_iter=max_iter,
        tol=tol,
        random_state=seed,
    )
    # Non-convergence is reported through the 'converged' flag instead
    with warnings.catch_warnings():
        warnings.simplefilter('ignore', category=ConvergenceWarning)
        model.fit(data)

    return {
        'weights': model.weights_,
        'means': model.means_,
        'covariances': model.covariances_,
        # score() is the mean per-sample log-likelihood
        'log_likelihood': float(model.score(data) * data.shape[0]),
        'converged': bool(model.converged_),
        'n_iter': int(model.n_iter_),
    }
