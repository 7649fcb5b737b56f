"""
Reduced-rank regression with unit noise covariance.

The model is Y = X @ C.T + E with a (N x M) coefficient matrix C of rank at
most H and E having i.i.d. standard normal rows. With identity noise
covariance the ML estimate of rank H is obtained by projecting the least
squares fitted values onto their top H right singular vectors, so every
model in the poset has a closed-form fit.
"""

from typing import Dict

import numpy as np


def _residual_log_likelihood(residuals: np.ndarray) -> float:
    """-1/2 * ||residuals||^2 - nN/2 * log(2 pi)."""
    n_obs, n_responses = residuals.shape
    return float(-0.5 * np.sum(residuals ** 2) - n_obs * n_responses / 2 * np.log(2 * np.pi))


def fit_reduced_rank_regression(X: np.ndarray, Y: np.ndarray, rank: int) -> Dict:
    """
    Fit a reduced-rank regression of a given rank.

    Args:
        X: (n_obs, M) covariates
        Y: (n_obs, N) responses
        rank: Rank H of the coefficient matrix (0 gives the null model)

    Returns:
        Dictionary with:
        - coefficients: (N, M) fitted coefficient matrix of rank <= H
        - singular_values: Singular values of the least squares fitted values
        - log_likelihood: Maximized log-likelihood
        - converged: Always True (closed form)
    """
    X = np.asarray(X, dtype=float)
    Y = np.asarray(Y, dtype=float)

    if rank == 0:
        return {
            'coefficients': np.zeros((Y.shape[1], X.shape[1])),
            'singular_values': np.array([]),
            'log_likelihood': _residual_log_likelihood(Y),
            'converged': True,
        }

    # Full-rank least squares, then truncate the fitted values
    ols, *_ = np.linalg.lstsq(X, Y, rcond=None)          # (M, N)
    fitted = X @ ols                                     # (n_obs, N)
    _, singular_values, vt = np.linalg.svd(fitted, full_matrices=False)
    projection = vt[:rank].T @ vt[:rank]                 # (N, N)
    coefficients = (ols @ projection).T                  # (N, M)

    residuals = Y - X @ coefficients.T
    return {
        'coefficients': coefficients,
        'singular_values': singular_values,
        'log_likelihood': _residual_log_likelihood(residuals),
        'converged': True,
    }
