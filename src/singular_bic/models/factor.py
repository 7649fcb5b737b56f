"""
Maximum likelihood Factor Analysis.

The k-factor model says the covariance of the observed variables is
    Sigma = Lambda @ Lambda.T + Psi
with a (p x k) loading matrix Lambda and a diagonal matrix of uniquenesses
Psi. ML estimation is scale invariant, so we work on the sample correlation
matrix R and map back to the covariance scale at the end.

For fixed uniquenesses the optimal loadings come from an eigendecomposition
of Psi^{-1/2} R Psi^{-1/2}; what remains is a smooth p-dimensional problem
over Psi, solved here with L-BFGS-B under box constraints. Several starts
are tried because the profile objective can have local optima (and Heywood
cases, where a uniqueness runs into its lower bound).
"""

from typing import Dict, Optional

import numpy as np
from scipy.optimize import minimize


# Lower bound on uniquenesses (on the correlation scale)
PSI_LOWER = 0.005


# =============================================================================
# GAUSSIAN LOG-LIKELIHOOD
# =============================================================================

def sample_covariance(data: np.ndarray) -> np.ndarray:
    """Maximum likelihood (divide-by-n) covariance of the rows of ``data``."""
    data = np.asarray(data, dtype=float)
    centered = data - data.mean(axis=0)
    return centered.T @ centered / data.shape[0]


def gaussian_log_likelihood(cov_hat: np.ndarray, sample_cov: np.ndarray, n_obs: int) -> float:
    """
    Profile log-likelihood of a fitted covariance, mean at its MLE.

    Equals -n/2 * (log det Sigma + tr(Sigma^{-1} S)); the 2*pi constant is
    dropped, which is harmless because it is shared by every model fitted to
    the same data.
    """
    sign, logdet = np.linalg.slogdet(cov_hat)
    if sign <= 0:
        return -np.inf
    trace = np.trace(np.linalg.solve(cov_hat, sample_cov))
    return float(-n_obs / 2 * (logdet + trace))


def independence_log_likelihood(data: np.ndarray) -> float:
    """
    Closed-form log-likelihood of the zero-factor model.

    With no factors Sigma is diagonal and its MLE is diag(S), giving
    -n/2 * (sum log diag S + p).
    """
    sample_cov = sample_covariance(data)
    n_obs, p = np.asarray(data).shape
    return float(-n_obs / 2 * (np.sum(np.log(np.diag(sample_cov))) + p))


# =============================================================================
# PROFILE OBJECTIVE OVER UNIQUENESSES
# =============================================================================

def _fa_objective(psi: np.ndarray, corr: np.ndarray, n_factors: int) -> float:
    """
    Discrepancy between R and the best k-factor fit for fixed uniquenesses.

    With e the eigenvalues of Psi^{-1/2} R Psi^{-1/2}, the ML discrepancy is
    -(sum_{j>k} (log e_j - e_j) - k + p).
    """
    scale = 1 / np.sqrt(psi)
    scaled = corr * np.outer(scale, scale)
    eigenvalues = np.linalg.eigvalsh(scaled)[::-1]
    tail = eigenvalues[n_factors:]
    return float(-(np.sum(np.log(tail) - tail) - n_factors + corr.shape[0]))


def _fa_gradient(psi: np.ndarray, corr: np.ndarray, n_factors: int) -> np.ndarray:
    """Gradient of ``_fa_objective`` with respect to the uniquenesses."""
    loadings = _loadings_for(psi, corr, n_factors)
    residual = loadings @ loadings.T + np.diag(psi) - corr
    return np.diag(residual) / psi ** 2


def _loadings_for(psi: np.ndarray, corr: np.ndarray, n_factors: int) -> np.ndarray:
    """Optimal loadings given uniquenesses (correlation scale)."""
    scale = 1 / np.sqrt(psi)
    scaled = corr * np.outer(scale, scale)
    eigenvalues, eigenvectors = np.linalg.eigh(scaled)
    idx = np.argsort(eigenvalues)[::-1][:n_factors]
    loadings = eigenvectors[:, idx] * np.sqrt(np.maximum(eigenvalues[idx] - 1, 0))
    return np.sqrt(psi)[:, np.newaxis] * loadings


# =============================================================================
# MAIN FITTING FUNCTION
# =============================================================================

def fit_factor_analysis(data: np.ndarray, n_factors: int, n_starts: int = 3,
                        max_iter: int = 1000, seed: int = 42,
                        sample_cov: Optional[np.ndarray] = None,
                        n_obs: Optional[int] = None) -> Dict:
    """
    Fit a k-factor model by maximum likelihood.

    The first start is the usual (1 - k / 2p) / diag(R^{-1}); further starts
    are drawn uniformly in (0.1, 0.9). The best converged start wins.

    Args:
        data: (n_observations, n_items) data matrix; may be None when
              ``sample_cov`` and ``n_obs`` are given
        n_factors: Number of factors (>= 1)
        n_starts: Number of optimizer starts
        max_iter: Iteration cap passed to L-BFGS-B
        seed: Seed for the random starts
        sample_cov: Precomputed ML covariance (used by latent forest blocks)
        n_obs: Sample size matching ``sample_cov``

    Returns:
        Dictionary with:
        - loadings: (n_items, n_factors) loadings on the covariance scale
        - uniquenesses: (n_items,) uniquenesses on the covariance scale
        - covariance: Fitted covariance matrix
        - log_likelihood: Maximized log-likelihood (2*pi constant dropped)
        - converged: Whether the optimizer reported success for the best start
        - n_iter: Optimizer iterations for the best start
    """
    if sample_cov is None:
        sample_cov = sample_covariance(data)
        n_obs = np.asarray(data).shape[0]
    p = sample_cov.shape[0]

    sd = np.sqrt(np.diag(sample_cov))
    corr = sample_cov / np.outer(sd, sd)

    rng = np.random.default_rng(seed)
    first = (1 - 0.5 * n_factors / p) / np.diag(np.linalg.inv(corr))
    starts = [np.clip(first, PSI_LOWER, 1.0)]
    starts += [rng.uniform(0.1, 0.9, size=p) for _ in range(n_starts - 1)]

    best = None
    for start in starts:
        result = minimize(
            _fa_objective, start, args=(corr, n_factors),
            jac=_fa_gradient, method='L-BFGS-B',
            bounds=[(PSI_LOWER, 1.0)] * p,
            options={'maxiter': max_iter},
        )
        if best is None or (result.success, -result.fun) > (best.success, -best.fun):
            best = result

    psi = best.x
    loadings = _loadings_for(psi, corr, n_factors)
    corr_hat = loadings @ loadings.T + np.diag(psi)
    cov_hat = corr_hat * np.outer(sd, sd)

    return {
        'loadings': loadings * sd[:, np.newaxis],
        'uniquenesses': psi * sd ** 2,
        'covariance': cov_hat,
        'log_likelihood': gaussian_log_likelihood(cov_hat, sample_cov, n_obs),
        'converged': bool(best.success),
        'n_iter': int(best.nit),
    }
