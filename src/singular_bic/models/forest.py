"""
Gaussian latent forests whose trees are edges or latent stars.

A forest structure is a set partition of the observed variables:
- a singleton block is an isolated variable
- a pair block is an edge between two observed variables (one free correlation)
- a block of three or more variables hangs off one latent hub (a star),
  which is a one-factor model restricted to that block

Blocks are independent, so the fitted covariance is block diagonal and the
log-likelihood is the sum of the block log-likelihoods.
"""

from typing import Dict, Sequence, Tuple

import numpy as np

from .factor import fit_factor_analysis, gaussian_log_likelihood, sample_covariance

Structure = Tuple[Tuple[int, ...], ...]


def fit_latent_forest(data: np.ndarray, structure: Structure, n_starts: int = 3,
                      seed: int = 42) -> Dict:
    """
    Fit a latent forest with the given block structure.

    Args:
        data: (n_obs, p) observations
        structure: Partition of 0..p-1 into blocks (tuples of column indices)
        n_starts: Optimizer starts for each star block
        seed: Seed for the star blocks' random starts

    Returns:
        Dictionary with:
        - covariance: Fitted block-diagonal covariance
        - block_log_likelihoods: One entry per block
        - log_likelihood: Total log-likelihood (2*pi constant dropped)
        - converged: True when every star block converged
    """
    data = np.asarray(data, dtype=float)
    n_obs, p = data.shape
    sample_cov = sample_covariance(data)

    covariance = np.zeros((p, p))
    block_lls = []
    converged = True
    for block in structure:
        idx = np.asarray(block, dtype=int)
        block_cov = sample_cov[np.ix_(idx, idx)]
        if len(block) <= 2:
            # Isolated variables and edges are saturated on their block
            fitted = block_cov if len(block) == 2 else np.diag(np.diag(block_cov))
        else:
            result = fit_factor_analysis(None, 1, n_starts=n_starts, seed=seed,
                                         sample_cov=block_cov, n_obs=n_obs)
            fitted = result['covariance']
            converged = converged and result['converged']
        covariance[np.ix_(idx, idx)] = fitted
        block_lls.append(gaussian_log_likelihood(fitted, block_cov, n_obs))

    return {
        'covariance': covariance,
        'block_log_likelihoods': block_lls,
        'log_likelihood': float(np.sum(block_lls)),
        'converged': converged,
    }


def partition_blocks(structure: Structure) -> Sequence[Tuple[int, ...]]:
    """Non-singleton blocks of a structure."""
    return [block for block in structure if len(block) > 1]
