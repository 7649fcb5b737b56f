"""
Maximum likelihood fit routines for the model families.

Each module holds the fitting logic for one model class together with the
closed-form log-likelihood of its simplest member. Every routine returns a
dictionary with at least ``log_likelihood`` and ``converged``.

Available Models:
- Factor Analysis (factor.py): ML factor analysis via L-BFGS-B over uniquenesses
- LCA (lca.py): Latent Class Analysis via EM algorithm
- Gaussian mixtures (mixture.py): EM through scikit-learn
- Reduced-rank regression (reduced_rank.py): truncated SVD of least squares
- Latent forests (forest.py): per-block Gaussian fits of edges and stars
"""

from .factor import (
    fit_factor_analysis,
    gaussian_log_likelihood,
    independence_log_likelihood as factor_independence_log_likelihood,
    sample_covariance,
)
from .forest import fit_latent_forest
from .lca import (
    fit_lca,
    independence_log_likelihood as lca_independence_log_likelihood,
    one_hot_encode,
)
from .mixture import fit_gaussian_mixture, single_gaussian_log_likelihood
from .reduced_rank import fit_reduced_rank_regression

__all__ = [
    'fit_factor_analysis',
    'gaussian_log_likelihood',
    'factor_independence_log_likelihood',
    'sample_covariance',
    'fit_latent_forest',
    'fit_lca',
    'lca_independence_log_likelihood',
    'one_hot_encode',
    'fit_gaussian_mixture',
    'single_gaussian_log_likelihood',
    'fit_reduced_rank_regression',
]
