"""
Latent Class Analysis (LCA) for categorical data.

LCA posits that each observation belongs to one of K discrete latent
classes, and that the observed categorical variables are independent given
the class. Each class has its own probability profile over the categories
of every variable.

The model is fit by maximum likelihood using the Expectation-Maximization
(EM) algorithm:
- E-step: Compute posterior probability of class membership for each row
- M-step: Update class weights and per-class category probabilities

Data are integer codes: column ``v`` holds values in ``0..num_states[v]-1``.
Internally the codes are one-hot encoded so that both steps are single
matrix products over all variables at once.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.special import logsumexp


# =============================================================================
# ENCODING
# =============================================================================

def one_hot_encode(data: np.ndarray, num_states: Sequence[int]) -> np.ndarray:
    """
    One-hot encode a matrix of category codes.

    Args:
        data: (n_obs, n_vars) integer matrix, column v in 0..num_states[v]-1
        num_states: Number of categories of each variable

    Returns:
        (n_obs, sum(num_states)) 0/1 matrix, variables laid out side by side
    """
    data = np.asarray(data, dtype=int)
    offsets = np.concatenate([[0], np.cumsum(num_states)[:-1]])
    encoded = np.zeros((data.shape[0], int(np.sum(num_states))))
    rows = np.arange(data.shape[0])
    for v, offset in enumerate(offsets):
        encoded[rows, offset + data[:, v]] = 1.0
    return encoded


def _block_slices(num_states: Sequence[int]) -> List[slice]:
    """Column slices of each variable inside the one-hot layout."""
    bounds = np.concatenate([[0], np.cumsum(num_states)])
    return [slice(int(bounds[v]), int(bounds[v + 1])) for v in range(len(num_states))]


# =============================================================================
# INITIALIZATION
# =============================================================================

def initialize_lca_parameters(n_classes: int, num_states: Sequence[int],
                              rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    """
    Initialize LCA parameters randomly.

    Uses a uniform Dirichlet for the class weights and, for every class and
    variable, a Dirichlet(2, ..., 2) draw for the category probabilities so
    that no starting probability sits on the boundary.

    Returns:
        Tuple of (class_probs, item_probs) where:
        - class_probs: (n_classes,) class weights
        - item_probs: (n_classes, sum(num_states)) category probabilities,
          each variable's block summing to one within a class
    """
    class_probs = rng.dirichlet(np.ones(n_classes))
    blocks = [rng.dirichlet(2 * np.ones(s), size=n_classes) for s in num_states]
    item_probs = np.concatenate(blocks, axis=1)
    return class_probs, item_probs


# =============================================================================
# EM ALGORITHM STEPS
# =============================================================================

def lca_e_step(encoded: np.ndarray, class_probs: np.ndarray,
               item_probs: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    E-step: posterior class memberships and the observed-data log-likelihood.

    Calculations are done in log-space; the log-likelihood is a byproduct of
    normalizing the responsibilities so it costs nothing extra.

    Args:
        encoded: (n_obs, n_cols) one-hot data
        class_probs: (n_classes,) class weights
        item_probs: (n_classes, n_cols) category probabilities

    Returns:
        (responsibilities, log_likelihood)
    """
    log_item_probs = np.log(item_probs + 1e-300)
    log_class_probs = np.log(class_probs + 1e-300)

    # log P(c) + sum_v log P(x_v | c), for every row and class at once
    log_joint = log_class_probs + encoded @ log_item_probs.T
    log_marginal = logsumexp(log_joint, axis=1)
    responsibilities = np.exp(log_joint - log_marginal[:, np.newaxis])
    return responsibilities, float(log_marginal.sum())


def lca_m_step(encoded: np.ndarray, responsibilities: np.ndarray,
               num_states: Sequence[int]) -> Tuple[np.ndarray, np.ndarray]:
    """
    M-step: closed-form updates given the soft class assignments.

    Returns:
        Tuple of (class_probs, item_probs)
    """
    n_obs = encoded.shape[0]
    class_counts = responsibilities.sum(axis=0)
    class_probs = class_counts / n_obs

    # Expected category counts per class, normalized within each variable
    weighted = responsibilities.T @ encoded
    item_probs = np.empty_like(weighted)
    for block in _block_slices(num_states):
        totals = weighted[:, block].sum(axis=1, keepdims=True)
        item_probs[:, block] = weighted[:, block] / np.maximum(totals, 1e-300)

    return class_probs, item_probs


def independence_log_likelihood(data: np.ndarray, num_states: Sequence[int]) -> float:
    """
    Closed-form maximum log-likelihood of the one-class model.

    With a single class the variables are independent multinomials, so the
    MLE is the vector of observed category frequencies.
    """
    encoded = one_hot_encode(data, num_states)
    counts = encoded.sum(axis=0)
    n_obs = encoded.shape[0]
    nonzero = counts > 0
    return float(np.sum(counts[nonzero] * np.log(counts[nonzero] / n_obs)))


# =============================================================================
# MAIN FITTING FUNCTION
# =============================================================================

def fit_lca(data: np.ndarray, n_classes: int, num_states: Optional[Sequence[int]] = None,
            max_iter: int = 1000, tol: float = 1e-6, n_init: int = 10,
            seed: int = 42) -> Dict:
    """
    Fit a latent class model by EM with several random starts.

    Runs ``n_init`` initializations and keeps the solution with the highest
    log-likelihood among the runs that converged (or among all runs if none
    did, in which case ``converged`` is False).

    Args:
        data: (n_obs, n_vars) integer category codes
        n_classes: Number of latent classes to fit
        num_states: Categories per variable; inferred from the data if omitted
        max_iter: Maximum EM iterations per initialization
        tol: Convergence tolerance on the log-likelihood improvement
        n_init: Number of random initializations
        seed: Seed of the generator drawing the initializations

    Returns:
        Dictionary with:
        - class_probs: (n_classes,) class weights
        - item_probs: list of (n_classes, num_states[v]) arrays, one per variable
        - responsibilities: (n_obs, n_classes) posterior memberships
        - log_likelihood: Maximized log-likelihood
        - converged: Whether the returned run met the tolerance
        - n_iter: Iterations used by the returned run
        - n_classes: Number of classes (for reference)
    """
    data = np.asarray(data, dtype=int)
    if num_states is None:
        num_states = [int(data[:, v].max()) + 1 for v in range(data.shape[1])]
    encoded = one_hot_encode(data, num_states)
    rng = np.random.default_rng(seed)

    best = None
    for init in range(n_init):
        class_probs, item_probs = initialize_lca_parameters(n_classes, num_states, rng)

        prev_ll = -np.inf
        converged = False
        for iteration in range(max_iter):
            responsibilities, ll = lca_e_step(encoded, class_probs, item_probs)
            class_probs, item_probs = lca_m_step(encoded, responsibilities, num_states)

            # EM never decreases the likelihood, so the change is the improvement
            if abs(ll - prev_ll) < tol:
                converged = True
                break
            prev_ll = ll

        # Score the final parameters, not the ones from the last E-step
        responsibilities, ll = lca_e_step(encoded, class_probs, item_probs)
        candidate = {
            'class_probs': class_probs.copy(),
            'item_probs': [item_probs[:, block].copy() for block in _block_slices(num_states)],
            'responsibilities': responsibilities,
            'log_likelihood': ll,
            'converged': converged,
            'n_iter': iteration + 1,
        }
        # Prefer converged runs, then higher likelihood
        if best is None or (converged, ll) > (best['converged'], best['log_likelihood']):
            best = candidate

    best['n_classes'] = n_classes
    return best
