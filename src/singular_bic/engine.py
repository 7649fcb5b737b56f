"""
Singular BIC scoring engine.

Given a model family with bound data, ``score`` computes for every model the
ordinary BIC and the singular BIC (sBIC) of Drton and Plummer (2017).

For model i with maximized log-likelihood ll_i, and any submodel j of i
(including i itself) with learning coefficient bound (lam_ij, m_ij), let

    L_ij = exp(ll_i) * n^(-lam_ij) * (log n)^(m_ij - 1).

Processing models simplest first, the sBIC quantity L'_i solves

    sum_{j <= i} (L'_i - L_ij) L'_j p_j = 0,

with p the prior weights. Splitting off the j = i term gives the quadratic

    p_i x^2 + (b - p_i L_ii) x - c = 0,
    b = sum_{j < i} p_j L'_j,   c = sum_{j < i} p_j L'_j L_ij,

whose unique positive root is L'_i. Everything is done in log space after
rescaling each equation by its natural scale, so that log-likelihoods in the
thousands neither overflow nor underflow. sBIC_i = 2 log L'_i is on the same
scale as BIC_i = 2 ll_i - dim_i log n, and equals it exactly for a model with
no available submodel.
"""

import concurrent.futures
import logging
import time
from collections.abc import Mapping
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy.special import logsumexp

from .config import get_settings
from .exceptions import FitFailureError
from .families.base import LearnCoef, ModelPoset

logger = logging.getLogger(__name__)

Penalty = Union[float, Mapping]


# =============================================================================
# SCORE TABLE
# =============================================================================

@dataclass
class ScoreTable:
    """
    Result of one scoring call.

    Attributes:
        table: DataFrame indexed by model id with columns complexity,
               dimension, log_likelihood, BIC, sBIC and dominant (the
               submodel whose term dominates the sBIC equation)
        selected_bic: Complexity of the BIC-maximizing model (None if no
                      model could be fitted)
        selected_sbic: Complexity of the sBIC-maximizing model
        num_samples: Sample size the scores were computed for
        penalty: Penalty parameters in effect
    """
    table: pd.DataFrame
    selected_bic: Any
    selected_sbic: Any
    num_samples: int
    penalty: Dict[str, float] = field(default_factory=dict)

    @property
    def bic(self) -> pd.Series:
        return self.table['BIC']

    @property
    def sbic(self) -> pd.Series:
        return self.table['sBIC']

    def relative(self) -> pd.DataFrame:
        """Scores with each criterion's maximum subtracted (best model at 0)."""
        relative = self.table.copy()
        for column in ('log_likelihood', 'BIC', 'sBIC'):
            relative[column] = relative[column] - relative[column].max()
        return relative


# =============================================================================
# FITTING
# =============================================================================

def _fit_batch(family: ModelPoset, models: List[int], n_jobs: int,
               fit_timeout: Optional[float], fit_options: Dict,
               started: Dict[int, float], log_likelihoods: np.ndarray) -> List[int]:
    """
    Fit ``models`` on a fresh thread pool, writing into ``log_likelihoods``.

    Each fit's timeout runs from the moment it starts, so fits queued behind
    a slow one keep their full allowance. Once a running fit exceeds its
    timeout it is abandoned and the pool is released without waiting for
    it; the models not yet collected are returned for resubmission.
    """
    def fit(model: int) -> float:
        started.setdefault(model, time.monotonic())
        return family.log_like_mle(model, **fit_options)

    executor = ThreadPoolExecutor(max_workers=n_jobs)
    futures = {executor.submit(fit, model): model for model in models}
    pending = set(futures)
    stalled = False
    try:
        while pending and not stalled:
            wait_for = fit_timeout
            if fit_timeout is not None:
                now = time.monotonic()
                deadlines = [started[futures[f]] + fit_timeout
                             for f in pending if futures[f] in started]
                if deadlines:
                    wait_for = max(0.0, min(deadlines) - now)
            done, pending = concurrent.futures.wait(pending, timeout=wait_for,
                                                    return_when=FIRST_COMPLETED)

            for future in done:
                model = futures[future]
                try:
                    log_likelihoods[model - 1] = future.result()
                except FitFailureError as exc:
                    logger.warning(f"Model {model} unavailable: {exc}")

            if fit_timeout is None:
                continue
            now = time.monotonic()
            for future in list(pending):
                model = futures[future]
                if model in started and now - started[model] >= fit_timeout:
                    stalled = True
                    pending.discard(future)
                    logger.warning(f"Model {model} unavailable: fit exceeded {fit_timeout} s")
    finally:
        for future in pending:
            future.cancel()
        # Running fits cannot be interrupted; do not block on them after a timeout
        executor.shutdown(wait=not stalled)

    # Fits still running here are rejoined through the cache's in-flight entry
    return sorted(futures[f] for f in pending)


def _fit_all(family: ModelPoset, n_jobs: int, fit_timeout: Optional[float],
             fit_options: Dict) -> np.ndarray:
    """Maximized log-likelihood of every model, NaN where the fit failed."""
    num_models = family.num_models()
    log_likelihoods = np.full(num_models, np.nan)
    missing = family.fit_cache.missing()

    for model in range(1, num_models + 1):
        if model not in missing:
            log_likelihoods[model - 1] = family.log_like_mle(model)
    if not missing:
        logger.debug("All fits cached, scoring without refitting")
        return log_likelihoods

    logger.info(f"Fitting {len(missing)} of {num_models} models with {n_jobs} worker(s)")
    started: Dict[int, float] = {}
    queue = list(missing)
    while queue:
        queue = _fit_batch(family, queue, n_jobs, fit_timeout, fit_options,
                           started, log_likelihoods)
        if queue:
            logger.debug(f"Resubmitting models {queue} after a timed-out fit")
    return log_likelihoods


# =============================================================================
# SINGULAR BIC
# =============================================================================

def _log_l(log_likelihood: float, coef: LearnCoef, log_n: float) -> float:
    """log L_ij = ll_i - lam log n + (m - 1) log log n."""
    value = log_likelihood - coef.lam * log_n
    if coef.m > 1:
        value += (coef.m - 1) * np.log(log_n)
    return value


def _solve_log_root(log_p: float, log_lii: float, log_b: float, log_c: float) -> float:
    """
    Log of the positive root of p x^2 + (b - p L_ii) x - c = 0.

    All inputs are logs. The equation is divided through by its scale
    max(L_ii, b, sqrt(c)) before the quadratic formula is applied, and the
    cancellation-free form of the root is chosen by the sign of the linear
    coefficient.
    """
    scale = max(log_lii, log_b, log_c / 2)
    p = np.exp(log_p)
    linear = np.exp(log_b - scale) - p * np.exp(log_lii - scale)
    log_c_scaled = log_c - 2 * scale

    with np.errstate(divide='ignore'):
        log_abs_linear = np.log(abs(linear))
    log_sqrt_disc = 0.5 * np.logaddexp(2 * log_abs_linear, np.log(4 * p) + log_c_scaled)

    if linear > 0:
        log_root = np.log(2) + log_c_scaled - np.logaddexp(log_abs_linear, log_sqrt_disc)
    else:
        log_root = np.logaddexp(log_abs_linear, log_sqrt_disc) - np.log(2 * p)
    return float(scale + log_root)


def singular_bic(family: ModelPoset, log_likelihoods: np.ndarray,
                 num_samples: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    sBIC of every model from precomputed log-likelihoods.

    Models whose log-likelihood is NaN are reported as NaN and do not take
    part in the equations of the models containing them.

    Returns:
        (sbic, dominant) arrays indexed by model id - 1; dominant is the id
        of the submodel with the largest term p_j L'_j L_ij (ties go to the
        smaller id), or NaN for unavailable models
    """
    num_models = family.num_models()
    log_n = np.log(num_samples)
    log_prior = np.log(np.asarray(family.get_prior(), dtype=float))

    log_lprime = np.full(num_models, np.nan)
    dominant = np.full(num_models, np.nan)

    for model in family.get_top_order():
        log_likelihood = log_likelihoods[model - 1]
        if np.isnan(log_likelihood):
            continue

        log_lii = _log_l(log_likelihood, family.learn_coef(model, model), log_n)
        subs = [j for j in family.ancestors(model) if not np.isnan(log_lprime[j - 1])]
        if not subs:
            log_lprime[model - 1] = log_lii
            dominant[model - 1] = model
            continue

        idx = np.asarray(subs) - 1
        log_lij = np.array([_log_l(log_likelihood, family.learn_coef(model, j), log_n)
                            for j in subs])
        log_weights = log_prior[idx] + log_lprime[idx]
        log_b = logsumexp(log_weights)
        log_c = logsumexp(log_weights + log_lij)
        log_lprime[model - 1] = _solve_log_root(log_prior[model - 1], log_lii, log_b, log_c)

        candidates = sorted(subs + [model])
        terms = [log_prior[j - 1] + log_lprime[j - 1]
                 + (log_lii if j == model else log_lij[subs.index(j)])
                 for j in candidates]
        dominant[model - 1] = candidates[int(np.argmax(terms))]

    return 2 * log_lprime, dominant


def _select(family: ModelPoset, values: np.ndarray, criterion: str) -> Any:
    """Complexity of the best model under a criterion (NaN-aware, first max wins)."""
    if np.all(np.isnan(values)):
        logger.warning(f"No model has a finite {criterion}; nothing selected")
        return None
    return family.get_complexity(int(np.nanargmax(values)) + 1)


# =============================================================================
# SCORING
# =============================================================================

def _as_penalty_params(penalty: Penalty) -> Dict[str, float]:
    if isinstance(penalty, Mapping):
        return dict(penalty)
    return {'phi': float(penalty)}


def score(family: ModelPoset, data: Any = None, penalty: Optional[Penalty] = None, *,
          n_jobs: Optional[int] = None, fit_timeout: Optional[float] = None,
          **fit_options) -> ScoreTable:
    """
    Compute BIC and sBIC for every model of a family.

    Passing ``data`` binds it to the family (discarding cached fits). With
    ``data=None`` the fits cached by an earlier call are reused, so a call
    that only changes the penalty performs no fitting at all.

    Args:
        family: Any object providing the ``ModelPoset`` capabilities
        data: Data to bind, or None to reuse the bound data
        penalty: Penalty parameters (a mapping, or a float meaning ``phi``)
        n_jobs: Worker threads for fitting (default from settings)
        fit_timeout: Seconds each fit may run once started (default from settings;
                     None waits forever)
        **fit_options: Passed through to every fit routine

    Returns:
        ScoreTable with per-model scores and the selected complexities

    Raises:
        DataNotSetError: if no data was ever bound
        InvalidPenaltyError: for penalty parameters the family does not know
    """
    if not isinstance(family, ModelPoset):
        raise TypeError(f"{type(family).__name__} does not implement the ModelPoset interface")

    if data is not None:
        family.set_data(data)
    num_samples = family.get_num_samples()

    if penalty is not None:
        params = _as_penalty_params(penalty)
        current = family.get_penalty()
        if any(current.get(name) != value for name, value in params.items()):
            family.set_penalty(**params)

    settings = get_settings()
    n_jobs = n_jobs if n_jobs is not None else settings.n_jobs
    fit_timeout = fit_timeout if fit_timeout is not None else settings.fit_timeout_seconds

    log_likelihoods = _fit_all(family, n_jobs, fit_timeout, fit_options)

    num_models = family.num_models()
    dimensions = np.array([family.get_dimension(i) for i in range(1, num_models + 1)])
    bic = 2 * log_likelihoods - dimensions * np.log(num_samples)
    sbic, dominant = singular_bic(family, log_likelihoods, num_samples)

    table = pd.DataFrame(
        {
            'complexity': [family.get_complexity(i) for i in range(1, num_models + 1)],
            'dimension': dimensions,
            'log_likelihood': log_likelihoods,
            'BIC': bic,
            'sBIC': sbic,
            'dominant': pd.array([None if np.isnan(d) else int(d) for d in dominant],
                                 dtype='Int64'),
        },
        index=pd.Index(range(1, num_models + 1), name='model'),
    )

    result = ScoreTable(
        table=table,
        selected_bic=_select(family, bic, 'BIC'),
        selected_sbic=_select(family, sbic, 'sBIC'),
        num_samples=num_samples,
        penalty=family.get_penalty(),
    )
    logger.info(f"Scored {num_models} models on n={num_samples}: "
                f"BIC selects {result.selected_bic}, sBIC selects {result.selected_sbic}")
    return result
