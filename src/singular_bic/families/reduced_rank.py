"""
Reduced-rank regression models ordered by the rank of the coefficient matrix.

Model ``i`` has rank ``H = i - 1``. The learning coefficients are the exact
values of Aoyagi and Watanabe (2005) for a rank-H fit at a true rank r, with
M covariates and N responses.
"""

from typing import Any, Dict, Optional, Tuple

import numpy as np

from ..exceptions import DimensionMismatchError
from ..models.reduced_rank import fit_reduced_rank_regression
from ..poset import Poset
from ..schemas import ReducedRankParams
from .base import BaseModelPoset, FitFunction, LearnCoef


def reduced_rank_dimension(num_covariates: int, num_responses: int, rank: int) -> int:
    return rank * (num_covariates + num_responses - rank)


def reduced_rank_learning_coefficient(num_covariates: int, num_responses: int,
                                      rank: int, true_rank: int) -> LearnCoef:
    """
    Real log canonical threshold of reduced-rank regression.

    Args:
        num_covariates: M
        num_responses: N
        rank: Rank H of the fitted model
        true_rank: Rank r of the true coefficient matrix (r <= H)
    """
    M, N, H, r = num_covariates, num_responses, rank, true_rank
    if M + N < H + r:
        return LearnCoef(M * N / 2, 1)
    if M + H < N + r:
        return LearnCoef((H * M - H * r + N * r) / 2, 1)
    if N + H < M + r:
        return LearnCoef((H * N - H * r + M * r) / 2, 1)

    numerator = 2 * (H + r) * (M + N) - (M - N) ** 2 - (H + r) ** 2
    if (M + H + N + r) % 2 == 0:
        return LearnCoef(numerator / 8, 1)
    return LearnCoef((numerator + 1) / 8, 2)


class ReducedRankRegressions(BaseModelPoset):
    """
    Poset of reduced-rank regressions with rank 0..max_rank.

    Data is an ``(X, Y)`` pair with samples in rows: X is (n, M), Y is (n, N).
    The noise covariance is taken to be the identity.

    Args:
        num_covariates: Number of covariates (M)
        num_responses: Number of responses (N)
        max_rank: Largest rank considered (at most min(M, N))
        fit_fn: Optional replacement fit routine ``fit_fn((X, Y), rank, **options)``
    """

    def __init__(self, num_covariates: int, num_responses: int, max_rank: int,
                 fit_fn: Optional[FitFunction] = None):
        params = ReducedRankParams(num_covariates=num_covariates,
                                   num_responses=num_responses, max_rank=max_rank)
        self.num_covariates = params.num_covariates
        self.num_responses = params.num_responses
        self.max_rank = params.max_rank

        ranks = list(range(self.max_rank + 1))
        dimensions = [reduced_rank_dimension(self.num_covariates, self.num_responses, h)
                      for h in ranks]
        super().__init__(Poset.chain(self.max_rank + 1), dimensions, ranks, fit_fn)

    def _validate_data(self, data: Any) -> Tuple[Tuple[np.ndarray, np.ndarray], int]:
        try:
            X, Y = data
        except (TypeError, ValueError):
            raise DimensionMismatchError("Reduced-rank regression data must be an (X, Y) pair") from None
        X = np.asarray(X, dtype=float)
        Y = np.asarray(Y, dtype=float)
        if X.ndim != 2 or X.shape[1] != self.num_covariates:
            raise DimensionMismatchError(
                f"X must have {self.num_covariates} columns, got shape {X.shape}"
            )
        if Y.ndim != 2 or Y.shape[1] != self.num_responses:
            raise DimensionMismatchError(
                f"Y must have {self.num_responses} columns, got shape {Y.shape}"
            )
        if X.shape[0] != Y.shape[0]:
            raise DimensionMismatchError(
                f"X and Y have different sample sizes ({X.shape[0]} and {Y.shape[0]})"
            )
        return (X, Y), X.shape[0]

    def _fit(self, model: int, data: Tuple[np.ndarray, np.ndarray], **fit_options) -> Dict:
        X, Y = data
        return fit_reduced_rank_regression(X, Y, model - 1)

    def _learn_coef(self, super_model: int, sub_model: int) -> LearnCoef:
        return reduced_rank_learning_coefficient(
            self.num_covariates, self.num_responses, super_model - 1, sub_model - 1
        )
