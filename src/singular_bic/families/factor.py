"""
Factor analysis models ordered by their number of factors.

Model ``i`` has ``k = i - 1`` factors, so model 1 is the independence model
and the poset is a chain. The learning coefficient bound of the k-factor
model at a true l-factor distribution is

    lam = ((k + 2) m + l (m - k + 1)) / 4,   multiplicity 1,

with m the number of observed variables.
"""

from typing import Any, Dict, Optional, Tuple

import numpy as np

from ..config import get_settings
from ..exceptions import DimensionMismatchError
from ..models.factor import fit_factor_analysis, independence_log_likelihood
from ..poset import Poset
from ..schemas import FactorAnalysesParams
from .base import BaseModelPoset, FitFunction, LearnCoef


def factor_analysis_dimension(num_covariates: int, num_factors: int) -> int:
    """Free parameters of the k-factor model: (k + 1) m - k (k - 1) / 2."""
    k = num_factors
    return (k + 1) * num_covariates - k * (k - 1) // 2


class FactorAnalyses(BaseModelPoset):
    """
    Poset of factor analysis models with 0..max_num_factors factors.

    Args:
        num_covariates: Number of observed variables (m)
        max_num_factors: Largest number of factors considered
        fit_fn: Optional replacement fit routine ``fit_fn(data, k, **options)``
    """

    def __init__(self, num_covariates: int, max_num_factors: int,
                 fit_fn: Optional[FitFunction] = None):
        params = FactorAnalysesParams(num_covariates=num_covariates,
                                      max_num_factors=max_num_factors)
        self.num_covariates = params.num_covariates
        self.max_num_factors = params.max_num_factors

        num_models = self.max_num_factors + 1
        factors = list(range(num_models))
        dimensions = [factor_analysis_dimension(self.num_covariates, k) for k in factors]
        super().__init__(Poset.chain(num_models), dimensions, factors, fit_fn)

    def get_num_factors(self, model: int) -> int:
        return self.get_complexity(model)

    def _validate_data(self, data: Any) -> Tuple[np.ndarray, int]:
        data, n_obs = super()._validate_data(data)
        if data.shape[1] != self.num_covariates:
            raise DimensionMismatchError(
                f"Data has {data.shape[1]} columns but the family was built "
                f"for {self.num_covariates} covariates"
            )
        return data, n_obs

    def _fit(self, model: int, data: np.ndarray, **fit_options) -> Dict:
        k = model - 1
        if k == 0:
            return {'log_likelihood': independence_log_likelihood(data), 'converged': True}
        settings = get_settings()
        options = {
            'n_starts': settings.fa_n_starts,
            'max_iter': settings.default_max_iter,
            'seed': settings.random_seed,
        }
        options.update(fit_options)
        return fit_factor_analysis(data, k, **options)

    def _learn_coef(self, super_model: int, sub_model: int) -> LearnCoef:
        m = self.num_covariates
        k = super_model - 1
        l = sub_model - 1
        return LearnCoef(((k + 2) * m + l * (m - k + 1)) / 4, 1)
