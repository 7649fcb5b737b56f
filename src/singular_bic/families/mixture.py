"""
Gaussian mixtures with full covariance matrices, ordered by component count.

One component in dimension d has ``r = d + d (d + 1) / 2`` free parameters;
the bound has the same shape as for latent class models, with the Dirichlet
shape penalty ``phi`` defaulting to ``r / 2``.
"""

from typing import Any, Dict, Optional, Tuple

import numpy as np

from ..config import get_settings
from ..exceptions import DimensionMismatchError
from ..models.mixture import fit_gaussian_mixture, single_gaussian_log_likelihood
from ..poset import Poset
from ..schemas import GaussianMixtureParams
from .base import BaseModelPoset, FitFunction, LearnCoef
from .latent_class import mixture_learning_coefficient


class GaussianMixtures(BaseModelPoset):
    """
    Poset of Gaussian mixture models with 1..max_num_components components.

    Args:
        dim: Dimension of the observations
        max_num_components: Largest number of components considered
        phi: Dirichlet shape penalty (defaults to r / 2)
        fit_fn: Optional replacement fit routine
    """

    penalty_names = ('phi',)

    def __init__(self, dim: int, max_num_components: int, phi: Optional[float] = None,
                 fit_fn: Optional[FitFunction] = None):
        params = GaussianMixtureParams(dim=dim, max_num_components=max_num_components, phi=phi)
        self.dim = params.dim
        self.max_num_components = params.max_num_components
        self.params_per_component = self.dim + self.dim * (self.dim + 1) // 2

        components = list(range(1, self.max_num_components + 1))
        r = self.params_per_component
        dimensions = [i * r + i - 1 for i in components]
        super().__init__(Poset.chain(self.max_num_components), dimensions, components, fit_fn)
        self.set_phi(params.phi if params.phi is not None else r / 2)

    def set_phi(self, phi: float) -> None:
        self.set_penalty(phi=phi)

    def _validate_data(self, data: Any) -> Tuple[np.ndarray, int]:
        data = np.asarray(data, dtype=float)
        if data.ndim == 1 and self.dim == 1:
            data = data[:, np.newaxis]
        if data.ndim != 2 or data.shape[1] != self.dim:
            raise DimensionMismatchError(
                f"Expected observations of dimension {self.dim}, got shape {data.shape}"
            )
        return data, data.shape[0]

    def _fit(self, model: int, data: np.ndarray, **fit_options) -> Dict:
        if model == 1:
            return {'log_likelihood': single_gaussian_log_likelihood(data), 'converged': True}
        settings = get_settings()
        options = {
            'n_init': settings.default_n_init,
            'max_iter': settings.default_max_iter,
            'tol': settings.default_tol,
            'seed': settings.random_seed,
        }
        options.update(fit_options)
        return fit_gaussian_mixture(data, model, **options)

    def _learn_coef(self, super_model: int, sub_model: int) -> LearnCoef:
        lam = mixture_learning_coefficient(super_model, sub_model,
                                           self.params_per_component, self._penalty['phi'])
        return LearnCoef(lam, 1)
