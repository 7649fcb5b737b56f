"""
Latent class models ordered by their number of classes.

Each observed variable is categorical with its own number of states. With
``r = sum(states - 1)`` the i-class model has dimension ``i r + i - 1``.
For a true j-class distribution the bound used is

    lam = min(j r + j - 1 + (i - j) phi, i r + i - 1) / 2,   multiplicity 1,

where ``phi`` is the Dirichlet shape penalty on the class weights (default
``r / 2``). Changing ``phi`` only changes the bound, never the fits.
"""

from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np

from ..config import get_settings
from ..exceptions import DimensionMismatchError
from ..models.lca import fit_lca, independence_log_likelihood
from ..poset import Poset
from ..schemas import LatentClassParams
from .base import BaseModelPoset, FitFunction, LearnCoef


def mixture_learning_coefficient(num_classes: int, true_classes: int,
                                 params_per_class: int, phi: float) -> float:
    """
    Bound shared by latent class and Gaussian mixture families.

    ``params_per_class`` is the number of free parameters of one component.
    """
    i, j, r = num_classes, true_classes, params_per_class
    return min(j * r + j - 1 + (i - j) * phi, i * r + i - 1) / 2


class LatentClassAnalyses(BaseModelPoset):
    """
    Poset of latent class models with 1..max_num_classes classes.

    Args:
        num_states: Number of categories of every variable, or one int shared
                    by ``num_variables`` variables
        max_num_classes: Largest number of classes considered
        phi: Dirichlet shape penalty (defaults to r / 2)
        num_variables: Number of variables when ``num_states`` is an int
        fit_fn: Optional replacement fit routine ``fit_fn(data, n_classes, **options)``
    """

    penalty_names = ('phi',)

    def __init__(self, num_states: Union[int, Sequence[int]], max_num_classes: int,
                 phi: Optional[float] = None, num_variables: Optional[int] = None,
                 fit_fn: Optional[FitFunction] = None):
        if isinstance(num_states, int):
            if num_variables is None:
                raise ValueError("num_variables is required when num_states is an int")
            num_states = [num_states] * num_variables
        params = LatentClassParams(num_states=tuple(num_states),
                                   max_num_classes=max_num_classes, phi=phi)
        self.num_states = list(params.num_states)
        self.max_num_classes = params.max_num_classes
        self.params_per_class = sum(s - 1 for s in self.num_states)

        classes = list(range(1, self.max_num_classes + 1))
        r = self.params_per_class
        dimensions = [i * r + i - 1 for i in classes]
        super().__init__(Poset.chain(self.max_num_classes), dimensions, classes, fit_fn)
        self.set_phi(params.phi if params.phi is not None else r / 2)

    def set_phi(self, phi: float) -> None:
        self.set_penalty(phi=phi)

    def get_num_classes(self, model: int) -> int:
        return self.get_complexity(model)

    def _validate_data(self, data: Any) -> Tuple[np.ndarray, int]:
        raw = np.asarray(data)
        if raw.ndim != 2 or raw.shape[1] != len(self.num_states):
            raise DimensionMismatchError(
                f"Expected an (n, {len(self.num_states)}) matrix of category codes, "
                f"got shape {raw.shape}"
            )
        if not np.all(np.equal(np.mod(raw, 1), 0)):
            raise DimensionMismatchError("Category codes must be integers")
        codes = raw.astype(int)
        too_large = codes >= np.asarray(self.num_states)
        if np.any(codes < 0) or np.any(too_large):
            raise DimensionMismatchError(
                f"Category codes must lie in 0..num_states-1 for num_states={self.num_states}"
            )
        return codes, codes.shape[0]

    def _fit(self, model: int, data: np.ndarray, **fit_options) -> Dict:
        if model == 1:
            return {
                'log_likelihood': independence_log_likelihood(data, self.num_states),
                'converged': True,
            }
        settings = get_settings()
        options = {
            'max_iter': settings.default_max_iter,
            'tol': settings.default_tol,
            'n_init': settings.default_n_init,
            'seed': settings.random_seed,
        }
        options.update(fit_options)
        return fit_lca(data, model, num_states=self.num_states, **options)

    def _learn_coef(self, super_model: int, sub_model: int) -> LearnCoef:
        lam = mixture_learning_coefficient(super_model, sub_model,
                                           self.params_per_class, self._penalty['phi'])
        return LearnCoef(lam, 1)
