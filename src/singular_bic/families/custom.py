"""
A family over a user-supplied poset.

Useful when the models, their nesting and their learning coefficient bounds
come from outside this package: the caller provides the DAG, the dimensions,
a bound function and a fit routine, and the engine scores it like any other
family.
"""

from typing import Any, Callable, Optional, Sequence, Tuple, Union

from ..poset import Poset
from .base import BaseModelPoset, FitFunction, LearnCoef

LearnCoefFunction = Callable[[int, int], Union[LearnCoef, Tuple[float, int]]]


class CustomModelPoset(BaseModelPoset):
    """
    Model family defined entirely by caller-supplied pieces.

    Args:
        poset: Nesting structure (any DAG)
        dimensions: Dimension of every model
        learn_coef_fn: ``learn_coef_fn(super, sub) -> (lam, m)`` for strictly
                       nested pairs; the identity case is handled here
        fit_fn: ``fit_fn(data, complexity, **options) -> dict`` with a
                ``log_likelihood`` entry
        complexities: Complexity label of every model (defaults to the ids)
    """

    def __init__(self, poset: Poset, dimensions: Sequence[int],
                 learn_coef_fn: LearnCoefFunction, fit_fn: FitFunction,
                 complexities: Optional[Sequence[Any]] = None):
        if complexities is None:
            complexities = list(range(1, poset.num_models + 1))
        super().__init__(poset, dimensions, complexities, fit_fn)
        self._learn_coef_fn = learn_coef_fn

    def _learn_coef(self, super_model: int, sub_model: int) -> LearnCoef:
        lam, m = self._learn_coef_fn(super_model, sub_model)
        return LearnCoef(float(lam), int(m))
