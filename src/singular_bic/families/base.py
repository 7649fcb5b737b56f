"""
Shared machinery of the model families.

A model family is a finite poset of nested statistical models together with
everything the scoring engine needs to know about it: dimensions, learning
coefficient bounds for nested pairs, a memoized maximum likelihood fit per
model, prior weights and the penalty parameters of the bounds.

``ModelPoset`` names that capability set as a protocol, so the engine
accepts any object providing it. The concrete families in this subpackage
derive from ``BaseModelPoset``, which owns the poset and the fit cache and
implements all the bookkeeping; a subclass only supplies the structural
quantities (``_learn_coef`` and ``_fit``) and its data validation.
"""

import logging
from enum import Enum
from typing import (Any, Callable, Dict, List, NamedTuple, Optional, Protocol,
                    Sequence, Tuple, runtime_checkable)

import numpy as np

from ..cache import FitCache
from ..exceptions import (DataNotSetError, DimensionMismatchError,
                          FitFailureError, InvalidPenaltyError,
                          InvalidRelationError)
from ..poset import Poset

logger = logging.getLogger(__name__)

FitFunction = Callable[..., Dict]


class LearnCoef(NamedTuple):
    """Learning coefficient bound ``lam`` and its multiplicity ``m``."""
    lam: float
    m: int


class FamilyState(str, Enum):
    """Lifecycle of a family with respect to its bound data and fits."""
    CONSTRUCTED = "constructed"
    DATA_BOUND = "data_bound"
    PARTIALLY_FITTED = "partially_fitted"
    FULLY_FITTED = "fully_fitted"


@runtime_checkable
class ModelPoset(Protocol):
    """Capability set consumed by the scoring engine."""

    @property
    def fit_cache(self) -> FitCache: ...

    def num_models(self) -> int: ...

    def set_data(self, data: Any) -> None: ...

    def get_data(self) -> Any: ...

    def get_num_samples(self) -> int: ...

    def get_dimension(self, model: int) -> int: ...

    def get_complexity(self, model: int) -> Any: ...

    def log_like_mle(self, model: int, **fit_options) -> float: ...

    def learn_coef(self, super_model: int, sub_model: int) -> LearnCoef: ...

    def parents(self, model: int) -> List[int]: ...

    def ancestors(self, model: int) -> List[int]: ...

    def get_top_order(self) -> List[int]: ...

    def get_prior(self) -> np.ndarray: ...

    def set_penalty(self, **params: float) -> None: ...

    def get_penalty(self) -> Dict[str, float]: ...


class BaseModelPoset:
    """
    Bookkeeping shared by every concrete family.

    Args:
        poset: Nesting structure over model ids ``1..num_models``
        dimensions: Dimension of every model (``dimensions[i - 1]`` for model i)
        complexities: Complexity index of every model (number of factors,
                      classes, rank, forest structure, ...)
        fit_fn: Optional replacement for the family's default fit routine,
                called as ``fit_fn(data, complexity, **options)`` and
                returning a dict with ``log_likelihood`` (and optionally
                ``converged``)
    """

    #: Names accepted by ``set_penalty``
    penalty_names: Tuple[str, ...] = ()

    def __init__(self, poset: Poset, dimensions: Sequence[int],
                 complexities: Sequence[Any], fit_fn: Optional[FitFunction] = None):
        poset.check_dimensions(dimensions)
        if len(complexities) != poset.num_models:
            raise ValueError(
                f"Expected {poset.num_models} complexities, got {len(complexities)}"
            )
        self._poset = poset
        self._dimensions = list(dimensions)
        self._complexities = list(complexities)
        self._fit_fn = fit_fn
        self._prior = np.ones(poset.num_models)
        self._penalty: Dict[str, float] = {}
        self._data = None
        self._num_samples: Optional[int] = None
        self._fit_cache = FitCache(poset.num_models)

    # -------------------------------------------------------------------------
    # Structure
    # -------------------------------------------------------------------------

    @property
    def poset(self) -> Poset:
        return self._poset

    @property
    def fit_cache(self) -> FitCache:
        return self._fit_cache

    @property
    def state(self) -> FamilyState:
        if self._data is None:
            return FamilyState.CONSTRUCTED
        missing = len(self._fit_cache.missing())
        if missing == self.num_models():
            return FamilyState.DATA_BOUND
        if missing == 0:
            return FamilyState.FULLY_FITTED
        return FamilyState.PARTIALLY_FITTED

    def num_models(self) -> int:
        return self._poset.num_models

    def get_dimension(self, model: int) -> int:
        return self._dimensions[self._poset.check_model(model) - 1]

    def get_complexity(self, model: int) -> Any:
        return self._complexities[self._poset.check_model(model) - 1]

    def parents(self, model: int) -> List[int]:
        return self._poset.parents(model)

    def ancestors(self, model: int) -> List[int]:
        return self._poset.ancestors(model)

    def get_top_order(self) -> List[int]:
        return self._poset.top_order()

    def get_prior(self) -> np.ndarray:
        return self._prior.copy()

    def set_prior(self, prior: Sequence[float]) -> None:
        """Set unnormalized prior weights, one positive value per model."""
        prior = np.asarray(prior, dtype=float)
        if prior.shape != (self.num_models(),):
            raise ValueError(f"Prior must have {self.num_models()} entries, got shape {prior.shape}")
        if not np.all(np.isfinite(prior)) or np.any(prior <= 0):
            raise ValueError("Prior weights must be positive and finite")
        self._prior = prior

    # -------------------------------------------------------------------------
    # Penalty parameters
    # -------------------------------------------------------------------------

    def set_penalty(self, **params: float) -> None:
        """
        Update penalty parameters of the learning coefficient bounds.

        Only the bounds change; cached fits are kept.
        """
        unknown = sorted(set(params) - set(self.penalty_names))
        if unknown:
            raise InvalidPenaltyError(
                f"Unknown penalty parameter(s) {unknown} for {type(self).__name__}; "
                f"expected a subset of {list(self.penalty_names)}"
            )
        for name, value in params.items():
            value = float(value)
            if not np.isfinite(value) or value <= 0:
                raise InvalidPenaltyError(f"Penalty parameter {name} must be positive, got {value}")
            self._penalty[name] = value
        if params:
            logger.info(f"{type(self).__name__} penalty set to {self._penalty}")

    def get_penalty(self) -> Dict[str, float]:
        return dict(self._penalty)

    # -------------------------------------------------------------------------
    # Data
    # -------------------------------------------------------------------------

    def _validate_data(self, data: Any) -> Tuple[Any, int]:
        """Check ``data`` against the structural parameters; return (data, n)."""
        data = np.asarray(data, dtype=float)
        if data.ndim != 2:
            raise DimensionMismatchError(f"Expected a 2-D data matrix, got shape {data.shape}")
        return data, data.shape[0]

    def set_data(self, data: Any) -> None:
        """Bind data, discarding every cached fit of the previous binding."""
        data, num_samples = self._validate_data(data)
        if num_samples < 2:
            raise DimensionMismatchError(f"Need at least two samples, got {num_samples}")
        self._data = data
        self._num_samples = num_samples
        self._fit_cache.reset()
        logger.info(f"{type(self).__name__}: bound data with {num_samples} samples "
                    f"(generation {self._fit_cache.generation})")

    def get_data(self) -> Any:
        if self._data is None:
            raise DataNotSetError(f"{type(self).__name__} has no data; call set_data first")
        return self._data

    def get_num_samples(self) -> int:
        if self._num_samples is None:
            raise DataNotSetError(f"{type(self).__name__} has no data; call set_data first")
        return self._num_samples

    # -------------------------------------------------------------------------
    # Fitting
    # -------------------------------------------------------------------------

    def _fit(self, model: int, data: Any, **fit_options) -> Dict:
        """Default fit routine of the family (closed form for simple models)."""
        raise NotImplementedError

    def _run_fit(self, model: int, data: Any, fit_options: Dict) -> float:
        complexity = self._complexities[model - 1]
        logger.debug(f"Fitting model {model} (complexity {complexity})")
        try:
            if self._fit_fn is not None:
                result = self._fit_fn(data, complexity, **fit_options)
            else:
                result = self._fit(model, data, **fit_options)
            log_likelihood = float(result['log_likelihood'])
            converged = bool(result.get('converged', True))
        except FitFailureError:
            raise
        except Exception as exc:
            raise FitFailureError(f"Fit of model {model} failed: {exc!r}", model) from exc

        if not converged:
            raise FitFailureError(f"Fit of model {model} did not converge", model)
        if not np.isfinite(log_likelihood):
            raise FitFailureError(
                f"Fit of model {model} returned log-likelihood {log_likelihood}", model
            )
        logger.debug(f"Model {model}: log-likelihood {log_likelihood:.4f}")
        return log_likelihood

    def log_like_mle(self, model: int, **fit_options) -> float:
        """
        Maximized log-likelihood of a model for the bound data.

        The value is computed at most once per data binding; concurrent
        callers for the same model wait for the fit already in flight.

        Raises:
            DataNotSetError: before ``set_data``
            FitFailureError: if the fit raised, did not converge or returned
                no finite log-likelihood (the cache entry stays unset)
        """
        model = self._poset.check_model(model)
        data = self.get_data()
        return self._fit_cache.get_or_compute(
            model, lambda: self._run_fit(model, data, fit_options)
        )

    # -------------------------------------------------------------------------
    # Learning coefficients
    # -------------------------------------------------------------------------

    def _learn_coef(self, super_model: int, sub_model: int) -> LearnCoef:
        """Bound for a strictly nested pair (ids already validated)."""
        raise NotImplementedError

    def learn_coef(self, super_model: int, sub_model: int) -> LearnCoef:
        """
        Learning coefficient of ``super_model`` when ``sub_model`` is true.

        For a model paired with itself this is the regular value
        ``(dimension / 2, 1)``.
        """
        super_model = self._poset.check_model(super_model)
        sub_model = self._poset.check_model(sub_model)
        if super_model == sub_model:
            return LearnCoef(self._dimensions[super_model - 1] / 2, 1)
        if not self._poset.is_nested(super_model, sub_model):
            raise InvalidRelationError(
                f"Model {sub_model} is not nested in model {super_model}"
            )
        return self._learn_coef(super_model, sub_model)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(num_models={self.num_models()})"
