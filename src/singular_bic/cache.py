"""
Memoized storage of fitted maximum log-likelihoods.

Every model family owns one ``FitCache``. The cache is shared by reference
with the scoring engine, which is how fits computed during a first scoring
call are reused by later penalty-only re-scoring calls.

Guarantees:
- at most one write per model id per data binding
- exactly one fit in flight per model id; concurrent callers wait for it
- a failed fit leaves the entry unset so that a retry is possible
- ``reset`` starts a new data binding; fits still running for the old
  binding complete for their waiters but never write into the new one
"""

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Dict, List

import numpy as np

logger = logging.getLogger(__name__)


class FitCache:
    """Thread-safe write-once cache of per-model log-likelihoods."""

    def __init__(self, num_models: int):
        self._num_models = num_models
        self._lock = threading.Lock()
        self._values = np.full(num_models, np.nan)
        self._in_flight: Dict[int, Future] = {}
        self._generation = 0
        self._writes = 0

    @property
    def generation(self) -> int:
        """Counter bumped on every reset (one per data binding)."""
        return self._generation

    @property
    def writes(self) -> int:
        """Total number of values written since construction."""
        return self._writes

    def reset(self) -> None:
        """Forget every cached value (new data was bound)."""
        with self._lock:
            self._generation += 1
            self._values[:] = np.nan
            self._in_flight = {}

    def is_set(self, model: int) -> bool:
        with self._lock:
            return not np.isnan(self._values[model - 1])

    def get(self, model: int) -> float:
        """Cached value for ``model``, NaN when not yet computed."""
        with self._lock:
            return float(self._values[model - 1])

    def values(self) -> np.ndarray:
        """Copy of all cached values (NaN for unset entries)."""
        with self._lock:
            return self._values.copy()

    def missing(self) -> List[int]:
        """Model ids without a cached value."""
        with self._lock:
            return [i + 1 for i in np.flatnonzero(np.isnan(self._values))]

    def get_or_compute(self, model: int, compute: Callable[[], float]) -> float:
        """
        Return the cached value, computing it at most once.

        If another thread is already computing this model for the current
        binding, wait for its result (or its exception) instead of starting
        a second fit.
        """
        with self._lock:
            value = self._values[model - 1]
            if not np.isnan(value):
                logger.debug(f"Cache hit for model {model}")
                return float(value)
            future = self._in_flight.get(model)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[model] = future
                generation = self._generation

        if not owner:
            logger.debug(f"Waiting for in-flight fit of model {model}")
            return future.result()

        try:
            value = float(compute())
        except BaseException as exc:
            with self._lock:
                if self._in_flight.get(model) is future:
                    del self._in_flight[model]
            future.set_exception(exc)
            raise

        with self._lock:
            if generation == self._generation:
                self._values[model - 1] = value
                self._writes += 1
            if self._in_flight.get(model) is future:
                del self._in_flight[model]
        future.set_result(value)
        return value
