"""
Tests for the memoized fit cache.
"""

import threading
import time

import numpy as np
import pytest

from singular_bic.cache import FitCache

# ------------------------------------------------------------------------------
# Basic behaviour
# ------------------------------------------------------------------------------


def test_new_cache_is_empty():
    cache = FitCache(3)
    assert cache.missing() == [1, 2, 3]
    assert np.isnan(cache.get(2))
    assert not cache.is_set(1)


def test_value_computed_once():
    cache = FitCache(2)
    calls = []

    def compute():
        calls.append(1)
        return -10.0

    assert cache.get_or_compute(1, compute) == -10.0
    assert cache.get_or_compute(1, compute) == -10.0
    assert len(calls) == 1
    assert cache.writes == 1
    assert cache.missing() == [2]


def test_failure_leaves_entry_unset():
    cache = FitCache(1)

    def explode():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        cache.get_or_compute(1, explode)
    assert not cache.is_set(1)
    assert cache.get_or_compute(1, lambda: -1.0) == -1.0


def test_reset_clears_values_and_bumps_generation():
    cache = FitCache(2)
    cache.get_or_compute(1, lambda: -1.0)
    cache.reset()
    assert cache.generation == 1
    assert cache.missing() == [1, 2]


# ------------------------------------------------------------------------------
# Concurrency
# ------------------------------------------------------------------------------


def test_concurrent_callers_share_one_fit():
    cache = FitCache(1)
    calls = []

    def slow():
        calls.append(1)
        time.sleep(0.2)
        return -5.0

    results = []
    threads = [threading.Thread(target=lambda: results.append(cache.get_or_compute(1, slow)))
               for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert results == [-5.0] * 4
    assert cache.writes == 1


def test_stale_fit_does_not_write_after_reset():
    cache = FitCache(1)
    release = threading.Event()
    started = threading.Event()

    def blocked():
        started.set()
        release.wait()
        return -3.0

    result = []
    thread = threading.Thread(target=lambda: result.append(cache.get_or_compute(1, blocked)))
    thread.start()
    started.wait()
    cache.reset()
    release.set()
    thread.join()

    # The caller still gets its value, but the new binding stays empty
    assert result == [-3.0]
    assert not cache.is_set(1)
    assert cache.writes == 0
