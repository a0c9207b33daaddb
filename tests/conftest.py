"""
pytest configuration and shared fixtures.
"""

import pytest
import numpy as np


def _simulate(rng, n, beta, censor_scale=2.0):
    """Exponential survival times with hazard exp(X beta), random censoring."""
    p = len(beta)
    X = rng.standard_normal((n, p))
    event_time = rng.exponential(1.0 / np.exp(X @ beta))
    censor_time = rng.exponential(censor_scale, n)
    time = np.minimum(event_time, censor_time)
    event = (event_time <= censor_time).astype(np.float64)
    return np.column_stack([time, event]), X


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def cox_data(rng):
    """Small right-censored dataset, n=120, p=5."""
    beta = np.array([1.0, -0.8, 0.0, 0.0, 0.5])
    y, X = _simulate(rng, 120, beta)
    return y, X, beta


@pytest.fixture
def sparse_cox_data(rng):
    """Sparse signal for support recovery, n=200, p=10, 3 true predictors."""
    beta = np.zeros(10)
    beta[[0, 3, 7]] = [1.0, -1.0, 0.8]
    y, X = _simulate(rng, 200, beta, censor_scale=3.0)
    return y, X, beta


@pytest.fixture
def counting_process_data(cox_data, rng):
    """cox_data with every row split into two (start, stop] intervals.

    Returns (y_right, y_counting, X_right, X_counting): the counting-process
    version has the same partial likelihood as the right-censored one.
    """
    y, X, _ = cox_data
    time, event = y[:, 0], y[:, 1]
    split = time * rng.uniform(0.2, 0.8, len(time))
    first = np.column_stack([np.zeros_like(time), split, np.zeros_like(time)])
    second = np.column_stack([split, time, event])
    y_counting = np.vstack([first, second])
    X_counting = np.vstack([X, X])
    return y, y_counting, X, X_counting
