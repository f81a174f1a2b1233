"""
Pytest configuration and shared fixtures for cpmcmc tests.
"""

import pytest
import numpy as np
import jax

import cpmcmc  # noqa: F401  (sets JAX environment before first use)
from cpmcmc.data import series_from_arrays

jax.config.update("jax_enable_x64", True)


def make_shift_series(n_obs=50, shift_at=25, before=(0.8, 0.2), after=(0.2, 0.8)):
    """Two-category series whose proportions flip after time ``shift_at``."""
    time = np.arange(1, n_obs + 1)
    Y = np.where((time <= shift_at)[:, None], np.array(before), np.array(after))
    return series_from_arrays(time, Y)


@pytest.fixture
def rng_seed():
    """Default RNG seed for reproducible tests."""
    return 42


@pytest.fixture
def shift_series():
    """50 observations, proportions (0.8, 0.2) through t=25 then (0.2, 0.8)."""
    return make_shift_series()


@pytest.fixture
def small_series():
    """12 observations at times 1..12 with three categories."""
    rng = np.random.default_rng(0)
    Y = rng.dirichlet(np.ones(3), size=12)
    return series_from_arrays(np.arange(1, 13), Y)


@pytest.fixture
def covariate_table():
    """Document covariate table with a time column and one predictor."""
    rng = np.random.default_rng(1)
    n = 30
    return {
        'newmoon': np.arange(100, 100 + n),
        'temp': rng.normal(size=n),
    }


@pytest.fixture
def gamma_matrix():
    """Topic proportions (30 documents, 3 topics)."""
    rng = np.random.default_rng(2)
    return rng.dirichlet(np.ones(3) * 2.0, size=30)


@pytest.fixture
def quick_control():
    """Short run configuration for smoke tests."""
    return {
        'iterations': 60,
        'burnin': 20,
        'thin': 2,
        'temperature_schedule': [1.0, 2.0, 4.0],
        'chunk_size': 25,
        'quiet': True,
        'seed': 7,
    }
