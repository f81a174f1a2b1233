"""
Segment Likelihood Tests

Tests the weighted multinomial-logit segment likelihood:
- Segment membership at changepoint boundaries
- Agreement with a direct NumPy computation
- Degenerate-segment penalty
- Non-finite values mapped to -inf

Run with: pytest tests/test_likelihood.py -v
"""

import numpy as np
import jax.numpy as jnp
import pytest

from cpmcmc.data import series_from_arrays
from cpmcmc.mcmc.types import build_series_arrays
from cpmcmc.mcmc.likelihood import (
    DEGENERATE_LOG_LIK,
    segment_ids,
    segment_log_likelihoods,
    total_log_likelihood,
    fitted_log_proportions,
    log_prior,
)


def _numpy_segment_lls(series, changepoints, coefficients):
    """Reference computation with plain loops."""
    k = len(changepoints)
    out = np.zeros(k + 1)
    for i in range(series.n_obs):
        seg = int(np.sum(np.asarray(changepoints) < series.time[i]))
        eta = np.concatenate([[0.0], series.X[i] @ coefficients[seg]])
        log_p = eta - np.log(np.sum(np.exp(eta)))
        out[seg] += series.weights[i] * np.sum(series.Y[i] * log_p)
    return out


class TestSegmentMembership:
    """Observation at time t belongs to the segment counting changepoints < t."""

    def test_changepoint_closes_its_segment(self):
        time = jnp.arange(1, 11)
        seg = segment_ids(time, jnp.array([4, 7]))
        expected = np.array([0, 0, 0, 0, 1, 1, 1, 2, 2, 2])
        np.testing.assert_array_equal(np.asarray(seg), expected)

    def test_no_changepoints(self):
        seg = segment_ids(jnp.arange(5), jnp.zeros(0, dtype=jnp.int64))
        np.testing.assert_array_equal(np.asarray(seg), 0)


class TestSegmentLogLikelihood:
    """Test likelihood values against a direct computation."""

    def test_matches_reference(self):
        rng = np.random.default_rng(0)
        n = 20
        X = np.column_stack([np.ones(n), rng.normal(size=n)])
        Y = rng.dirichlet(np.ones(3), size=n)
        weights = rng.uniform(0.5, 1.5, size=n)
        series = series_from_arrays(np.arange(1, n + 1), Y, X=X, weights=weights,
                                    term_labels=("(Intercept)", "x"))
        arrays = build_series_arrays(series)

        cps = np.array([7, 14])
        coefs = rng.normal(size=(3, 2, 2))

        got = segment_log_likelihoods(jnp.asarray(cps), jnp.asarray(coefs), arrays)
        np.testing.assert_allclose(np.asarray(got), _numpy_segment_lls(series, cps, coefs),
                                   rtol=1e-10)
        np.testing.assert_allclose(float(total_log_likelihood(jnp.asarray(cps), jnp.asarray(coefs), arrays)),
                                   np.sum(_numpy_segment_lls(series, cps, coefs)), rtol=1e-10)

    def test_reference_category_is_first(self, shift_series):
        arrays = build_series_arrays(shift_series)
        coefs = jnp.zeros((1, 1, 1))
        log_p = fitted_log_proportions(jnp.zeros(0, dtype=jnp.int64), coefs, arrays)
        np.testing.assert_allclose(np.exp(np.asarray(log_p)), 0.5)

    def test_true_proportions_score_higher(self, shift_series):
        arrays = build_series_arrays(shift_series)
        logit = np.log(0.2 / 0.8)
        good = jnp.array([[[logit]], [[-logit]]])
        bad = jnp.array([[[-logit]], [[logit]]])
        cp = jnp.array([25])
        assert total_log_likelihood(cp, good, arrays) > total_log_likelihood(cp, bad, arrays)

    def test_degenerate_segment_penalty(self):
        # Two free coefficients per segment (2 terms x 1 non-reference category)
        n = 10
        X = np.column_stack([np.ones(n), np.linspace(-1, 1, n)])
        Y = np.full((n, 2), 0.5)
        series = series_from_arrays(np.arange(1, n + 1), Y, X=X, term_labels=("(Intercept)", "x"))
        arrays = build_series_arrays(series)

        # Segment 0 holds only t=1
        lls = segment_log_likelihoods(jnp.array([1]), jnp.zeros((2, 2, 1)), arrays)
        assert float(lls[0]) == DEGENERATE_LOG_LIK
        assert np.isfinite(float(lls[1]))
        assert float(lls[1]) > DEGENERATE_LOG_LIK

    def test_non_finite_maps_to_neg_inf(self, shift_series):
        arrays = build_series_arrays(shift_series)
        coefs = jnp.array([[[jnp.inf]]])
        lls = segment_log_likelihoods(jnp.zeros(0, dtype=jnp.int64), coefs, arrays)
        assert float(lls[0]) == -np.inf

    def test_weights_scale_likelihood(self, shift_series):
        doubled = series_from_arrays(shift_series.time, shift_series.Y,
                                     weights=np.full(shift_series.n_obs, 2.0))
        coefs = jnp.array([[[0.3]], [[-0.4]]])
        cp = jnp.array([25])
        base = total_log_likelihood(cp, coefs, build_series_arrays(shift_series))
        scaled = total_log_likelihood(cp, coefs, build_series_arrays(doubled))
        np.testing.assert_allclose(float(scaled), 2.0 * float(base), rtol=1e-12)


class TestLogPrior:
    """Independent Gaussian prior on coefficients."""

    def test_zero_coefficients(self):
        lp = log_prior(jnp.zeros((2, 3)), 10.0)
        expected = 6 * (-0.5 * np.log(2 * np.pi) - np.log(10.0))
        np.testing.assert_allclose(float(lp), expected, rtol=1e-12)

    def test_decreases_away_from_zero(self):
        assert log_prior(jnp.ones(4), 1.0) < log_prior(jnp.zeros(4), 1.0)
