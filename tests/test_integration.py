"""
Integration Tests for Sampler Validation

Runs the full sampler on series with known structure and checks that the
posterior recovers it:
- a two-category series with a single shift in proportions
- a changepoint-free series against a direct maximum-likelihood fit
- a saturated series where every interior time is a changepoint
- reproducibility from the seed
- the collection workflow (fit every combination, then select)

Run with: pytest tests/test_integration.py -v
"""

import logging

import numpy as np
import pytest
from scipy import optimize as scipy_optimize
from scipy.special import log_softmax

from cpmcmc import (
    fit_ts,
    ts_control,
    ts_on_lda,
    select_ts,
    segment_proportions,
    series_from_arrays,
)
from cpmcmc.mcmc import (
    clear_compiled_kernel_cache,
    get_compiled_kernel_cache,
)


# ============================================================================
# REFERENCE FITS
# ============================================================================

def weighted_multinomial_mle(series):
    """Maximum-likelihood coefficients of the single-segment model."""
    n_terms, n_free = series.n_terms, series.n_cats - 1

    def negative_log_lik(flat):
        beta = flat.reshape(n_terms, n_free)
        eta = np.column_stack([np.zeros(series.n_obs), series.X @ beta])
        return -np.sum(series.weights * np.sum(series.Y * log_softmax(eta, axis=1), axis=1))

    result = scipy_optimize.minimize(negative_log_lik, np.zeros(n_terms * n_free), method="BFGS")
    return result.x.reshape(n_terms, n_free)


# ============================================================================
# TESTS
# ============================================================================

@pytest.mark.slow
class TestChangepointRecovery:
    """Two categories, proportions flip after t=25 of 50."""

    def test_single_shift(self, shift_series):
        control = ts_control(iterations=2000, burnin=500, thin=2,
                             temperature_schedule=[1, 2, 4, 8], quiet=True, seed=11)
        fit = fit_ts(shift_series, 1, control)

        assert fit.n_draws == 750
        assert abs(fit.rho_summary.mean[0] - 25) <= 3
        assert fit.rho_summary.lower_95[0] <= 25 <= fit.rho_summary.upper_95[0]
        np.testing.assert_allclose(segment_proportions(fit), [[0.8, 0.2], [0.2, 0.8]], atol=0.1)
        assert np.all(np.isfinite(fit.lls))
        assert fit.nparams == 3

    def test_shift_beats_no_shift(self, shift_series):
        control = ts_control(iterations=1500, burnin=500, thin=2,
                             temperature_schedule=[1, 2, 4, 8], quiet=True, seed=3)
        fit0 = fit_ts(shift_series, 0, control)
        fit1 = fit_ts(shift_series, 1, control)
        assert fit1.AIC < fit0.AIC


@pytest.mark.slow
class TestNoChangepoint:
    """With k = 0 the posterior mean sits at the weighted MLE."""

    def test_matches_mle(self):
        rng = np.random.default_rng(4)
        n = 60
        Y = rng.dirichlet([4.0, 2.0, 1.0], size=n)
        series = series_from_arrays(np.arange(n), Y, weights=np.full(n, 20.0))

        control = ts_control(iterations=3000, burnin=1000, thin=2,
                             temperature_schedule=[1, 2], adapt_burnin=True,
                             quiet=True, seed=5)
        fit = fit_ts(series, 0, control)

        expected = weighted_multinomial_mle(series)
        posterior_mean = fit.etas.mean(axis=0)[0]
        np.testing.assert_allclose(posterior_mean, expected, atol=0.05)
        assert fit.rhos.shape == (1000, 0)
        assert len(fit.rho_summary) == 0


@pytest.mark.slow
class TestSaturated:
    """k = 10 on times 1..12 leaves exactly one valid changepoint set."""

    def test_changepoints_fixed(self, small_series, quick_control):
        fit = fit_ts(small_series, 10, ts_control(quick_control))
        np.testing.assert_array_equal(fit.rhos, np.tile(np.arange(2, 12), (fit.n_draws, 1)))
        assert fit.diagnostics['changepoint_accept_rate'][0] == 0.0

    def test_too_many_rejected(self, small_series, quick_control):
        with pytest.raises(ValueError, match="exceeds"):
            fit_ts(small_series, 11, ts_control(quick_control))


class TestRunBookkeeping:
    """Draw counts, rank history and reproducibility."""

    def test_draw_count_and_history(self, shift_series, quick_control):
        fit = fit_ts(shift_series, 1, quick_control)
        assert fit.n_draws == 20
        assert fit.rhos.shape == (20, 1)
        assert fit.etas.shape == (20, 2, 1, 1)
        assert fit.temp_history.shape == (20, 3)
        for row in fit.temp_history:
            assert sorted(row.tolist()) == [0, 1, 2]
        assert np.all((fit.rhos > 1) & (fit.rhos < 50))

    def test_deterministic(self, shift_series, quick_control):
        a = fit_ts(shift_series, 1, quick_control)
        b = fit_ts(shift_series, 1, quick_control)
        np.testing.assert_array_equal(a.rhos, b.rhos)
        np.testing.assert_array_equal(a.lls, b.lls)
        np.testing.assert_array_equal(a.temp_history, b.temp_history)

    def test_seed_changes_draws(self, shift_series, quick_control):
        a = fit_ts(shift_series, 1, quick_control)
        b = fit_ts(shift_series, 1, dict(quick_control, seed=8))
        assert not np.array_equal(a.lls, b.lls)

    def test_single_chain_with_deo_and_cadence(self, shift_series):
        control = ts_control(iterations=40, burnin=10, temperature_schedule=[1.0],
                             use_deo=True, changepoint_every=2, coefficient_every=3,
                             quiet=True)
        fit = fit_ts(shift_series, 1, control)
        assert fit.n_draws == 30
        assert fit.diagnostics['changepoint_attempts'][0] == 20
        assert fit.diagnostics['coefficient_attempts'][0] == 14 * 2
        assert fit.diagnostics['swap_attempts'].sum() == 0

    def test_adaptation_frozen_after_burnin(self, shift_series):
        short = ts_control(iterations=40, burnin=30, temperature_schedule=[1, 2, 4],
                           adapt_burnin=True, quiet=True, seed=21)
        long = ts_control(short, iterations=400)
        a = fit_ts(shift_series, 1, short)
        b = fit_ts(shift_series, 1, long)
        scale_a = a.diagnostics['coefficient_step_scale']
        np.testing.assert_allclose(b.diagnostics['coefficient_step_scale'], scale_a, rtol=1e-6)
        assert not np.allclose(scale_a, 1.0)

    def test_second_fit_reuses_kernel(self, shift_series, quick_control):
        clear_compiled_kernel_cache()
        first = fit_ts(shift_series, 1, quick_control)
        assert len(get_compiled_kernel_cache()) == 1
        assert first.compile_time > 0.0

        second = fit_ts(shift_series, 1, quick_control)
        assert len(get_compiled_kernel_cache()) == 1
        assert second.compile_time == 0.0
        np.testing.assert_array_equal(first.lls, second.lls)

    def test_one_start_message_per_fit(self, shift_series, quick_control, caplog):
        with caplog.at_level(logging.INFO, logger='cpmcmc'):
            fit_ts(shift_series, 1, quick_control, formula="~ 1", lda_name="LDA_1")
        starts = [r.getMessage() for r in caplog.records
                  if r.getMessage().startswith("Running TS model")]
        assert starts == ["Running TS model with 1 changepoints and equation ~ 1 on LDA model LDA_1"]


@pytest.mark.slow
class TestCollectionWorkflow:

    def test_fit_and_select(self, covariate_table, gamma_matrix, quick_control):
        models = ts_on_lda(gamma_matrix, covariate_table, formulas=["~ 1", "~ temp"],
                           nchangepoints=[0, 1], timename="newmoon", control=quick_control)
        assert models.names == [
            "LDA_1, ~ 1, 0 changepoints",
            "LDA_1, ~ temp, 0 changepoints",
            "LDA_1, ~ 1, 1 changepoints",
            "LDA_1, ~ temp, 1 changepoints",
        ]
        assert models["LDA_1, ~ temp, 1 changepoints"].etas.shape[1:] == (2, 2, 2)

        best = select_ts(models, quick_control)
        assert best.AIC == min(fit.AIC for fit in models)

    def test_one_start_message_per_model(self, covariate_table, gamma_matrix,
                                         quick_control, caplog):
        with caplog.at_level(logging.INFO, logger='cpmcmc'):
            models = ts_on_lda(gamma_matrix, covariate_table, formulas=["~ 1"],
                               nchangepoints=[0, 1], timename="newmoon", control=quick_control)
        starts = [r.getMessage() for r in caplog.records
                  if r.getMessage().startswith("Running TS model")]
        assert len(starts) == len(models) == 2
        assert all(s.endswith("on LDA model LDA_1") for s in starts)
