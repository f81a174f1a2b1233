"""
Summary Tests - Posterior Statistics and Model Score

Tests:
- autocorrelation / effective_sample_size on known chains
- modal_value tie-breaking
- summarize_draws columns
- count_parameters / model_score
- eta_labels ordering
- segment_proportions on fixed draws

Run with: pytest tests/test_summaries.py -v
"""

import numpy as np
import pytest

from cpmcmc.summaries import (
    autocorrelation,
    effective_sample_size,
    modal_value,
    summarize_draws,
    posterior_vcov,
    count_parameters,
    model_score,
    rho_labels,
    eta_labels,
    summarize_ts,
    segment_proportions,
    fitted_proportions,
)
from cpmcmc.mcmc.config import ts_control


def _ar1(n, phi, seed=0):
    rng = np.random.default_rng(seed)
    x = np.zeros(n)
    for i in range(1, n):
        x[i] = phi * x[i - 1] + rng.normal()
    return x


class TestChainStatistics:

    def test_autocorrelation_lag_zero(self):
        rho = autocorrelation(np.random.default_rng(0).normal(size=200))
        assert rho[0] == pytest.approx(1.0)
        assert rho.shape == (200,)

    def test_autocorrelation_alternating(self):
        rho = autocorrelation(np.tile([1.0, -1.0], 50))
        assert rho[1] < -0.9

    def test_constant_chain(self):
        assert np.all(np.isnan(autocorrelation(np.ones(20))))
        assert np.isnan(effective_sample_size(np.ones(20)))

    def test_ess_independent_near_n(self):
        x = np.random.default_rng(3).normal(size=4000)
        assert 3000 < effective_sample_size(x) < 5500

    def test_ess_correlated_smaller(self):
        x = _ar1(4000, 0.9)
        # Theoretical n * (1 - phi) / (1 + phi) ~ 210
        assert 80 < effective_sample_size(x) < 500

    def test_modal_value_ties_smallest(self):
        assert modal_value(np.array([5, 3, 5, 3, 9])) == 3.0
        assert modal_value(np.array([7, 7, 2])) == 7.0


class TestSummarizeDraws:

    def test_columns(self):
        rng = np.random.default_rng(0)
        draws = np.column_stack([rng.normal(0, 1, 5000), rng.normal(5, 2, 5000)])
        summary = summarize_draws(draws, ("a", "b"))

        np.testing.assert_allclose(summary.mean, [0, 5], atol=0.1)
        np.testing.assert_allclose(summary.sd, [1, 2], rtol=0.05)
        np.testing.assert_allclose(summary.mcmc_err, summary.sd / np.sqrt(5000))
        np.testing.assert_allclose(summary.lower_95, [-1.96, 5 - 3.92], atol=0.15)
        np.testing.assert_allclose(summary.upper_95, [1.96, 5 + 3.92], atol=0.15)
        assert summary.mode is None
        assert len(summary) == 2

    def test_mode_and_dict(self):
        draws = np.array([[10], [12], [12], [11]])
        summary = summarize_draws(draws, ("Changepoint_1",), include_mode=True)
        assert summary.mode[0] == 12.0
        row = summary.to_dict()["Changepoint_1"]
        assert row["Mean"] == pytest.approx(11.25)
        assert row["Mode"] == 12.0
        assert np.isnan(row["AC10"])

    def test_no_parameters(self):
        summary = summarize_draws(np.zeros((5, 0)), (), include_mode=True)
        assert len(summary) == 0
        assert posterior_vcov(np.zeros((5, 0))).shape == (0, 0)

    def test_vcov(self):
        rng = np.random.default_rng(1)
        draws = rng.normal(size=(3000, 2)) * np.array([1.0, 3.0])
        vcov = posterior_vcov(draws)
        np.testing.assert_allclose(np.diag(vcov), [1.0, 9.0], rtol=0.1)


class TestScore:

    def test_count_parameters(self):
        # 2 terms x 3 free categories x 3 segments + 2 changepoints
        assert count_parameters(2, 2, 4) == 20
        assert count_parameters(0, 1, 2) == 1

    def test_model_score(self):
        score = model_score(np.array([-10.0, -12.0]), 3)
        assert score['logLik'] == -11.0
        assert score['deviance'] == 22.0
        assert score['AIC'] == 28.0


class TestLabels:

    def test_rho_labels(self):
        assert rho_labels(2) == ("Changepoint_1", "Changepoint_2")

    def test_eta_labels_order(self):
        labels = eta_labels(1, ("(Intercept)", "temp"), ("t1", "t2", "t3"))
        assert labels == (
            "1_t2:(Intercept)", "1_t3:(Intercept)", "1_t2:temp", "1_t3:temp",
            "2_t2:(Intercept)", "2_t3:(Intercept)", "2_t2:temp", "2_t3:temp",
        )


class TestProportions:

    def _fit(self, series, rhos, etas):
        n = rhos.shape[0]
        return summarize_ts(
            series=series, formula="~ 1", nchangepoints=rhos.shape[1],
            control=ts_control(iterations=2), temperatures=np.array([1.0]),
            rhos=rhos, etas=etas, lls=np.full(n, -5.0),
            temp_history=np.zeros((n, 1), dtype=np.int32), diagnostics={},
        )

    def test_segment_proportions(self, shift_series):
        logit = np.log(0.2 / 0.8)
        etas = np.tile(np.array([[[logit]], [[-logit]]])[None], (4, 1, 1, 1))
        rhos = np.full((4, 1), 25)
        fit = self._fit(shift_series, rhos, etas)

        np.testing.assert_allclose(segment_proportions(fit), [[0.8, 0.2], [0.2, 0.8]])
        fitted = fitted_proportions(fit)
        np.testing.assert_allclose(fitted[0], [0.8, 0.2])
        np.testing.assert_allclose(fitted[-1], [0.2, 0.8])

    def test_fit_summary_fields(self, shift_series):
        etas = np.zeros((3, 2, 1, 1))
        rhos = np.array([[20], [25], [25]])
        fit = self._fit(shift_series, rhos, etas)

        assert fit.n_draws == 3
        assert fit.nparams == 3
        assert fit.logLik == -5.0
        assert fit.AIC == 16.0
        assert fit.rho_summary.mode[0] == 25.0
        assert fit.eta_summary.labels == ("1_topic_2:(Intercept)", "2_topic_2:(Intercept)")
        assert fit.rho_vcov.shape == (1, 1)
