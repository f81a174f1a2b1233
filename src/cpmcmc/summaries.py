"""
Posterior Summaries of a Fitted Time Series Model.

Reduces the retained cold-chain draws into:
- per-changepoint summaries (mean, median, mode, 95% interval, sd,
  MCMC error, lag-10 autocorrelation, effective sample size)
- per-coefficient summaries (same statistics, no mode)
- posterior covariance matrices of changepoints and coefficients
- the model score (log-likelihood, parameter count, deviance, AIC)

All computation here is host-side NumPy on arrays already transferred from
the device.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class ParameterSummary:
    """Column-wise posterior summary of a set of scalar parameters."""
    labels: Tuple[str, ...]
    mean: np.ndarray
    median: np.ndarray
    lower_95: np.ndarray
    upper_95: np.ndarray
    sd: np.ndarray
    mcmc_err: np.ndarray
    ac10: np.ndarray
    ess: np.ndarray
    mode: Optional[np.ndarray] = None

    def __len__(self):
        return len(self.labels)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        """Rows keyed by label, columns keyed by statistic name."""
        columns = {
            'Mean': self.mean, 'Median': self.median,
            'Lower_95%': self.lower_95, 'Upper_95%': self.upper_95,
            'SD': self.sd, 'MCMCerr': self.mcmc_err,
            'AC10': self.ac10, 'ESS': self.ess,
        }
        if self.mode is not None:
            columns['Mode'] = self.mode
        return {
            label: {name: float(values[i]) for name, values in columns.items()}
            for i, label in enumerate(self.labels)
        }


@dataclass
class TSFit:
    """
    A fitted changepoint multinomial-regression model.

    Raw draws:
        rhos: (n_draws, k) changepoint times
        etas: (n_draws, k+1, n_terms, n_cats-1) segment coefficients
        lls: (n_draws,) untempered log-likelihood of each draw
        temp_history: (n_draws, n_chains) ladder rank of every chain per draw
    """
    series: Any
    formula: str
    nchangepoints: int
    control: Any
    temperatures: np.ndarray
    rhos: np.ndarray
    etas: np.ndarray
    lls: np.ndarray
    temp_history: np.ndarray
    rho_summary: ParameterSummary
    rho_vcov: np.ndarray
    eta_summary: ParameterSummary
    eta_vcov: np.ndarray
    logLik: float
    nparams: int
    deviance: float
    AIC: float
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    wall_time: float = 0.0
    compile_time: float = 0.0

    @property
    def n_draws(self) -> int:
        return self.lls.shape[0]

    @property
    def n_obs(self) -> int:
        return self.series.n_obs

    def __repr__(self):
        return (f"TSFit(formula={self.formula!r}, nchangepoints={self.nchangepoints}, "
                f"draws={self.n_draws}, logLik={self.logLik:.3f}, AIC={self.AIC:.3f})")


# =============================================================================
# CHAIN STATISTICS
# =============================================================================

def autocorrelation(x: np.ndarray) -> np.ndarray:
    """
    Sample autocorrelation function of a 1-D chain, all lags.

    Uses the biased (divide by n) autocovariance, computed by FFT.
    A constant chain has undefined autocorrelation and returns NaN.
    """
    x = np.asarray(x, dtype=np.float64)
    n = x.shape[0]
    centered = x - x.mean()
    size = 1 << int(np.ceil(np.log2(2 * n)))
    spectrum = np.fft.rfft(centered, size)
    acov = np.fft.irfft(spectrum * np.conj(spectrum), size)[:n] / n
    if acov[0] <= 0:
        return np.full(n, np.nan)
    return acov / acov[0]


def effective_sample_size(x: np.ndarray) -> float:
    """
    Effective sample size by Geyer's initial monotone sequence estimator.

    Sums autocorrelations in adjacent pairs until a pair turns non-positive,
    forcing the pair sums to be non-increasing.
    """
    n = x.shape[0]
    if n < 2:
        return float(n)
    rho = autocorrelation(x)
    if np.isnan(rho[0]):
        return np.nan

    n_pairs = n // 2
    pair_sums = rho[0:2 * n_pairs:2] + rho[1:2 * n_pairs:2]
    positive = pair_sums > 0
    cutoff = n_pairs if positive.all() else int(np.argmin(positive))
    pair_sums = np.minimum.accumulate(pair_sums[:cutoff])
    tau = -1.0 + 2.0 * np.sum(pair_sums)
    return float(n / max(tau, 1.0 / np.log10(max(n, 10))))


def modal_value(x: np.ndarray) -> float:
    """Most frequent value; ties go to the smallest."""
    values, counts = np.unique(x, return_counts=True)
    return float(values[np.argmax(counts)])


def summarize_draws(draws: np.ndarray, labels, include_mode: bool = False) -> ParameterSummary:
    """
    Summarize each column of a (n_draws, n_params) draw matrix.

    MCMC error is sd / sqrt(n_draws).
    """
    draws = np.asarray(draws, dtype=np.float64)
    n, p = draws.shape
    if p == 0:
        empty = np.zeros(0)
        return ParameterSummary(labels=(), mean=empty, median=empty, lower_95=empty,
                                upper_95=empty, sd=empty, mcmc_err=empty, ac10=empty,
                                ess=empty, mode=empty if include_mode else None)

    lower, median, upper = np.quantile(draws, [0.025, 0.5, 0.975], axis=0)
    sd = np.std(draws, axis=0, ddof=1) if n > 1 else np.full(p, np.nan)

    ac10 = np.full(p, np.nan)
    ess = np.full(p, np.nan)
    for j in range(p):
        if n > 10:
            ac10[j] = autocorrelation(draws[:, j])[10]
        ess[j] = effective_sample_size(draws[:, j])

    mode = None
    if include_mode:
        mode = np.array([modal_value(draws[:, j]) for j in range(p)])

    return ParameterSummary(
        labels=tuple(labels),
        mean=draws.mean(axis=0),
        median=median,
        lower_95=lower,
        upper_95=upper,
        sd=sd,
        mcmc_err=sd / np.sqrt(n),
        ac10=ac10,
        ess=ess,
        mode=mode,
    )


def posterior_vcov(draws: np.ndarray) -> np.ndarray:
    """Posterior covariance matrix of the columns of a draw matrix."""
    n, p = draws.shape
    if p == 0:
        return np.zeros((0, 0))
    if n < 2:
        return np.full((p, p), np.nan)
    return np.atleast_2d(np.cov(draws, rowvar=False))


# =============================================================================
# LABELS AND SCORE
# =============================================================================

def rho_labels(k: int) -> Tuple[str, ...]:
    return tuple(f"Changepoint_{j + 1}" for j in range(k))


def eta_labels(k: int, term_labels, category_labels) -> Tuple[str, ...]:
    """
    Labels for flattened coefficients in (segment, term, category) order.

    Category 0 is the reference level and has no coefficients.
    """
    return tuple(
        f"{seg + 1}_{cat}:{term}"
        for seg in range(k + 1)
        for term in term_labels
        for cat in category_labels[1:]
    )


def count_parameters(nchangepoints: int, n_terms: int, n_cats: int) -> int:
    """Free coefficients across all segments plus the changepoints."""
    return n_terms * (n_cats - 1) * (nchangepoints + 1) + nchangepoints


def model_score(lls: np.ndarray, nparams: int) -> Dict[str, float]:
    """logLik (mean retained log-likelihood), deviance and AIC."""
    log_lik = float(np.mean(lls))
    deviance = -2.0 * log_lik
    return {'logLik': log_lik, 'deviance': deviance, 'AIC': deviance + 2.0 * nparams}


def summarize_ts(series, formula, nchangepoints, control, temperatures,
                 rhos, etas, lls, temp_history, diagnostics,
                 wall_time=0.0, compile_time=0.0) -> TSFit:
    """
    Build a TSFit from the host-side draws of one run.
    """
    n_draws = lls.shape[0]
    flat_rhos = np.asarray(rhos).reshape(n_draws, nchangepoints)
    flat_etas = np.asarray(etas).reshape(n_draws, -1)

    r_labels = rho_labels(nchangepoints)
    e_labels = eta_labels(nchangepoints, series.term_labels, series.category_labels)

    nparams = count_parameters(nchangepoints, series.n_terms, series.n_cats)
    score = model_score(lls, nparams)

    return TSFit(
        series=series,
        formula=formula,
        nchangepoints=nchangepoints,
        control=control,
        temperatures=np.asarray(temperatures),
        rhos=flat_rhos,
        etas=np.asarray(etas),
        lls=np.asarray(lls),
        temp_history=np.asarray(temp_history),
        rho_summary=summarize_draws(flat_rhos, r_labels, include_mode=True),
        rho_vcov=posterior_vcov(flat_rhos.astype(np.float64)),
        eta_summary=summarize_draws(flat_etas, e_labels),
        eta_vcov=posterior_vcov(flat_etas),
        logLik=score['logLik'],
        nparams=nparams,
        deviance=score['deviance'],
        AIC=score['AIC'],
        diagnostics=diagnostics,
        wall_time=wall_time,
        compile_time=compile_time,
    )


# =============================================================================
# FITTED PROPORTIONS
# =============================================================================

def _draw_proportions(time, X, changepoints, coefficients):
    seg = np.sum(changepoints[None, :] < time[:, None], axis=1)
    eta = np.einsum('np,npc->nc', X, coefficients[seg])
    logits = np.concatenate([np.zeros((eta.shape[0], 1)), eta], axis=1)
    logits -= logits.max(axis=1, keepdims=True)
    probs = np.exp(logits)
    return seg, probs / probs.sum(axis=1, keepdims=True)


def fitted_proportions(fit: TSFit) -> np.ndarray:
    """Posterior mean category proportions per observation (n_obs, n_cats)."""
    series = fit.series
    total = np.zeros((series.n_obs, series.n_cats))
    for d in range(fit.n_draws):
        _, probs = _draw_proportions(series.time, series.X, fit.rhos[d], fit.etas[d])
        total += probs
    return total / max(fit.n_draws, 1)


def segment_proportions(fit: TSFit) -> np.ndarray:
    """
    Posterior mean fitted category proportions of each segment.

    For every draw the fitted proportions are averaged over the
    observations the draw places in each segment; draws are then averaged.

    Returns:
        (k+1, n_cats) array
    """
    series = fit.series
    n_segments = fit.nchangepoints + 1
    per_draw = np.full((fit.n_draws, n_segments, series.n_cats), np.nan)
    for d in range(fit.n_draws):
        seg, probs = _draw_proportions(series.time, series.X, fit.rhos[d], fit.etas[d])
        for s in range(n_segments):
            members = seg == s
            if np.any(members):
                per_draw[d, s] = probs[members].mean(axis=0)
    return np.nanmean(per_draw, axis=0)
