"""
Segment Likelihood Evaluator.

Scores a changepoint configuration by partitioning the series into
contiguous segments and evaluating a weighted multinomial-logit
log-likelihood within each one.

Segment membership: observation at time t belongs to segment j, where j is
the number of changepoints strictly less than t. Segment j therefore spans
(cp[j-1], cp[j]].

Functions:
- segment_ids: Segment index per observation
- segment_log_likelihoods: Per-segment weighted log-likelihood
- total_log_likelihood: Sum over segments
- log_prior: Independent Gaussian prior on coefficients
- fitted_log_proportions: Log category probabilities per observation
"""

import jax
import jax.numpy as jnp
import jax.scipy.stats as stats

from .types import SeriesArrays


# Score given to a segment with fewer observations than free coefficients.
# Finite so that acceptance ratios stay well defined; low enough that any
# proposal creating such a segment is rejected with near certainty.
DEGENERATE_LOG_LIK = -1e8


def segment_ids(time: jnp.ndarray, changepoints: jnp.ndarray) -> jnp.ndarray:
    """
    Segment index for every observation.

    Args:
        time: Observation times (n_obs,)
        changepoints: Sorted changepoint times (k,)

    Returns:
        Integer segment index in [0, k] per observation (n_obs,)
    """
    return jnp.sum(changepoints[None, :] < time[:, None], axis=1)


def fitted_log_proportions(changepoints, coefficients, series: SeriesArrays) -> jnp.ndarray:
    """
    Log category probabilities under the segment regressions.

    Category 0 is the reference level with linear predictor fixed at 0.

    Args:
        changepoints: (k,) changepoint times
        coefficients: (k+1, n_terms, n_cats-1) segment coefficient matrices
        series: SeriesArrays

    Returns:
        (n_obs, n_cats) log probabilities
    """
    seg = segment_ids(series.time, changepoints)
    beta_obs = coefficients[seg]                        # (n_obs, n_terms, n_cats-1)
    eta = jnp.einsum('np,npc->nc', series.X, beta_obs)  # (n_obs, n_cats-1)
    logits = jnp.concatenate([jnp.zeros_like(eta[:, :1]), eta], axis=1)
    return jax.nn.log_softmax(logits, axis=1)


def segment_log_likelihoods(changepoints, coefficients, series: SeriesArrays) -> jnp.ndarray:
    """
    Weighted multinomial-logit log-likelihood of each segment.

    An observation with weight w contributes w * sum_c Y_c * log p_c.
    Categories with zero observed proportion contribute nothing, so a zero
    probability is only fatal where weight was actually observed.

    Degenerate segments (fewer observations than free coefficients) score
    DEGENERATE_LOG_LIK. Non-finite values are mapped to -inf.

    Args:
        changepoints: (k,) changepoint times
        coefficients: (k+1, n_terms, n_cats-1)
        series: SeriesArrays

    Returns:
        (k+1,) per-segment log-likelihoods
    """
    n_segments = coefficients.shape[0]
    log_p = fitted_log_proportions(changepoints, coefficients, series)

    per_cat = jnp.where(series.Y > 0, series.Y * log_p, 0.0)
    contrib = series.weights * jnp.sum(per_cat, axis=1)   # (n_obs,)

    seg = segment_ids(series.time, changepoints)
    seg_ll = jax.ops.segment_sum(contrib, seg, num_segments=n_segments)   # (k+1,)
    counts = jax.ops.segment_sum(jnp.ones_like(contrib), seg, num_segments=n_segments)

    seg_ll = jnp.where(counts < series.n_free, DEGENERATE_LOG_LIK, seg_ll)
    return jnp.nan_to_num(seg_ll, nan=-jnp.inf, posinf=-jnp.inf, neginf=-jnp.inf)


def total_log_likelihood(changepoints, coefficients, series: SeriesArrays) -> jnp.ndarray:
    """Summed log-likelihood over all segments."""
    return jnp.sum(segment_log_likelihoods(changepoints, coefficients, series))


def log_prior(coefficients, prior_sd) -> jnp.ndarray:
    """Independent zero-centered Gaussian prior on every coefficient."""
    return jnp.sum(stats.norm.logpdf(coefficients, loc=0.0, scale=prior_sd))
