"""
MCMC Sampling Functions.

Core per-chain moves of the sampler:
- changepoint_step: Metropolis-Hastings move on one changepoint
- coefficient_step: Metropolis-Hastings sweep over every segment's coefficients
- chain_iteration: One full iteration of one chain at its current temperature
- parallel_chain_iteration: Vmapped version for all chains
- adapt_log_scales: Burn-in adjustment of the coefficient step scale per rank

Every move returns its acceptance count and attempt count so the caller
can accumulate statistics by ladder rank.
"""

import jax
import jax.numpy as jnp
import jax.random as random

from ..proposals import changepoint_proposal, rand_walk_proposal
from ..settings import StepSlot
from .likelihood import segment_log_likelihoods, log_prior
from .types import SeriesArrays


def _accept(key, log_ratio):
    """Draw the MH decision for a log acceptance ratio (NaN rejects)."""
    new_key, accept_key = random.split(key)
    safe_ratio = jnp.nan_to_num(log_ratio, nan=-jnp.inf)
    log_uniform = jnp.log(random.uniform(accept_key, shape=()))
    return log_uniform < safe_ratio, new_key


def changepoint_step(key, changepoints, coefficients, log_lik, temperature, settings,
                     series: SeriesArrays):
    """
    Perform one Metropolis-Hastings step on the changepoints.

    Invalid proposals (out of order or out of bounds) are rejected without
    being scored. Valid proposals are accepted with probability
    min(1, exp((LL' - LL) / T)).

    Returns:
        changepoints, log_lik, new_key, accepted (int), attempted (int)
    """
    k = changepoints.shape[0]
    if k == 0:
        return changepoints, log_lik, key, jnp.int32(0), jnp.int32(0)

    proposal, is_valid, log_hastings, key = changepoint_proposal(
        key, changepoints, temperature, settings, series.t_first, series.t_last
    )

    # Score only valid proposals; invalid ones keep the current score
    safe_proposal = jnp.where(is_valid, proposal, changepoints)
    ll_proposed = jnp.sum(segment_log_likelihoods(safe_proposal, coefficients, series))

    log_ratio = log_hastings + (ll_proposed - log_lik) / temperature
    log_ratio = jnp.where(is_valid, log_ratio, -jnp.inf)

    accept, key = _accept(key, log_ratio)
    next_cps = jnp.where(accept, proposal, changepoints)
    next_ll = jnp.where(accept, ll_proposed, log_lik)
    return next_cps, next_ll, key, accept.astype(jnp.int32), jnp.int32(1)


def coefficient_step(key, changepoints, coefficients, log_lik, temperature, log_scale,
                     settings, series: SeriesArrays, prior_sd):
    """
    Update each segment's coefficient matrix in turn.

    Target for segment j at temperature T:
        LL_j(B_j) / T + log_prior(B_j)

    Only the likelihood is tempered; the prior is not.

    Returns:
        coefficients, log_lik, new_key, accepted (int), attempted (int)
    """
    n_segments = coefficients.shape[0]

    def update_segment(carry, seg_idx):
        coefs, seg_lls, curr_key = carry
        current_block = coefs[seg_idx]

        proposed_block, log_hastings, curr_key = rand_walk_proposal(
            curr_key, current_block, settings, log_scale
        )
        proposed_coefs = coefs.at[seg_idx].set(proposed_block)
        proposed_seg_lls = segment_log_likelihoods(changepoints, proposed_coefs, series)

        log_ratio = (
            log_hastings
            + (proposed_seg_lls[seg_idx] - seg_lls[seg_idx]) / temperature
            + log_prior(proposed_block, prior_sd) - log_prior(current_block, prior_sd)
        )
        log_ratio = jnp.where(jnp.all(jnp.isfinite(proposed_block)), log_ratio, -jnp.inf)

        accept, curr_key = _accept(curr_key, log_ratio)
        coefs = jnp.where(accept, proposed_coefs, coefs)
        seg_lls = jnp.where(accept, proposed_seg_lls, seg_lls)
        return (coefs, seg_lls, curr_key), accept.astype(jnp.int32)

    seg_lls = segment_log_likelihoods(changepoints, coefficients, series)
    (coefficients, seg_lls, key), accepted = jax.lax.scan(
        update_segment, (coefficients, seg_lls, key), jnp.arange(n_segments)
    )
    # Rejected proposals leave seg_lls untouched, so the running sum stays exact
    new_log_lik = jnp.sum(seg_lls)
    return coefficients, new_log_lik, key, jnp.sum(accepted).astype(jnp.int32), jnp.int32(n_segments)


def chain_iteration(key, changepoints, coefficients, log_lik, temperature, log_scale,
                    settings, series: SeriesArrays, do_changepoint, do_coefficient, prior_sd):
    """
    One iteration of a single chain: changepoint move, then coefficient sweep.

    do_changepoint / do_coefficient are traced booleans implementing the
    per-move cadence; a skipped move reports zero attempts.

    Returns:
        key, changepoints, coefficients, log_lik,
        cp_accepted, cp_attempted, coef_accepted, coef_attempted
    """
    def run_cp(op):
        k_, cps, ll = op
        cps, ll, k_, acc, att = changepoint_step(
            k_, cps, coefficients, ll, temperature, settings, series
        )
        return k_, cps, ll, acc, att

    def skip_cp(op):
        k_, cps, ll = op
        return k_, cps, ll, jnp.int32(0), jnp.int32(0)

    key, changepoints, log_lik, cp_acc, cp_att = jax.lax.cond(
        do_changepoint, run_cp, skip_cp, (key, changepoints, log_lik)
    )

    def run_coef(op):
        k_, coefs, ll = op
        coefs, ll, k_, acc, att = coefficient_step(
            k_, changepoints, coefs, ll, temperature, log_scale, settings, series, prior_sd
        )
        return k_, coefs, ll, acc, att

    def skip_coef(op):
        k_, coefs, ll = op
        return k_, coefs, ll, jnp.int32(0), jnp.int32(0)

    key, coefficients, log_lik, coef_acc, coef_att = jax.lax.cond(
        do_coefficient, run_coef, skip_coef, (key, coefficients, log_lik)
    )

    return key, changepoints, coefficients, log_lik, cp_acc, cp_att, coef_acc, coef_att


def parallel_chain_iteration(keys, changepoints, coefficients, log_liks, temperatures,
                             log_scales, settings, series: SeriesArrays,
                             do_changepoint, do_coefficient, prior_sd):
    """
    Vmapped chain_iteration over all chains.

    Chains are independent within an iteration; they interact only through
    the swap step that follows.
    """
    return jax.vmap(
        chain_iteration,
        in_axes=(0, 0, 0, 0, 0, 0, None, None, None, None, None)
    )(keys, changepoints, coefficients, log_liks, temperatures, log_scales,
      settings, series, do_changepoint, do_coefficient, prior_sd)


def adapt_log_scales(log_scales, coef_accepted, coef_attempted, temp_assignments,
                     adapt_rate, target_accept):
    """
    Nudge the coefficient step scale of every rank toward the target rate.

        log_scale[r] += adapt_rate * (accept_rate - target_accept)

    Ranks whose chain made no coefficient attempt this iteration are left
    unchanged.

    Args:
        log_scales: Log step multiplier by rank (n_chains,)
        coef_accepted: Accepted segment updates per chain this iteration
        coef_attempted: Attempted segment updates per chain this iteration
        temp_assignments: Ladder rank per chain
        adapt_rate: Gain of the update
        target_accept: Target acceptance rate

    Returns:
        Updated log_scales (n_chains,)
    """
    attempted = coef_attempted > 0
    rate = coef_accepted / jnp.maximum(coef_attempted, 1)
    delta = jnp.where(attempted, adapt_rate * (rate - target_accept), 0.0)
    return log_scales.at[temp_assignments].add(delta.astype(log_scales.dtype))
