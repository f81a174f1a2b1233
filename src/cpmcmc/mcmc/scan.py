"""
MCMC Scan Body.

This module contains one iteration of the sampler loop:
- run_phase: Burning-in / Sampling phase of an iteration
- mcmc_scan_body: Within-chain moves, adaptation, swaps and saving

Temperature swap logic lives in mcmc.tempering.
"""

from enum import Enum

import jax
import jax.numpy as jnp

from ..settings import StepSlot
from .types import RunParams, SeriesArrays, SamplerCarry
from .sampling import parallel_chain_iteration, adapt_log_scales
from .tempering import attempt_chain_swaps


class RunPhase(Enum):
    INITIALIZING = 'initializing'
    BURNING_IN = 'burning-in'
    SAMPLING = 'sampling'
    DONE = 'done'


def run_phase(iteration: int, run_params: RunParams) -> RunPhase:
    """Phase the run is in before executing the given iteration."""
    if iteration >= run_params.TOTAL_ITERATIONS:
        return RunPhase.DONE
    if iteration < run_params.BURN_ITER:
        return RunPhase.BURNING_IN
    return RunPhase.SAMPLING


def mcmc_scan_body(carry: SamplerCarry, series: SeriesArrays, settings,
                   run_params: RunParams) -> SamplerCarry:
    """
    One iteration of the sampler.

    Order within the iteration:
        1. Every chain: changepoint move, then coefficient sweep (per cadence)
        2. Burn-in step-size adaptation (if enabled)
        3. Swap sweep over the ladder (per cadence)
        4. Save the cold chain's post-swap state (after burn-in, on thinned
           iterations)

    INDEX PROCESS: Swaps modify temp_assignments, not states.
    """
    ens, store, iteration = carry

    ranks = ens.temp_assignments
    temperatures = ens.temperature_ladder[ranks]
    log_scales = ens.log_coef_scales[ranks]

    do_changepoint = (iteration % run_params.CHANGEPOINT_EVERY) == 0
    do_coefficient = (iteration % run_params.COEFFICIENT_EVERY) == 0

    (keys, changepoints, coefficients, log_liks,
     cp_acc, cp_att, coef_acc, coef_att) = parallel_chain_iteration(
        ens.keys, ens.changepoints, ens.coefficients, ens.log_liks,
        temperatures, log_scales, settings, series,
        do_changepoint, do_coefficient, run_params.PRIOR_SD
    )

    # Acceptance statistics by ladder rank (ranks form a permutation)
    cp_accepts = ens.cp_accepts.at[ranks].add(cp_acc)
    cp_attempts = ens.cp_attempts.at[ranks].add(cp_att)
    coef_accepts = ens.coef_accepts.at[ranks].add(coef_acc)
    coef_attempts = ens.coef_attempts.at[ranks].add(coef_att)

    log_coef_scales = ens.log_coef_scales
    if run_params.ADAPT_BURNIN:
        adapted = adapt_log_scales(
            log_coef_scales, coef_acc, coef_att, ranks,
            settings[StepSlot.ADAPT_RATE], run_params.TARGET_ACCEPT
        )
        # Frozen once burn-in ends
        log_coef_scales = jnp.where(iteration < run_params.BURN_ITER, adapted, log_coef_scales)

    temp_assignments = ens.temp_assignments
    swap_key = ens.swap_key
    swap_accepts, swap_attempts, swap_parity = ens.swap_accepts, ens.swap_attempts, ens.swap_parity

    if run_params.N_CHAINS > 1:
        def do_swaps(operand):
            assigns, s_key, s_accepts, s_attempts, parity = operand
            return attempt_chain_swaps(
                s_key, log_liks, assigns, ens.temperature_ladder,
                s_accepts, s_attempts, parity, use_deo=run_params.USE_DEO
            )

        def skip_swaps(operand):
            return operand

        do_swap = ((iteration + 1) % run_params.SWAP_EVERY) == 0
        (temp_assignments, swap_key, swap_accepts, swap_attempts, swap_parity) = jax.lax.cond(
            do_swap, do_swaps, skip_swaps,
            (temp_assignments, swap_key, swap_accepts, swap_attempts, swap_parity)
        )

    next_ens = ens._replace(
        changepoints=changepoints,
        coefficients=coefficients,
        log_liks=log_liks,
        keys=keys,
        swap_key=swap_key,
        temp_assignments=temp_assignments,
        log_coef_scales=log_coef_scales,
        cp_accepts=cp_accepts,
        cp_attempts=cp_attempts,
        coef_accepts=coef_accepts,
        coef_attempts=coef_attempts,
        swap_accepts=swap_accepts,
        swap_attempts=swap_attempts,
        swap_parity=swap_parity,
    )

    # Save the chain currently holding rank 0
    is_after_burn_in = iteration >= run_params.BURN_ITER
    collection_iteration = iteration - run_params.BURN_ITER
    is_thin_iter = (collection_iteration + 1) % run_params.THIN_ITERATION == 0
    thin_idx = collection_iteration // run_params.THIN_ITERATION
    should_save = is_after_burn_in & is_thin_iter & (thin_idx >= 0) & (thin_idx < run_params.NUM_COLLECT)

    def save(s):
        cold = jnp.argmin(temp_assignments)
        return s._replace(
            rhos=s.rhos.at[thin_idx].set(changepoints[cold]),
            etas=s.etas.at[thin_idx].set(coefficients[cold]),
            lls=s.lls.at[thin_idx].set(log_liks[cold]),
            temp_history=s.temp_history.at[thin_idx].set(temp_assignments),
            n_saved=s.n_saved + 1,
        )

    next_store = jax.lax.cond(should_save, save, lambda s: s, store)

    return SamplerCarry(ensemble=next_ens, store=next_store, iteration=iteration + 1)
