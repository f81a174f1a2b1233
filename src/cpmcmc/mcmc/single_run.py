"""
MCMC Single Run - Fit one changepoint model.

This module provides fit_ts() and its helper functions for executing a
single sampler run on one dataset with a fixed number of changepoints. For
fitting many (dataset, formula, k) combinations and selecting among them,
see cpmcmc.collection.

Helper functions:
- _run_mcmc_iterations: Execute the chunked sampling loop
- _transfer_to_host: Move draws and counters from device to host
"""

import gc
import time
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple, Union

import jax
import numpy as np

from .types import RunParams, SamplerCarry
from .config import TSControl, ts_control, configure_sampler, initialize_sampler
from .compile import compile_sampler_kernel
from .scan import RunPhase, run_phase
from .diagnostics import (
    sampler_diagnostics,
    print_acceptance_summary,
    print_swap_acceptance_summary,
    print_round_trip_summary,
)
from ..error_handling import validate_model_inputs, diagnose_sampler_issues, print_diagnostics
from ..summaries import TSFit, summarize_ts

import logging
logger = logging.getLogger('cpmcmc')

__all__ = ['fit_ts']


def _run_mcmc_iterations(
    compiled_chunk,
    initial_carry: SamplerCarry,
    run_params: RunParams,
) -> Tuple[SamplerCarry, float]:
    """
    Execute the main sampling loop in compiled chunks.

    Returns:
        final_carry: Final carry (arrays still on device)
        wall_time: Total wall clock time for sampling
    """
    total_iterations = run_params.TOTAL_ITERATIONS
    chunk_size = run_params.CHUNK_SIZE
    num_chunks = (total_iterations + chunk_size - 1) // chunk_size

    start_run_time = time.perf_counter()
    current_carry = initial_carry
    phase = RunPhase.INITIALIZING

    for i in range(num_chunks):
        chunk_phase = run_phase(i * chunk_size, run_params)
        if chunk_phase != phase:
            logger.info(f"  {chunk_phase.value.capitalize()} (iteration {i * chunk_size})")
            phase = chunk_phase
        current_carry = compiled_chunk(current_carry)
        if i % max(1, num_chunks // 10) == 0:
            logger.info(f"  Chunk {i + 1}/{num_chunks}...")

    jax.block_until_ready(current_carry)
    wall_time = time.perf_counter() - start_run_time

    logger.info(f"  {RunPhase.DONE.value.capitalize()}: "
                f"{int(current_carry.iteration)} iterations in "
                f"{timedelta(seconds=int(wall_time))} ({wall_time:.2f}s)")
    return current_carry, wall_time


def _transfer_to_host(final_carry: SamplerCarry):
    """
    Transfer the sample store and ensemble counters from device to host.

    Returns:
        (store, ensemble) as NamedTuples of NumPy arrays
    """
    logger.info("Transferring draws to Host...")
    store = jax.tree_util.tree_map(np.asarray, jax.device_get(final_carry.store))
    ensemble = jax.tree_util.tree_map(np.asarray, jax.device_get(final_carry.ensemble))
    return store, ensemble


def fit_ts(
    series,
    nchangepoints: int,
    control: Optional[Union[TSControl, Dict[str, Any]]] = None,
    formula: Optional[str] = None,
    lda_name: Optional[str] = None,
) -> TSFit:
    """
    Fit a changepoint multinomial-regression model with ptMCMC.

    Args:
        series: TimeSeriesDataset
        nchangepoints: Number of changepoints k (fixed for this fit)
        control: TSControl or dict of control values (see ts_control)
        formula: Formula label recorded on the fit; derived from the
                 dataset's term labels when omitted
        lda_name: Name of the topic model the series came from, added to
                  the progress message

    Returns:
        TSFit with summaries, score, raw draws and diagnostics

    Raises:
        ValueError: If the control values or k are invalid (before sampling)
    """
    # --- 1. VALIDATE ---
    if not isinstance(control, TSControl):
        control = ts_control(control)
    validate_model_inputs(series, nchangepoints)
    nchangepoints = int(nchangepoints)
    if formula is None:
        formula = "~ " + " + ".join(
            "1" if label == "(Intercept)" else label for label in series.term_labels
        )

    message = f"Running TS model with {nchangepoints} changepoints and equation {formula}"
    if lda_name is not None:
        message += f" on LDA model {lda_name}"
    logger.info(message)

    # --- 2. CONFIGURE ---
    run_params, series_arrays, settings = configure_sampler(series, nchangepoints, control)
    logger.info(f"JAX backend: {jax.default_backend()}")

    # --- 3. INITIALIZE CHAINS ---
    initial_carry = initialize_sampler(series_arrays, run_params, control)

    # --- 4. COMPILE KERNEL ---
    compiled_chunk, compile_time = compile_sampler_kernel(
        series_arrays, settings, run_params, initial_carry
    )

    # --- 5. RUN ---
    gc.collect()
    final_carry, wall_time = _run_mcmc_iterations(compiled_chunk, initial_carry, run_params)

    # --- 6. TRANSFER TO HOST ---
    store, ensemble = _transfer_to_host(final_carry)
    temperatures = np.asarray(control.temperatures)
    diagnostics = sampler_diagnostics(ensemble, store.temp_history)

    if not control.quiet:
        print_acceptance_summary(temperatures, diagnostics, nchangepoints)
        print_swap_acceptance_summary(
            temperatures, ensemble.swap_accepts[:len(temperatures) - 1],
            ensemble.swap_attempts[:len(temperatures) - 1]
        )
        print_round_trip_summary(store.temp_history, len(temperatures))

    # --- 7. SUMMARIZE ---
    fit = summarize_ts(
        series=series,
        formula=formula,
        nchangepoints=nchangepoints,
        control=control,
        temperatures=temperatures,
        rhos=store.rhos,
        etas=store.etas,
        lls=store.lls,
        temp_history=store.temp_history,
        diagnostics=diagnostics,
        wall_time=wall_time,
        compile_time=compile_time,
    )

    # --- 8. POST-RUN DIAGNOSTICS ---
    issues = diagnose_sampler_issues(fit)
    if not control.quiet:
        print_diagnostics(issues)
    if issues['issues']:
        logger.warning("Issues detected during sampling! Review diagnostics before using results.")

    return fit
