"""
MCMC Kernel Compilation and Caching.

This module handles JAX compilation of the sampler kernel:
- _run_sampler_chunk: Module-level chunk runner for cache-stable tracing
- _compute_cache_key: In-memory cache key for compiled kernels
- compile_sampler_kernel: AOT-compile (or fetch) the chunk runner
"""

import time
from typing import Any, Dict, Tuple

import jax

from .types import RunParams, SeriesArrays, SamplerCarry
from .scan import mcmc_scan_body

import logging
logger = logging.getLogger('cpmcmc')


# Compiled chunk runners keyed by static configuration and array shapes
_COMPILED_KERNEL_CACHE = {}


def _compute_cache_key(series: SeriesArrays, settings, run_params: RunParams) -> Tuple:
    """
    Compute a cache key for the compiled kernel.

    The key captures everything that affects the compiled function: the
    static RunParams and the shapes and dtypes of the traced data. Data
    values are not part of the key; they are passed on every call.
    """
    return (
        run_params,
        series.n_obs, series.n_terms, series.n_cats,
        series.t_first, series.t_last,
        str(series.X.dtype), str(series.time.dtype),
        tuple(settings.shape), str(settings.dtype),
    )


def get_compiled_kernel_cache() -> Dict:
    """Get reference to the compiled kernel cache."""
    return _COMPILED_KERNEL_CACHE


def clear_compiled_kernel_cache() -> None:
    _COMPILED_KERNEL_CACHE.clear()


def _run_sampler_chunk(carry: SamplerCarry, series: SeriesArrays, settings,
                       run_params: RunParams) -> SamplerCarry:
    """
    Run up to CHUNK_SIZE iterations.

    Iterations past TOTAL_ITERATIONS are no-ops, so the last chunk never
    overshoots the budget.
    """
    def fori_body(i, c):
        return jax.lax.cond(
            c.iteration < run_params.TOTAL_ITERATIONS,
            lambda cc: mcmc_scan_body(cc, series, settings, run_params),
            lambda cc: cc,
            c,
        )

    return jax.lax.fori_loop(0, run_params.CHUNK_SIZE, fori_body, carry)


def compile_sampler_kernel(
    series: SeriesArrays,
    settings,
    run_params: RunParams,
    initial_carry: SamplerCarry,
) -> Tuple[Any, float]:
    """
    Compile the sampler kernel, using cache if available.

    Args:
        series: SeriesArrays (traced)
        settings: Proposal settings vector (traced)
        run_params: RunParams (static)
        initial_carry: Initial loop carry for tracing

    Returns:
        Tuple of (compiled_chunk_fn, compile_time); compiled_chunk_fn maps
        carry -> carry with this fit's data bound
    """
    cache_key = _compute_cache_key(series, settings, run_params)
    compiled_fn = _COMPILED_KERNEL_CACHE.get(cache_key)
    compile_time = 0.0

    if compiled_fn is not None:
        logger.info("Using cached kernel (in-memory)")
    else:
        run_chunk_jit = jax.jit(_run_sampler_chunk, static_argnames=('run_params',))

        logger.info("Compiling kernel...")
        compile_start = time.perf_counter()
        compiled_fn = run_chunk_jit.lower(initial_carry, series, settings, run_params).compile()
        compile_time = time.perf_counter() - compile_start
        logger.info(f"Compiled in {compile_time:.4f}s")

        _COMPILED_KERNEL_CACHE[cache_key] = compiled_fn

    _cf, _series, _settings = compiled_fn, series, settings

    def compiled_chunk(carry):
        return _cf(carry, _series, _settings)

    return compiled_chunk, compile_time
