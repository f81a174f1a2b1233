"""
MCMC Subpackage - Core ptMCMC sampling implementation.

This package contains the changepoint sampler:
- single_run: Single-fit engine (fit_ts) and helpers
- compile: Kernel compilation and caching
- config: Control configuration and initialization
- diagnostics: Acceptance, swap and round-trip diagnostics
- tempering: Parallel tempering swap logic
- sampling: Changepoint and coefficient MH moves
- scan: Loop body of one iteration
- likelihood: Segment log-likelihoods and coefficient prior
- types: Core data structures (SeriesArrays, RunParams, EnsembleState)
- utils: Control defaults
"""

# Import types first (needed by other modules)
from .types import SeriesArrays, RunParams, EnsembleState, SampleStore, SamplerCarry, build_series_arrays

# Import main entry point
from .single_run import fit_ts

# Import commonly used functions
from .config import (
    TSControl,
    ts_control,
    prep_temp_sequence,
    configure_sampler,
    initialize_sampler,
)
from .likelihood import (
    DEGENERATE_LOG_LIK,
    segment_log_likelihoods,
    total_log_likelihood,
)
from .tempering import swap_log_acceptance, attempt_chain_swaps
from .diagnostics import (
    compute_round_trip_rate,
    print_acceptance_summary,
    print_swap_acceptance_summary,
    print_round_trip_summary,
)
from .compile import (
    compile_sampler_kernel,
    get_compiled_kernel_cache,
    clear_compiled_kernel_cache,
)

__all__ = [
    # Main entry point
    'fit_ts',
    # Types
    'SeriesArrays',
    'RunParams',
    'EnsembleState',
    'SampleStore',
    'SamplerCarry',
    'build_series_arrays',
    # Config
    'TSControl',
    'ts_control',
    'prep_temp_sequence',
    'configure_sampler',
    'initialize_sampler',
    # Likelihood
    'DEGENERATE_LOG_LIK',
    'segment_log_likelihoods',
    'total_log_likelihood',
    # Tempering
    'swap_log_acceptance',
    'attempt_chain_swaps',
    # Diagnostics
    'compute_round_trip_rate',
    'print_acceptance_summary',
    'print_swap_acceptance_summary',
    'print_round_trip_summary',
    # Compile
    'compile_sampler_kernel',
    'get_compiled_kernel_cache',
    'clear_compiled_kernel_cache',
]
