"""
MCMC Data Structures and Type Definitions.

This module contains the core data structures used by the sampler:
- SeriesArrays: Device-side copy of the time series (JAX pytree)
- RunParams: Immutable run parameters for JAX static arguments
- EnsembleState: Every chain's state plus the tempering ladder
- SampleStore: Pre-allocated cold-chain draws
- build_series_arrays: Factory function for SeriesArrays
"""

import jax
import jax.numpy as jnp
from dataclasses import dataclass
from typing import NamedTuple


@dataclass(frozen=True)
class SeriesArrays:
    """
    Device arrays for one TimeSeriesDataset.

    Registered as a JAX pytree: arrays are traced children, the shape
    metadata and time bounds are static auxiliary data.
    """
    time: jnp.ndarray     # (n_obs,) integer time index
    X: jnp.ndarray        # (n_obs, n_terms) design matrix
    Y: jnp.ndarray        # (n_obs, n_cats) response proportions
    weights: jnp.ndarray  # (n_obs,) observation weights

    # Metadata
    n_obs: int
    n_terms: int
    n_cats: int
    t_first: int
    t_last: int

    @property
    def n_free(self) -> int:
        """Free coefficients per segment (reference category fixed at 0)."""
        return self.n_terms * (self.n_cats - 1)


def _series_arrays_flatten(sa):
    """Flatten SeriesArrays for JAX pytree."""
    children = (sa.time, sa.X, sa.Y, sa.weights)
    aux_data = (sa.n_obs, sa.n_terms, sa.n_cats, sa.t_first, sa.t_last)
    return children, aux_data


def _series_arrays_unflatten(aux_data, children):
    """Unflatten SeriesArrays from JAX pytree."""
    time, X, Y, weights = children
    n_obs, n_terms, n_cats, t_first, t_last = aux_data
    return SeriesArrays(
        time=time, X=X, Y=Y, weights=weights,
        n_obs=n_obs, n_terms=n_terms, n_cats=n_cats,
        t_first=t_first, t_last=t_last,
    )


# Register SeriesArrays as a JAX pytree
jax.tree_util.register_pytree_node(
    SeriesArrays,
    _series_arrays_flatten,
    _series_arrays_unflatten
)


def build_series_arrays(series, float_dtype=jnp.float64) -> SeriesArrays:
    """
    Move a TimeSeriesDataset onto the device.

    Args:
        series: TimeSeriesDataset
        float_dtype: Float dtype for X, Y and weights

    Returns:
        SeriesArrays ready for the compiled sampler
    """
    int_dtype = jnp.int64 if float_dtype == jnp.float64 else jnp.int32
    return SeriesArrays(
        time=jnp.asarray(series.time, dtype=int_dtype),
        X=jnp.asarray(series.X, dtype=float_dtype),
        Y=jnp.asarray(series.Y, dtype=float_dtype),
        weights=jnp.asarray(series.weights, dtype=float_dtype),
        n_obs=int(series.n_obs),
        n_terms=int(series.n_terms),
        n_cats=int(series.n_cats),
        t_first=int(series.t_first),
        t_last=int(series.t_last),
    )


@dataclass(frozen=True)
class RunParams:
    """
    Immutable run parameters for JAX static argument compatibility.

    This frozen dataclass allows run parameters to be passed as static
    arguments to JIT-compiled functions. Anything that changes array shapes
    or Python control flow lives here; continuous tuning values live in the
    traced settings vector instead.
    """
    N_CHANGEPOINTS: int
    N_CHAINS: int
    TOTAL_ITERATIONS: int
    BURN_ITER: int
    THIN_ITERATION: int
    NUM_COLLECT: int
    CHUNK_SIZE: int = 100
    SWAP_EVERY: int = 1
    CHANGEPOINT_EVERY: int = 1
    COEFFICIENT_EVERY: int = 1
    USE_DEO: bool = False
    ADAPT_BURNIN: bool = False
    TARGET_ACCEPT: float = 0.3
    PRIOR_SD: float = 10.0


class EnsembleState(NamedTuple):
    """
    State of every chain in the ladder.

    Chains are stored by identity; ``temp_assignments[c]`` is the ladder rank
    currently held by chain ``c``. Swaps exchange ranks, never the
    (potentially large) coefficient arrays.
    """
    changepoints: jnp.ndarray      # (n_chains, k) integer changepoint times
    coefficients: jnp.ndarray      # (n_chains, k+1, n_terms, n_cats-1)
    log_liks: jnp.ndarray          # (n_chains,) untempered total log-likelihood
    keys: jnp.ndarray              # (n_chains, 2) per-chain RNG keys
    swap_key: jnp.ndarray          # (2,) RNG key for swap decisions
    temp_assignments: jnp.ndarray  # (n_chains,) ladder rank per chain
    temperature_ladder: jnp.ndarray  # (n_chains,) temperatures by rank, T[0] = 1
    log_coef_scales: jnp.ndarray   # (n_chains,) adaptive log step scale by rank
    cp_accepts: jnp.ndarray        # (n_chains,) by rank
    cp_attempts: jnp.ndarray       # (n_chains,) by rank
    coef_accepts: jnp.ndarray      # (n_chains,) by rank
    coef_attempts: jnp.ndarray     # (n_chains,) by rank
    swap_accepts: jnp.ndarray      # (max(1, n_chains-1),) per adjacent pair
    swap_attempts: jnp.ndarray     # (max(1, n_chains-1),) per adjacent pair
    swap_parity: jnp.ndarray       # () DEO parity (0 = even pairs, 1 = odd pairs)


class SampleStore(NamedTuple):
    """Append-only cold-chain draws, pre-allocated to NUM_COLLECT rows."""
    rhos: jnp.ndarray          # (num_collect, k)
    etas: jnp.ndarray          # (num_collect, k+1, n_terms, n_cats-1)
    lls: jnp.ndarray           # (num_collect,)
    temp_history: jnp.ndarray  # (num_collect, n_chains) rank of each chain per draw
    n_saved: jnp.ndarray       # () number of rows written


class SamplerCarry(NamedTuple):
    """Loop carry threaded through the compiled chunks."""
    ensemble: EnsembleState
    store: SampleStore
    iteration: jnp.ndarray     # () iterations completed
