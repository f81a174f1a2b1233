"""
Changepoint Proposal for ptMCMC Sampling

Discrete proposal on the set of k changepoint times. One changepoint,
chosen uniformly, is moved by one of two kernels:

    jitter (probability 1 - jump_prob):
        cp' = cp + s * m,  s ~ Uniform{-1, +1},  m ~ Uniform{1, ..., M(T)}
        M(T) = max(1, round(cp_step * sqrt(T)))
    jump (probability jump_prob):
        cp' ~ Uniform{t_first + 1, ..., t_last - 1}

Hotter chains take wider jitter steps, scaling with the square root of
their temperature.

Hastings ratio: 0. The jitter is symmetric in s, and the jump density
does not depend on the current value.

Proposals that break strict ordering or leave (t_first, t_last) are not
repaired; they are flagged invalid and the caller rejects them unscored.

Settings used:
    CP_STEP   - Largest jitter at temperature 1 (time units, default 3.0)
    JUMP_PROB - Probability of a uniform long-range jump (default 0.1)
"""

import jax.numpy as jnp
import jax.random as random

from ..settings import StepSlot


def is_valid_changepoints(changepoints, t_first, t_last):
    """
    Check strict ordering and strict interior bounds.

    Args:
        changepoints: (k,) integer changepoint times
        t_first: First observation time
        t_last: Last observation time

    Returns:
        Scalar bool
    """
    in_bounds = jnp.all((changepoints > t_first) & (changepoints < t_last))
    ordered = jnp.all(jnp.diff(changepoints) > 0)
    return in_bounds & ordered


def changepoint_proposal(key, changepoints, temperature, settings, t_first, t_last):
    """
    Propose a new changepoint set by moving one changepoint.

    Args:
        key: JAX random key
        changepoints: Current changepoint times (k,), k >= 1
        temperature: Temperature of the proposing chain (scalar >= 1)
        settings: Settings vector indexed by StepSlot
        t_first: First observation time (static int)
        t_last: Last observation time (static int)

    Returns:
        proposal: Proposed changepoint times (k,)
        is_valid: Whether the proposal satisfies ordering and bounds
        log_hastings_ratio: 0.0 (symmetric proposal)
        new_key: Updated random key
    """
    k = changepoints.shape[0]
    dtype = changepoints.dtype
    new_key, idx_key, kind_key, jump_key, step_key, sign_key = random.split(key, 6)

    idx = random.randint(idx_key, (), 0, k)
    is_jump = random.uniform(kind_key) < settings[StepSlot.JUMP_PROB]

    # Uniform over every interior integer position
    jump_target = random.randint(jump_key, (), t_first + 1, t_last, dtype=dtype)

    # Bounded non-zero jitter, wider for hotter chains
    max_step = jnp.maximum(1, jnp.round(settings[StepSlot.CP_STEP] * jnp.sqrt(temperature)))
    max_step = max_step.astype(dtype)
    magnitude = random.randint(step_key, (), 1, max_step + 1, dtype=dtype)
    sign = jnp.where(random.bernoulli(sign_key), 1, -1).astype(dtype)
    jitter_target = changepoints[idx] + sign * magnitude

    new_value = jnp.where(is_jump, jump_target, jitter_target)
    proposal = changepoints.at[idx].set(new_value)

    is_valid = is_valid_changepoints(proposal, t_first, t_last)
    log_hastings_ratio = 0.0

    return proposal, is_valid, log_hastings_ratio, new_key
