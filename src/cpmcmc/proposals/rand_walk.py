"""
Random Walk Proposal for Segment Coefficients

Isotropic Gaussian random walk on one segment's coefficient matrix.

Proposal: B' ~ N(B_current, (coef_step * exp(log_scale))^2 * I)
where:
    - coef_step is the base step (StepSlot.COEF_STEP, default 0.1)
    - log_scale is the per-rank adaptive log scale (0 unless burn-in
      adaptation is enabled)

Hastings ratio: 0 (symmetric proposal, q(B'|B) = q(B|B'))

Settings used:
    COEF_STEP - Random-walk standard deviation at log_scale = 0
"""

import jax.numpy as jnp
import jax.random as random

from ..settings import StepSlot


def rand_walk_proposal(key, current_block, settings, log_scale):
    """
    Random walk proposal for one coefficient matrix.

    Args:
        key: JAX random key
        current_block: Current coefficients (n_terms, n_cats-1)
        settings: Settings vector indexed by StepSlot
        log_scale: Adaptive log multiplier on the step size (scalar)

    Returns:
        proposal: Proposed coefficients, same shape as current_block
        log_hastings_ratio: 0.0 (symmetric proposal)
        new_key: Updated random key
    """
    new_key, proposal_key = random.split(key)

    step_sd = settings[StepSlot.COEF_STEP] * jnp.exp(log_scale)
    noise = random.normal(proposal_key, shape=current_block.shape, dtype=current_block.dtype)
    proposal = current_block + noise * step_sd

    # Symmetric proposal: q(x'|x) = q(x|x'), so log ratio = 0
    log_hastings_ratio = 0.0

    return proposal, log_hastings_ratio, new_key
