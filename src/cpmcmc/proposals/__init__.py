"""
Proposal Distributions for ptMCMC Sampling

This package implements the two Metropolis-Hastings moves of the sampler:
- changepoint_proposal: jitter or jump one changepoint (discrete, symmetric)
- rand_walk_proposal: Gaussian random walk on a segment's coefficients

Each proposal function returns its own log Hastings ratio alongside the
proposed value, so the acceptance step never needs to know which move
produced it. Both moves here are symmetric (log ratio 0).

All proposal functions are pure JAX and safe under jit/vmap.
"""

from .changepoint import changepoint_proposal, is_valid_changepoints
from .rand_walk import rand_walk_proposal

__all__ = [
    'changepoint_proposal',
    'is_valid_changepoints',
    'rand_walk_proposal',
]
