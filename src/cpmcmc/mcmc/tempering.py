"""
MCMC Tempering - Parallel tempering swap logic.

This module implements index-process parallel tempering with an optional
DEO (Deterministic Even-Odd) scheme (Syed et al. 2021).

Temperature ASSIGNMENTS are swapped, not chain states. Each chain keeps its
own changepoints and coefficients; only its ladder rank changes.

Functions:
- swap_log_acceptance: Log acceptance ratio for exchanging two chains
- attempt_chain_swaps: One sweep of adjacent-pair swaps over the ladder
"""

import jax
import jax.numpy as jnp
import jax.random as random


def swap_log_acceptance(ll_i, ll_j, t_i, t_j):
    """
    Log acceptance ratio for exchanging the states at temperatures t_i and t_j.

        log_alpha = (LL_i - LL_j) * (1/T_j - 1/T_i)

    Symmetric in the pair (i, j). Undefined values (e.g. -inf minus -inf)
    are mapped to -inf, so the swap is rejected.
    """
    log_alpha = (ll_i - ll_j) * (1.0 / t_j - 1.0 / t_i)
    return jnp.where(jnp.isnan(log_alpha), -jnp.inf, log_alpha)


def attempt_chain_swaps(
    key,
    log_liks,
    temp_assignments,
    temperature_ladder,
    swap_accepts, swap_attempts,
    swap_parity,
    use_deo=False
):
    """
    Attempt adjacent-rank swaps from the hottest pair down to the coldest.

    Pairs are visited sequentially, so a state accepted into rank p can
    continue moving toward rank 0 in the same sweep.

    DEO Scheme (when use_deo=True):
    - Even round (parity=0): only pairs (0,1), (2,3), ... are attempted
    - Odd round (parity=1): only pairs (1,2), (3,4), ... are attempted
    - The parity flips after every sweep

    Acceptance for pair (p, p+1), holding chains c_p and c_{p+1}:
        alpha = min(1, exp((LL[c_p] - LL[c_{p+1}]) * (1/T[p+1] - 1/T[p])))

    Args:
        key: JAX random key
        log_liks: Untempered log-likelihood per chain (n_chains,)
        temp_assignments: Ladder rank per chain (n_chains,)
        temperature_ladder: Temperatures by rank (n_chains,)
        swap_accepts: Running count of accepted swaps per pair
        swap_attempts: Running count of attempted swaps per pair
        swap_parity: DEO parity (0 = even pairs, 1 = odd pairs)
        use_deo: Static flag selecting the DEO scheme

    Returns:
        (temp_assignments, key, swap_accepts, swap_attempts, next_parity)

        Note: States are NOT returned - they don't change in the index process!
    """
    n_temperatures = temperature_ladder.shape[0]

    # Single chain: nothing to exchange
    if n_temperatures <= 1:
        return temp_assignments, key, swap_accepts, swap_attempts, swap_parity

    chain_at_rank = jnp.argsort(temp_assignments)

    def swap_pair(carry, pair_idx):
        curr_chain_at_rank, curr_key, accepts, attempts = carry

        if use_deo:
            is_active = (pair_idx % 2) == swap_parity
        else:
            is_active = jnp.array(True)

        cold_chain = curr_chain_at_rank[pair_idx]
        hot_chain = curr_chain_at_rank[pair_idx + 1]

        log_alpha = swap_log_acceptance(
            log_liks[cold_chain], log_liks[hot_chain],
            temperature_ladder[pair_idx], temperature_ladder[pair_idx + 1],
        )

        curr_key, accept_key = random.split(curr_key)
        log_u = jnp.log(random.uniform(accept_key))
        accepted = is_active & (log_u < log_alpha)

        swapped = curr_chain_at_rank.at[pair_idx].set(hot_chain).at[pair_idx + 1].set(cold_chain)
        curr_chain_at_rank = jnp.where(accepted, swapped, curr_chain_at_rank)

        accepts = accepts.at[pair_idx].add(accepted.astype(accepts.dtype))
        attempts = attempts.at[pair_idx].add(is_active.astype(attempts.dtype))
        return (curr_chain_at_rank, curr_key, accepts, attempts), None

    # Hottest pair first
    pair_order = jnp.arange(n_temperatures - 2, -1, -1)
    (chain_at_rank, key, swap_accepts, swap_attempts), _ = jax.lax.scan(
        swap_pair, (chain_at_rank, key, swap_accepts, swap_attempts), pair_order
    )

    # Invert rank -> chain back to chain -> rank
    new_assignments = jnp.zeros_like(temp_assignments).at[chain_at_rank].set(
        jnp.arange(n_temperatures, dtype=temp_assignments.dtype)
    )
    next_parity = 1 - swap_parity if use_deo else swap_parity
    return new_assignments, key, swap_accepts, swap_attempts, next_parity
