"""
MCMC Diagnostics.

Mixing diagnostics for the tempered ensemble:
- acceptance_rates: Accepted / attempted with NaN for unattempted moves
- compute_round_trip_rate: Cold -> hot -> cold trips per chain
- sampler_diagnostics: Collect every diagnostic of a finished run
- print_acceptance_summary: Print MH acceptance rates by ladder rank
- print_swap_acceptance_summary: Print swap rates per adjacent pair
- print_round_trip_summary: Print round-trip statistics
"""

from typing import Any, Dict, Tuple

import numpy as np


def acceptance_rates(accepts: np.ndarray, attempts: np.ndarray) -> np.ndarray:
    """Accepted / attempted, NaN where nothing was attempted."""
    accepts = np.asarray(accepts, dtype=np.float64)
    attempts = np.asarray(attempts, dtype=np.float64)
    with np.errstate(divide='ignore', invalid='ignore'):
        return np.where(attempts > 0, accepts / attempts, np.nan)


def compute_round_trip_rate(
    temp_history: np.ndarray,
    n_temperatures: int,
) -> Tuple[float, np.ndarray]:
    """
    Compute round-trip rate from the rank history.

    A round trip is cold (rank 0) -> hottest (rank N-1) -> cold. Each chain's
    count increases when it returns to rank 0 having reached the hottest
    rank since its previous visit to rank 0.

    Args:
        temp_history: Rank per chain per retained draw (n_samples, n_chains)
        n_temperatures: Ladder size

    Returns:
        mean_rate: Mean round trips per retained draw
        per_chain_trips: Completed round trips per chain (n_chains,)
    """
    if temp_history is None or n_temperatures <= 1 or temp_history.size == 0:
        n_chains = 0 if temp_history is None or temp_history.ndim < 2 else temp_history.shape[1]
        return 0.0, np.zeros(n_chains, dtype=np.int32)

    n_samples, n_chains = temp_history.shape
    hottest = n_temperatures - 1
    per_chain_trips = np.zeros(n_chains, dtype=np.int32)

    for c in range(n_chains):
        left_cold = False
        reached_hot = False
        for rank in temp_history[:, c]:
            if rank == 0:
                if left_cold and reached_hot:
                    per_chain_trips[c] += 1
                left_cold = True
                reached_hot = False
            elif rank == hottest and left_cold:
                reached_hot = True

    mean_rate = float(np.mean(per_chain_trips)) / n_samples
    return mean_rate, per_chain_trips


def sampler_diagnostics(ensemble, temp_history: np.ndarray) -> Dict[str, Any]:
    """
    Collect acceptance, swap and round-trip diagnostics of a finished run.

    Args:
        ensemble: EnsembleState already transferred to host
        temp_history: Rank history of retained draws (n_samples, n_chains)

    Returns:
        Dict with per-rank acceptance rates and counts, per-pair swap
        rates and counts, and per-chain round trips
    """
    n_temperatures = np.asarray(ensemble.temperature_ladder).shape[0]
    n_pairs = n_temperatures - 1
    swap_accepts = np.asarray(ensemble.swap_accepts)[:n_pairs]
    swap_attempts = np.asarray(ensemble.swap_attempts)[:n_pairs]
    _, trips = compute_round_trip_rate(temp_history, n_temperatures)

    return {
        'changepoint_accept_rate': acceptance_rates(ensemble.cp_accepts, ensemble.cp_attempts),
        'changepoint_attempts': np.asarray(ensemble.cp_attempts),
        'coefficient_accept_rate': acceptance_rates(ensemble.coef_accepts, ensemble.coef_attempts),
        'coefficient_attempts': np.asarray(ensemble.coef_attempts),
        'swap_accept_rate': acceptance_rates(swap_accepts, swap_attempts),
        'swap_attempts': swap_attempts,
        'round_trips': trips,
        'coefficient_step_scale': np.exp(np.asarray(ensemble.log_coef_scales)),
    }


def print_acceptance_summary(temperatures: np.ndarray, diagnostics: Dict[str, Any],
                             nchangepoints: int) -> None:
    """Print MH acceptance rates for each move type by ladder rank."""
    print(f"\n--- MH Acceptance Rates ({len(temperatures)} temperatures) ---")
    moves = [('coefficient', 'Coefficients')]
    if nchangepoints > 0:
        moves.insert(0, ('changepoint', 'Changepoints'))
    for key, label in moves:
        rates = diagnostics[f'{key}_accept_rate']
        cells = ', '.join(f'T={t:.3g}: {r:.1%}' for t, r in zip(temperatures, rates))
        print(f"  {label}: {cells}")

        if rates.size and np.isfinite(rates[0]) and rates[0] < 0.10:
            print(f"  WARNING: cold chain {key} acceptance rate < 10%")


def print_swap_acceptance_summary(
    temperature_ladder: np.ndarray,
    swap_accepts: np.ndarray,
    swap_attempts: np.ndarray
) -> None:
    """
    Print summary statistics for parallel tempering swap acceptance rates.

    Args:
        temperature_ladder: Temperature values (n_temperatures,)
        swap_accepts: Number of accepted swaps per adjacent pair
        swap_attempts: Number of attempted swaps per adjacent pair
    """
    n_temperatures = len(temperature_ladder)
    if n_temperatures <= 1:
        return

    print(f"\n--- Parallel Tempering Swap Rates ({n_temperatures} temperatures) ---")
    print(f"  Temperature ladder: {', '.join(f'{t:.3g}' for t in temperature_ladder)}")

    swap_rates = np.nan_to_num(acceptance_rates(swap_accepts, swap_attempts), nan=0.0)
    for i, rate in enumerate(swap_rates):
        print(f"  Pair ({temperature_ladder[i]:.3g} <-> {temperature_ladder[i + 1]:.3g}): "
              f"{rate:.1%} ({swap_accepts[i]}/{swap_attempts[i]})")
    print(f"  Mean swap rate: {np.mean(swap_rates):.1%}")

    low_swap_mask = (swap_rates < 0.10) & (np.asarray(swap_attempts) > 0)
    if np.any(low_swap_mask):
        print("  WARNING: Some swap rates are < 10% - consider adjusting temperature spacing")


def print_round_trip_summary(
    temp_history: np.ndarray,
    n_temperatures: int,
) -> None:
    """Print round-trip statistics of the index process."""
    if temp_history is None or n_temperatures <= 1:
        return

    mean_rate, per_chain_trips = compute_round_trip_rate(temp_history, n_temperatures)
    n_samples, n_chains = temp_history.shape

    print(f"\n--- Index Process Round-Trip Summary ({n_temperatures} temperatures) ---")
    print(f"  Chains: {n_chains}")
    print(f"  Samples: {n_samples}")
    print(f"  Total round trips: {np.sum(per_chain_trips)}")
    print(f"  Mean trips per chain: {np.mean(per_chain_trips):.1f}")
    print(f"  Round-trip rate: {mean_rate:.4f} trips/sample")

    if np.mean(per_chain_trips) < 1:
        print("  WARNING: Low round-trip count - chains may not be mixing through temperatures")
