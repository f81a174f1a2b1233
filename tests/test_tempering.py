"""
Tempering Tests - Swap Criterion and Ladder Construction

Tests:
- swap_log_acceptance: formula, symmetry, NaN handling
- attempt_chain_swaps: index process, sweep order, DEO parity, counts,
  single-temperature no-op
- prep_temp_sequence: default ladder geometry

Run with: pytest tests/test_tempering.py -v
"""

import jax.numpy as jnp
import jax.random as random
import numpy as np
import pytest

from cpmcmc.mcmc.tempering import swap_log_acceptance, attempt_chain_swaps
from cpmcmc.mcmc.config import prep_temp_sequence


def _swap(log_liks, temps, assignments=None, parity=0, use_deo=False, key=0):
    n = len(temps)
    if assignments is None:
        assignments = np.arange(n)
    n_pairs = max(1, n - 1)
    return attempt_chain_swaps(
        random.PRNGKey(key),
        jnp.asarray(log_liks, dtype=jnp.float64),
        jnp.asarray(assignments, dtype=jnp.int32),
        jnp.asarray(temps, dtype=jnp.float64),
        jnp.zeros(n_pairs, dtype=jnp.int32),
        jnp.zeros(n_pairs, dtype=jnp.int32),
        jnp.array(parity, dtype=jnp.int32),
        use_deo=use_deo,
    )


class TestSwapLogAcceptance:
    """Swap criterion exp((LL_i - LL_j)(1/T_j - 1/T_i))."""

    def test_formula(self):
        got = swap_log_acceptance(-10.0, -4.0, 1.0, 2.0)
        np.testing.assert_allclose(float(got), (-10.0 + 4.0) * (0.5 - 1.0))

    @pytest.mark.parametrize("l1, l2, t1, t2", [
        (-10.0, -4.0, 1.0, 2.0),
        (-3.5, -120.0, 1.0, 8.0),
        (0.0, -1e8, 2.0, 64.0),
        (-7.0, -7.0, 1.0, 1e10),
    ])
    def test_symmetric_under_exchange(self, l1, l2, t1, t2):
        forward = np.minimum(1.0, np.exp(float(swap_log_acceptance(l1, l2, t1, t2))))
        backward = np.minimum(1.0, np.exp(float(swap_log_acceptance(l2, l1, t2, t1))))
        assert forward == backward

    def test_better_state_moves_cold(self):
        # Hot chain holds the higher likelihood: always accepted
        assert float(swap_log_acceptance(-10.0, -2.0, 1.0, 4.0)) > 0

    def test_undefined_rejects(self):
        got = swap_log_acceptance(-jnp.inf, -jnp.inf, 1.0, 2.0)
        assert float(got) == -np.inf


class TestAttemptChainSwaps:
    """Index-process swap sweep."""

    def test_single_temperature_noop(self):
        assigns, _, accepts, attempts, parity = _swap([-1.0], [1.0])
        np.testing.assert_array_equal(np.asarray(assigns), [0])
        assert int(attempts[0]) == 0
        assert int(parity) == 0

    def test_equal_likelihoods_sweep_hot_to_cold(self):
        # Equal LLs always swap; visiting (1,2) then (0,1) carries chain 2 to rank 0
        assigns, _, accepts, attempts, _ = _swap([-5.0, -5.0, -5.0], [1.0, 2.0, 4.0])
        np.testing.assert_array_equal(np.asarray(assigns), [1, 2, 0])
        np.testing.assert_array_equal(np.asarray(accepts), [1, 1])
        np.testing.assert_array_equal(np.asarray(attempts), [1, 1])

    def test_assignments_stay_a_permutation(self):
        rng = np.random.default_rng(0)
        assigns = np.arange(6)
        for key in range(20):
            lls = rng.normal(scale=5.0, size=6)
            out, _, _, _, _ = _swap(lls, prep_temp_sequence(6), assignments=assigns, key=key)
            assigns = np.asarray(out)
            np.testing.assert_array_equal(np.sort(assigns), np.arange(6))

    def test_huge_likelihood_gap_never_swaps(self):
        assigns, _, accepts, attempts, _ = _swap([0.0, -1e6], [1.0, 2.0])
        np.testing.assert_array_equal(np.asarray(assigns), [0, 1])
        assert int(accepts[0]) == 0
        assert int(attempts[0]) == 1

    def test_deo_even_round(self):
        assigns, _, accepts, attempts, parity = _swap(
            [-1.0] * 4, [1.0, 2.0, 4.0, 8.0], parity=0, use_deo=True
        )
        np.testing.assert_array_equal(np.asarray(attempts), [1, 0, 1])
        np.testing.assert_array_equal(np.asarray(assigns), [1, 0, 3, 2])
        assert int(parity) == 1

    def test_deo_odd_round(self):
        _, _, _, attempts, parity = _swap(
            [-1.0] * 4, [1.0, 2.0, 4.0, 8.0], parity=1, use_deo=True
        )
        np.testing.assert_array_equal(np.asarray(attempts), [0, 1, 0])
        assert int(parity) == 0

    def test_uses_current_assignments(self):
        # Chain 0 currently holds rank 1 with the best likelihood; it moves to rank 0
        assigns, _, _, _, _ = _swap([0.0, -1e6], [1.0, 2.0], assignments=[1, 0])
        np.testing.assert_array_equal(np.asarray(assigns), [0, 1])


class TestPrepTempSequence:
    """Default ladder."""

    def test_single(self):
        np.testing.assert_array_equal(prep_temp_sequence(1), [1.0])

    def test_default_geometry(self):
        temps = prep_temp_sequence(6)
        assert temps.shape == (6,)
        assert temps[0] == 1.0
        np.testing.assert_allclose(temps[-2], 64.0)
        assert temps[-1] == 1e10
        assert np.all(np.diff(temps) > 0)
        # Geometric spacing below the ultimate temperature
        ratios = temps[1:-1] / temps[:-2]
        np.testing.assert_allclose(ratios, ratios[0])

    def test_curvature_bunches_toward_one(self):
        flat = prep_temp_sequence(6, q=0.0)
        curved = prep_temp_sequence(6, q=1.0)
        np.testing.assert_allclose(curved[-2], flat[-2])
        assert curved[1] < flat[1]
