"""
MCMC Configuration and Initialization.

This module handles setting up and validating sampler configurations:
- ts_control: Build the immutable TSControl from user overrides
- prep_temp_sequence: Default geometric temperature ladder
- configure_sampler: Derive RunParams, device data and settings for one fit
- initialize_sampler: Build the initial loop carry (Initializing phase)
- gen_rng_keys: Generate JAX random keys

Configuration is split into two parts:
- TSControl: Serializable, immutable, shared by every fit in a run
- RunParams + device arrays: Derived per fit, exist only during execution

All control keys use lowercase with underscores (e.g., 'n_chains', 'burnin').
"""

from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

import jax
import jax.numpy as jnp
import jax.random as random
import numpy as np

from .utils import clean_config
from .types import RunParams, SeriesArrays, EnsembleState, SampleStore, SamplerCarry, build_series_arrays
from .likelihood import total_log_likelihood
from ..error_handling import validate_ts_config
from ..settings import build_settings_vector, resolve_step_sizes

import logging
logger = logging.getLogger('cpmcmc')


@dataclass(frozen=True)
class TSControl:
    """
    Immutable sampler configuration, built once by ts_control().

    See mcmc.utils.CONTROL_DEFAULTS for defaults.
    """
    iterations: int
    burnin: int
    thin: int
    n_chains: int
    temperatures: Tuple[float, ...]
    proposal_step_sizes: Mapping[str, float] = field(compare=False)  # read-only view
    prior_sd: float = 10.0
    swap_every: int = 1
    changepoint_every: int = 1
    coefficient_every: int = 1
    use_deo: bool = False
    adapt_burnin: bool = False
    target_accept: float = 0.3
    chunk_size: int = 100
    use_double: bool = True
    seed: int = 42
    measurer: Union[str, Callable] = 'aic'
    selector: Union[str, Callable] = 'min'
    quiet: bool = False

    @property
    def num_collect(self) -> int:
        """Number of retained cold-chain draws."""
        return (self.iterations - self.burnin) // self.thin

    def to_dict(self) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out['temperatures'] = list(self.temperatures)
        out['proposal_step_sizes'] = dict(self.proposal_step_sizes)
        return out


def prep_temp_sequence(n_temps: int, penultimate_temp: float = 2 ** 6,
                       ultimate_temp: float = 1e10, q: float = 0.0) -> np.ndarray:
    """
    Default temperature ladder.

    The first n_temps - 1 temperatures are 2**(s**(1+q) / log2(pen)**q) for
    s evenly spaced on [0, log2(penultimate_temp)]: geometric spacing from 1
    to penultimate_temp when q = 0, bunched toward 1 when q > 0. The hottest
    chain sits at ultimate_temp, close to sampling the prior.

    Args:
        n_temps: Number of temperatures (ladder size)
        penultimate_temp: Second-hottest temperature
        ultimate_temp: Hottest temperature
        q: Curvature of the spacing (0 = geometric)

    Returns:
        Strictly increasing temperatures (n_temps,), first element 1
    """
    if n_temps == 1:
        return np.array([1.0])
    top = np.log2(penultimate_temp)
    sequence = np.linspace(0.0, top, n_temps - 1)
    log_temps = sequence ** (1 + q) / top ** q
    temps = np.power(2.0, log_temps)
    return np.append(temps, ultimate_temp)


def ts_control(control: Optional[Dict[str, Any]] = None, **overrides) -> TSControl:
    """
    Build a validated, immutable TSControl.

    Args:
        control: Optional dict of control values
        **overrides: Control values given as keyword arguments (take precedence)

    Returns:
        TSControl

    Raises:
        ValueError: If any control value is invalid
    """
    if isinstance(control, TSControl) and not overrides:
        return control
    if isinstance(control, TSControl):
        merged = control.to_dict()
        merged['temperature_schedule'] = merged.pop('temperatures')
    else:
        merged = dict(control or {})
    merged.update(overrides)

    cfg = clean_config(merged)
    validate_ts_config(cfg)

    if cfg['temperature_schedule'] is not None:
        temps = np.asarray(cfg['temperature_schedule'], dtype=np.float64)
    else:
        temps = prep_temp_sequence(cfg['n_chains'], cfg['penultimate_temp'],
                                   cfg['ultimate_temp'], cfg['q'])

    num_collect = (cfg['iterations'] - cfg['burnin']) // cfg['thin']
    if num_collect < 1:
        raise ValueError(
            "Invalid TS configuration:\n  "
            f"(iterations - burnin) // thin must be >= 1, got {num_collect}"
        )

    return TSControl(
        iterations=int(cfg['iterations']),
        burnin=int(cfg['burnin']),
        thin=int(cfg['thin']),
        n_chains=int(cfg['n_chains']),
        temperatures=tuple(float(t) for t in temps),
        proposal_step_sizes=MappingProxyType(resolve_step_sizes(cfg['proposal_step_sizes'])),
        prior_sd=float(cfg['prior_sd']),
        swap_every=int(cfg['swap_every']),
        changepoint_every=int(cfg['changepoint_every']),
        coefficient_every=int(cfg['coefficient_every']),
        use_deo=bool(cfg['use_deo']),
        adapt_burnin=bool(cfg['adapt_burnin']),
        target_accept=float(cfg['target_accept']),
        chunk_size=int(cfg['chunk_size']),
        use_double=bool(cfg['use_double']),
        seed=int(cfg['seed']),
        measurer=cfg['measurer'],
        selector=cfg['selector'],
        quiet=bool(cfg['quiet']),
    )


def gen_rng_keys(rng_seed: int) -> Tuple[Any, Any]:
    """Generate JAX random keys from seed.

    Returns:
        (master_key, init_key): Tuple of JAX PRNGKeys
    """
    mkey = jax.random.PRNGKey(rng_seed)
    master_key, init_key = random.split(mkey, 2)
    return master_key, init_key


def initial_changepoints(t_first: int, t_last: int, k: int) -> np.ndarray:
    """
    Evenly spaced integer changepoints strictly inside (t_first, t_last).

    Valid whenever k <= t_last - t_first - 1: consecutive positions are at
    least one time unit apart.
    """
    span = t_last - t_first
    j = np.arange(1, k + 1)
    return (t_first + np.floor(span * j / (k + 1) + 0.5)).astype(np.int64)


def configure_sampler(
    series,
    nchangepoints: int,
    control: TSControl,
) -> Tuple[RunParams, SeriesArrays, jnp.ndarray]:
    """
    Configure the sampler for one fit.

    Args:
        series: TimeSeriesDataset
        nchangepoints: Number of changepoints k (validated by the caller)
        control: TSControl

    Returns:
        run_params: Static RunParams
        series_arrays: SeriesArrays on device
        settings: Proposal settings vector
    """
    # Configure JAX precision
    if control.use_double:
        jax.config.update("jax_enable_x64", True)
        float_dtype = jnp.float64
    else:
        jax.config.update("jax_enable_x64", False)
        float_dtype = jnp.float32

    run_params = RunParams(
        N_CHANGEPOINTS=int(nchangepoints),
        N_CHAINS=control.n_chains,
        TOTAL_ITERATIONS=control.iterations,
        BURN_ITER=control.burnin,
        THIN_ITERATION=control.thin,
        NUM_COLLECT=control.num_collect,
        CHUNK_SIZE=control.chunk_size,
        SWAP_EVERY=control.swap_every,
        CHANGEPOINT_EVERY=control.changepoint_every,
        COEFFICIENT_EVERY=control.coefficient_every,
        USE_DEO=control.use_deo,
        ADAPT_BURNIN=control.adapt_burnin,
        TARGET_ACCEPT=control.target_accept,
        PRIOR_SD=control.prior_sd,
    )
    series_arrays = build_series_arrays(series, float_dtype=float_dtype)
    settings = build_settings_vector(control.proposal_step_sizes).astype(float_dtype)
    return run_params, series_arrays, settings


def initialize_sampler(
    series_arrays: SeriesArrays,
    run_params: RunParams,
    control: TSControl,
) -> SamplerCarry:
    """
    Initialize every chain and the empty sample store.

    All chains start from evenly spaced changepoints and zero coefficients;
    chain c starts at ladder rank c. Per-chain keys are split from the seed,
    so identical seeds give identical runs.

    Returns:
        SamplerCarry at iteration 0
    """
    n_chains = run_params.N_CHAINS
    k = run_params.N_CHANGEPOINTS
    n_terms = series_arrays.n_terms
    n_cats = series_arrays.n_cats
    float_dtype = series_arrays.X.dtype
    int_dtype = series_arrays.time.dtype

    master_key, init_key = gen_rng_keys(control.seed)
    chain_keys = random.split(init_key, n_chains)

    cps0 = jnp.asarray(initial_changepoints(series_arrays.t_first, series_arrays.t_last, k),
                       dtype=int_dtype)
    coefs0 = jnp.zeros((k + 1, n_terms, n_cats - 1), dtype=float_dtype)
    ll0 = total_log_likelihood(cps0, coefs0, series_arrays)

    changepoints = jnp.tile(cps0[None, :], (n_chains, 1))
    coefficients = jnp.tile(coefs0[None], (n_chains, 1, 1, 1))
    log_liks = jnp.full((n_chains,), ll0, dtype=float_dtype)

    n_pairs = max(1, n_chains - 1)
    ensemble = EnsembleState(
        changepoints=changepoints,
        coefficients=coefficients,
        log_liks=log_liks,
        keys=chain_keys,
        swap_key=master_key,
        temp_assignments=jnp.arange(n_chains, dtype=jnp.int32),
        temperature_ladder=jnp.asarray(control.temperatures, dtype=float_dtype),
        log_coef_scales=jnp.zeros(n_chains, dtype=float_dtype),
        cp_accepts=jnp.zeros(n_chains, dtype=jnp.int32),
        cp_attempts=jnp.zeros(n_chains, dtype=jnp.int32),
        coef_accepts=jnp.zeros(n_chains, dtype=jnp.int32),
        coef_attempts=jnp.zeros(n_chains, dtype=jnp.int32),
        swap_accepts=jnp.zeros(n_pairs, dtype=jnp.int32),
        swap_attempts=jnp.zeros(n_pairs, dtype=jnp.int32),
        swap_parity=jnp.array(0, dtype=jnp.int32),
    )

    num_collect = run_params.NUM_COLLECT
    store = SampleStore(
        rhos=jnp.zeros((num_collect, k), dtype=int_dtype),
        etas=jnp.zeros((num_collect, k + 1, n_terms, n_cats - 1), dtype=float_dtype),
        lls=jnp.zeros((num_collect,), dtype=float_dtype),
        temp_history=jnp.zeros((num_collect, n_chains), dtype=jnp.int32),
        n_saved=jnp.array(0, dtype=jnp.int32),
    )

    if k > 0:
        logger.info(f"Initial changepoints: {np.asarray(cps0).tolist()}")
    logger.info(f"Initial log-likelihood: {float(ll0):.4f}")

    return SamplerCarry(ensemble=ensemble, store=store,
                        iteration=jnp.array(0, dtype=jnp.int32))
