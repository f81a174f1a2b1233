"""
Error Handling and Validation Utilities for the ptMCMC Sampler

This module provides validation functions run before sampling begins and
diagnostic tools applied to a finished fit.
"""

from typing import Any, Dict

import numpy as np

from .mcmc.utils import CONTROL_DEFAULTS
from .registry import list_measurers, list_selectors
from .settings import KEY_TO_SLOT

import logging
logger = logging.getLogger('cpmcmc')


def _is_int(value) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_))


def validate_ts_config(control: Dict[str, Any]) -> None:
    """
    Validates that the sampler control configuration is sensible.

    Expects a dict already passed through clean_config (all keys present).

    Args:
        control: Control dictionary

    Raises:
        ValueError: If configuration is invalid
    """
    errors = []

    unknown = sorted(set(control) - set(CONTROL_DEFAULTS))
    if unknown:
        errors.append(f"Unknown control keys: {unknown}")

    for key in ('iterations', 'burnin', 'thin', 'n_chains', 'swap_every',
                'changepoint_every', 'coefficient_every', 'chunk_size', 'seed'):
        if key in control and not _is_int(control[key]):
            errors.append(f"{key} must be an integer, got {control[key]!r}")

    if not errors:
        if control['iterations'] < 1:
            errors.append(f"iterations must be >= 1, got {control['iterations']}")
        if control['burnin'] < 0:
            errors.append(f"burnin must be >= 0, got {control['burnin']}")
        elif control['burnin'] >= control['iterations']:
            errors.append(
                f"burnin ({control['burnin']}) must be less than iterations ({control['iterations']})"
            )
        if control['thin'] < 1:
            errors.append(f"thin must be >= 1, got {control['thin']}")
        if control['n_chains'] < 1:
            errors.append(f"n_chains must be >= 1, got {control['n_chains']}")
        for key in ('swap_every', 'changepoint_every', 'coefficient_every', 'chunk_size'):
            if control[key] < 1:
                errors.append(f"{key} must be >= 1, got {control[key]}")

    # Temperature ladder validation
    schedule = control.get('temperature_schedule')
    if schedule is not None:
        temps = np.asarray(schedule, dtype=np.float64)
        if temps.ndim != 1 or temps.size < 1:
            errors.append("temperature_schedule must be a non-empty sequence")
        else:
            if temps[0] != 1.0:
                errors.append(f"temperature_schedule must start at 1, got {temps[0]}")
            if not np.all(np.isfinite(temps)):
                errors.append("temperature_schedule must be finite")
            if temps.size > 1 and not np.all(np.diff(temps) > 0):
                errors.append("temperature_schedule must be strictly increasing")
            if _is_int(control.get('n_chains')) and temps.size != control['n_chains']:
                errors.append(
                    f"n_chains ({control['n_chains']}) must equal the temperature_schedule "
                    f"length ({temps.size})"
                )
    else:
        if control['penultimate_temp'] <= 1:
            errors.append(f"penultimate_temp must be > 1, got {control['penultimate_temp']}")
        if control['ultimate_temp'] <= control['penultimate_temp']:
            errors.append("ultimate_temp must exceed penultimate_temp")
        if control['q'] < 0:
            errors.append(f"q must be >= 0, got {control['q']}")

    # Proposal scales
    step_sizes = control.get('proposal_step_sizes') or {}
    for key, value in step_sizes.items():
        if key not in KEY_TO_SLOT:
            errors.append(f"Unknown proposal step size '{key}'. Available: {sorted(KEY_TO_SLOT)}")
            continue
        if not np.isfinite(value):
            errors.append(f"proposal step size '{key}' must be finite")
        elif key == 'jump_prob' and not 0.0 <= value <= 1.0:
            errors.append(f"jump_prob must be in [0, 1], got {value}")
        elif key != 'jump_prob' and value <= 0:
            errors.append(f"proposal step size '{key}' must be > 0, got {value}")

    if control['prior_sd'] <= 0:
        errors.append(f"prior_sd must be > 0, got {control['prior_sd']}")
    if not 0.0 < control['target_accept'] < 1.0:
        errors.append(f"target_accept must be in (0, 1), got {control['target_accept']}")

    for key, registered in (('measurer', list_measurers()), ('selector', list_selectors())):
        value = control[key]
        if not callable(value) and value not in registered:
            errors.append(f"Unknown {key} '{value}'. Available: {registered}")

    if errors:
        raise ValueError("Invalid TS configuration:\n  " + "\n  ".join(errors))


def validate_model_inputs(series, nchangepoints) -> None:
    """
    Validate the changepoint count against the dataset before sampling.

    Raises:
        ValueError: If k is not a non-negative integer or cannot fit in the
            interior of the time axis
    """
    errors = []
    if not _is_int(nchangepoints):
        errors.append(f"nchangepoints must be integer-valued, got {nchangepoints!r}")
    elif nchangepoints < 0:
        errors.append(f"nchangepoints must be non-negative, got {nchangepoints}")
    elif nchangepoints > series.max_changepoints:
        errors.append(
            f"nchangepoints ({nchangepoints}) exceeds the {series.max_changepoints} integer "
            f"positions strictly between times {series.t_first} and {series.t_last}"
        )
    if errors:
        raise ValueError("Invalid TS model:\n  " + "\n  ".join(errors))


def diagnose_sampler_issues(fit) -> Dict[str, Any]:
    """
    Analyzes a finished fit to identify common sampler issues.

    Args:
        fit: TSFit returned by fit_ts

    Returns:
        diagnostics: Dictionary with issues, warnings, and info
    """
    diagnostics = {
        'issues': [],
        'warnings': [],
        'info': []
    }
    diag = fit.diagnostics

    if fit.lls.size and not np.all(np.isfinite(fit.lls)):
        diagnostics['issues'].append(
            "Retained log-likelihoods contain non-finite values - sampler became unstable"
        )

    for move in ('changepoint', 'coefficient'):
        rates = diag[f'{move}_accept_rate']
        cold_rate = rates[0] if rates.size else np.nan
        if fit.nchangepoints == 0 and move == 'changepoint':
            continue
        if np.isfinite(cold_rate) and cold_rate < 0.10:
            diagnostics['warnings'].append(
                f"Cold chain {move} acceptance rate is {cold_rate:.1%} (< 10%)"
            )

    swap_rates = diag['swap_accept_rate']
    if swap_rates.size and np.any(swap_rates < 0.10):
        diagnostics['warnings'].append(
            "Some swap rates are < 10% - consider adjusting temperature spacing"
        )

    trips = diag['round_trips']
    if trips.size and fit.temperatures.size > 1 and np.sum(trips) == 0:
        diagnostics['warnings'].append(
            "No chain completed a round trip through the temperature ladder"
        )

    diagnostics['info'].append(f"Retained draws: {fit.lls.shape[0]}")
    diagnostics['info'].append(f"Number of chains: {fit.temperatures.size}")
    diagnostics['info'].append(f"Number of changepoints: {fit.nchangepoints}")

    return diagnostics


def print_diagnostics(diagnostics: Dict[str, Any]) -> None:
    """
    Log a TS fit report from diagnose_sampler_issues.

    Unusable results log at ERROR, mixing problems at WARNING, and run facts
    at INFO, one line per entry.
    """
    sections = (
        (logging.ERROR, 'issues', "TS fit unusable"),
        (logging.WARNING, 'warnings', "TS fit mixing"),
        (logging.INFO, 'info', "TS fit"),
    )
    for level, key, prefix in sections:
        for message in diagnostics[key]:
            logger.log(level, f"{prefix}: {message}")

    if not diagnostics['issues'] and not diagnostics['warnings']:
        logger.info("TS fit: sampler checks passed")
