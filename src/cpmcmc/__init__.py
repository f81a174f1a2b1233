"""
cpmcmc - Changepoint Multinomial Regression with Parallel Tempering MCMC

Public API:
    Data:
        TermSet / parse_formula - Predictor terms of a one-sided formula
        TimeSeriesDataset - Validated compositional time series
        prep_ts_data - Build a dataset from a covariate table and topic proportions
        series_from_arrays - Build a dataset directly from arrays
        document_weights - Document-size weights scaled to mean 1

    Fitting:
        ts_control / TSControl - Immutable sampler configuration
        fit_ts - Fit one model with a fixed number of changepoints
        TSFit - Fitted model (summaries, score, raw draws, diagnostics)
        segment_proportions - Posterior mean category proportions per segment

    Model sets:
        ModelCollection - One or more named fits
        expand_ts / ts_on_lda - Fit every (topic model, formula, k) combination
        select_ts - Pick the best fit with a measurer and a selector
        register_measurer / register_selector - Named scoring functions

Example:
    from cpmcmc import prep_ts_data, fit_ts, ts_control

    series = prep_ts_data(table, gamma, formula="~ 1", timename="newmoon")
    fit = fit_ts(series, nchangepoints=1, control=ts_control(iterations=2000, burnin=500))
    print(fit.rho_summary.mean, fit.AIC)
"""
# CRITICAL: Import jax_config FIRST to set environment variables before JAX loads
from . import jax_config  # noqa: F401

# Import mcmc subpackage to register the SeriesArrays pytree
from . import mcmc as _mcmc  # noqa: F401

from .terms import TermSet, parse_formula
from .data import (
    TimeSeriesDataset,
    prep_ts_data,
    series_from_arrays,
    document_weights,
    check_weights,
    check_timename,
    check_nchangepoints,
    time_steps,
)
from .mcmc.config import TSControl, ts_control, prep_temp_sequence
from .mcmc.single_run import fit_ts
from .summaries import TSFit, ParameterSummary, segment_proportions, fitted_proportions
from .collection import ModelCollection, expand_ts, ts_on_lda, select_ts
from .registry import (
    register_measurer,
    register_selector,
    get_measurer,
    get_selector,
    list_measurers,
    list_selectors,
)
from .error_handling import diagnose_sampler_issues, print_diagnostics

__version__ = "0.1.0"

__all__ = [
    'TermSet',
    'parse_formula',
    'TimeSeriesDataset',
    'prep_ts_data',
    'series_from_arrays',
    'document_weights',
    'check_weights',
    'check_timename',
    'check_nchangepoints',
    'time_steps',
    'TSControl',
    'ts_control',
    'prep_temp_sequence',
    'fit_ts',
    'TSFit',
    'ParameterSummary',
    'segment_proportions',
    'fitted_proportions',
    'ModelCollection',
    'expand_ts',
    'ts_on_lda',
    'select_ts',
    'register_measurer',
    'register_selector',
    'get_measurer',
    'get_selector',
    'list_measurers',
    'list_selectors',
    'diagnose_sampler_issues',
    'print_diagnostics',
]
