"""
Measurer and Selector Registration

Model selection reduces every fitted model to a scalar with a *measurer* and
then picks the winning scalar with a *selector*. Both can be passed to
``ts_control`` as callables or as names registered here, which keeps
controls built from plain config files serialisable.

Example usage:
    from cpmcmc import register_measurer

    register_measurer('bic', lambda fit: -2 * fit.logLik + fit.nparams * np.log(fit.n_obs))
    control = ts_control(measurer='bic')
"""

import numpy as np

_MEASURERS = {}
_SELECTORS = {}


def register_measurer(name, fn):
    """
    Register a measurer: fn(TSFit) -> float.

    Raises:
        ValueError: If the name is already registered or fn is not callable
    """
    if name in _MEASURERS:
        raise ValueError(f"Measurer '{name}' is already registered")
    if not callable(fn):
        raise ValueError(f"Measurer '{name}' must be callable")
    _MEASURERS[name] = fn


def register_selector(name, fn):
    """
    Register a selector: fn(sequence of floats) -> float.

    Raises:
        ValueError: If the name is already registered or fn is not callable
    """
    if name in _SELECTORS:
        raise ValueError(f"Selector '{name}' is already registered")
    if not callable(fn):
        raise ValueError(f"Selector '{name}' must be callable")
    _SELECTORS[name] = fn


def get_measurer(name_or_fn):
    """
    Resolve a measurer given by name or as a callable.

    Raises:
        KeyError: If the name is not registered
    """
    if callable(name_or_fn):
        return name_or_fn
    if name_or_fn not in _MEASURERS:
        raise KeyError(f"Unknown measurer '{name_or_fn}'. Available: {list(_MEASURERS)}")
    return _MEASURERS[name_or_fn]


def get_selector(name_or_fn):
    """
    Resolve a selector given by name or as a callable.

    Raises:
        KeyError: If the name is not registered
    """
    if callable(name_or_fn):
        return name_or_fn
    if name_or_fn not in _SELECTORS:
        raise KeyError(f"Unknown selector '{name_or_fn}'. Available: {list(_SELECTORS)}")
    return _SELECTORS[name_or_fn]


def list_measurers():
    return list(_MEASURERS.keys())


def list_selectors():
    return list(_SELECTORS.keys())


register_measurer('aic', lambda fit: fit.AIC)
register_measurer('deviance', lambda fit: fit.deviance)
register_measurer('neg_loglik', lambda fit: -fit.logLik)
register_selector('min', lambda values: float(np.min(values)))
register_selector('max', lambda values: float(np.max(values)))
