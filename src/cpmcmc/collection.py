"""
Model Collections and Selection

Fits time series models across every combination of topic model output,
regression formula and changepoint count, and selects the best one.

Functions:
- expand_ts: Factorial table of (topic model, formula, k) combinations
- ts_on_lda: Fit every combination into a ModelCollection
- select_ts: Pick one fit with the configured measurer and selector
"""

from collections.abc import Mapping
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .data import check_nchangepoints, prep_ts_data
from .mcmc.config import TSControl, ts_control
from .mcmc.single_run import fit_ts
from .registry import get_measurer, get_selector
from .summaries import TSFit
from .terms import parse_formula

import logging
logger = logging.getLogger('cpmcmc')


class ModelCollection:
    """
    Ordered, named set of one or more fitted models.

    Entries are accessed by name or by position; iteration yields fits in
    insertion order.
    """

    def __init__(self, entries: Sequence[Tuple[str, TSFit]]):
        entries = list(entries)
        if not entries:
            raise ValueError("a ModelCollection needs at least one fitted model")
        names = [name for name, _ in entries]
        if len(set(names)) != len(names):
            raise ValueError("model names in a ModelCollection must be unique")
        self._names = names
        self._fits = [fit for _, fit in entries]

    @classmethod
    def single(cls, fit: TSFit, name: Optional[str] = None) -> "ModelCollection":
        return cls([(name or f"{fit.formula}, {fit.nchangepoints} changepoints", fit)])

    @property
    def names(self) -> List[str]:
        return list(self._names)

    def items(self) -> List[Tuple[str, TSFit]]:
        return list(zip(self._names, self._fits))

    def __len__(self) -> int:
        return len(self._fits)

    def __iter__(self) -> Iterator[TSFit]:
        return iter(self._fits)

    def __getitem__(self, key: Union[int, str]) -> TSFit:
        if isinstance(key, str):
            try:
                return self._fits[self._names.index(key)]
            except ValueError:
                raise KeyError(key) from None
        return self._fits[key]

    def __repr__(self):
        return f"ModelCollection({self._names!r})"


def _named_gammas(gammas) -> List[Tuple[str, np.ndarray]]:
    """Normalise one matrix, a sequence of matrices or a name->matrix mapping."""
    if isinstance(gammas, Mapping):
        named = [(str(name), np.asarray(g)) for name, g in gammas.items()]
    elif isinstance(gammas, np.ndarray) and gammas.ndim == 2:
        named = [("LDA_1", gammas)]
    else:
        named = [(f"LDA_{i + 1}", np.asarray(g)) for i, g in enumerate(gammas)]
    if not named:
        raise ValueError("at least one topic proportion matrix is required")
    for name, g in named:
        if g.ndim != 2:
            raise ValueError(f"topic proportions '{name}' must be a 2-D matrix")
    return named


def _as_list(values) -> list:
    if isinstance(values, (str, int, np.integer)) or np.ndim(values) == 0:
        return [values]
    return list(values)


def expand_ts(n_lda_models: int, formulas, nchangepoints) -> List[Tuple[int, str, int]]:
    """
    Factorial combination of topic models, formulas and changepoint counts.

    The topic model index varies fastest, then the formula, then k.

    Args:
        n_lda_models: Number of topic models
        formulas: One formula string or a sequence of them
        nchangepoints: One changepoint count or a sequence of them

    Returns:
        List of (lda_index, formula, k) rows
    """
    if n_lda_models < 1:
        raise ValueError("at least one topic model is required")
    check_nchangepoints(nchangepoints)
    formulas = _as_list(formulas)
    if not formulas:
        raise ValueError("formulas does not contain formula(s)")
    for formula in formulas:
        parse_formula(formula)
    ks = [int(k) for k in _as_list(nchangepoints)]

    return [
        (lda, formula, k)
        for k in ks
        for formula in formulas
        for lda in range(n_lda_models)
    ]


def ts_on_lda(
    gammas,
    table,
    formulas="~ 1",
    nchangepoints=0,
    timename: str = "time",
    weights=None,
    control: Optional[Union[TSControl, Dict[str, Any]]] = None,
) -> ModelCollection:
    """
    Fit a time series model for every (topic model, formula, k) combination.

    Args:
        gammas: Topic proportions: one (n_docs, n_topics) matrix, a sequence
                of them, or a mapping of name -> matrix
        table: Document covariate table (mapping of column name -> values)
        formulas: Formula string(s) for the within-segment regression
        nchangepoints: Changepoint count(s); 0 fits a single segment
        timename: Name of the time column in ``table``
        weights: Optional positive per-document weights
        control: TSControl or dict of control values

    Returns:
        ModelCollection named "<topic model>, <formula>, <k> changepoints"
    """
    if not isinstance(control, TSControl):
        control = ts_control(control)
    named = _named_gammas(gammas)
    rows = expand_ts(len(named), formulas, nchangepoints)

    entries = []
    for lda, formula, k in rows:
        lda_name, gamma = named[lda]
        series = prep_ts_data(table, gamma, formula=formula, timename=timename, weights=weights)
        fit = fit_ts(series, k, control, formula=parse_formula(formula).formula,
                     lda_name=lda_name)
        entries.append((f"{lda_name}, {fit.formula}, {k} changepoints", fit))

    return ModelCollection(entries)


def select_ts(models: Union[ModelCollection, TSFit],
              control: Optional[Union[TSControl, Dict[str, Any]]] = None) -> TSFit:
    """
    Select the best model from a collection.

    Every fit is reduced to a score by ``control.measurer`` and the scores
    are reduced by ``control.selector``. The first fit whose score equals
    the selected value is returned; a warning is logged on ties.

    Args:
        models: ModelCollection (a lone TSFit is treated as a collection of one)
        control: TSControl or dict of control values

    Returns:
        The selected TSFit
    """
    if isinstance(models, TSFit):
        models = ModelCollection.single(models)
    if not isinstance(models, ModelCollection):
        raise TypeError("models must be a ModelCollection")
    if not isinstance(control, TSControl):
        control = ts_control(control)

    measurer = get_measurer(control.measurer)
    selector = get_selector(control.selector)

    measured = np.array([float(measurer(fit)) for fit in models])
    selected = selector(measured)
    which = np.flatnonzero(measured == selected)
    if which.size == 0:
        raise ValueError(f"selector returned {selected!r}, which is not one of the measured values")
    if which.size > 1:
        logger.warning("Selection results in multiple models, returning first")
    return models[int(which[0])]
