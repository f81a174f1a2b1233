"""
Time Series Data Preparation

Builds the TimeSeriesDataset consumed by the sampler from a document
covariate table and a document-topic proportion matrix (the ``gamma`` output
of an upstream topic model), and provides the input checks used before any
sampling begins.

Functions:
- prep_ts_data: Assemble a TimeSeriesDataset from table + gamma + formula
- document_weights: Size-based document weights scaled to mean 1
- time_steps: Integer time steps from integer or date time columns
- check_weights / check_timename / check_nchangepoints: Input validation
"""

import datetime
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .terms import TermSet, parse_formula

import logging
logger = logging.getLogger('cpmcmc')

# Tolerance on per-row proportion sums
PROPORTION_TOL = 1e-6


@dataclass(frozen=True)
class TimeSeriesDataset:
    """
    Ordered compositional time series ready for sampling.

    Attributes:
        time: Integer time index per observation (n_obs,), strictly increasing
        X: Design matrix (n_obs, n_terms)
        Y: Response proportions (n_obs, n_cats), rows sum to 1
        weights: Positive observation weights (n_obs,)
        term_labels: Coefficient row labels (n_terms,)
        category_labels: Response category labels (n_cats,)
    """
    time: np.ndarray
    X: np.ndarray
    Y: np.ndarray
    weights: np.ndarray
    term_labels: Tuple[str, ...] = field(default=())
    category_labels: Tuple[str, ...] = field(default=())

    def __post_init__(self):
        time = np.asarray(self.time)
        X = np.asarray(self.X, dtype=np.float64)
        Y = np.asarray(self.Y, dtype=np.float64)
        weights = np.asarray(self.weights, dtype=np.float64)

        errors = []
        if time.ndim != 1:
            errors.append("time must be one-dimensional")
        elif not np.all(np.isfinite(time.astype(np.float64))) or not np.all(np.mod(time, 1) == 0):
            errors.append("time values must be integer-valued")
        elif time.size > 1 and not np.all(np.diff(time) > 0):
            errors.append("time values must be strictly increasing with no duplicates")

        n_obs = time.shape[0] if time.ndim == 1 else -1
        if X.ndim != 2 or X.shape[0] != n_obs:
            errors.append(f"X must have shape (n_obs, n_terms), got {X.shape}")
        if Y.ndim != 2 or Y.shape[0] != n_obs:
            errors.append(f"Y must have shape (n_obs, n_cats), got {Y.shape}")
        elif Y.shape[1] < 2:
            errors.append("Y must have at least two categories")
        elif np.any(Y < 0) or not np.all(np.isfinite(Y)):
            errors.append("Y must be finite and non-negative")
        elif not np.allclose(Y.sum(axis=1), 1.0, atol=PROPORTION_TOL):
            errors.append("Y rows must sum to 1")
        if weights.shape != (n_obs,):
            errors.append(f"weights must have shape ({n_obs},), got {weights.shape}")
        elif np.any(~np.isfinite(weights)) or np.any(weights <= 0):
            errors.append("weights must be positive")
        if n_obs < 2:
            errors.append("at least two observations are required")

        if errors:
            raise ValueError("Invalid time series data:\n  " + "\n  ".join(errors))

        # Frozen dataclass: normalise array types in place
        object.__setattr__(self, 'time', time.astype(np.int64))
        object.__setattr__(self, 'X', X)
        object.__setattr__(self, 'Y', Y)
        object.__setattr__(self, 'weights', weights)
        if not self.term_labels:
            object.__setattr__(self, 'term_labels', tuple(f"x{j}" for j in range(X.shape[1])))
        if not self.category_labels:
            object.__setattr__(self, 'category_labels', tuple(f"topic_{c + 1}" for c in range(Y.shape[1])))

    @property
    def n_obs(self) -> int:
        return self.time.shape[0]

    @property
    def n_terms(self) -> int:
        return self.X.shape[1]

    @property
    def n_cats(self) -> int:
        return self.Y.shape[1]

    @property
    def t_first(self) -> int:
        return int(self.time[0])

    @property
    def t_last(self) -> int:
        return int(self.time[-1])

    @property
    def max_changepoints(self) -> int:
        """Number of integer positions strictly inside (t_first, t_last)."""
        return max(0, self.t_last - self.t_first - 1)


def prep_ts_data(table, gamma, formula="~ 1", timename: str = "time",
                 weights=None) -> TimeSeriesDataset:
    """
    Assemble a TimeSeriesDataset from a covariate table and topic proportions.

    Args:
        table: Mapping of column name to 1-D array (dict, DataFrame, ...).
               Must contain ``timename`` and every predictor in ``formula``.
        gamma: Document-topic proportion matrix (n_obs, n_topics)
        formula: Formula string or TermSet for the within-segment regression
        timename: Name of the time column
        weights: Optional positive per-document weights; None means all 1

    Returns:
        TimeSeriesDataset sorted by time
    """
    check_timename(table, timename)
    terms: TermSet = parse_formula(formula)
    terms.resolve(table.keys())

    time = time_steps(table[timename])
    gamma = np.asarray(gamma, dtype=np.float64)
    if gamma.ndim != 2 or gamma.shape[0] != time.shape[0]:
        raise ValueError(
            "number of documents in covariate table is not equal to number of "
            f"documents observed ({time.shape[0]} vs {gamma.shape[0]})"
        )

    check_weights(weights)
    if weights is None:
        weights = np.ones(time.shape[0])
    weights = np.asarray(weights, dtype=np.float64)
    if weights.shape != time.shape:
        raise ValueError(f"weights must have one entry per document ({time.shape[0]})")

    X = terms.design_matrix(table)
    order = np.argsort(time, kind="stable")

    return TimeSeriesDataset(
        time=time[order],
        X=X[order],
        Y=gamma[order],
        weights=weights[order],
        term_labels=terms.labels,
        category_labels=tuple(f"topic_{c + 1}" for c in range(gamma.shape[1])),
    )


def document_weights(document_term_table) -> np.ndarray:
    """
    Weights proportional to document size, scaled to average 1.

    Args:
        document_term_table: Word counts (n_documents, n_terms)

    Returns:
        Weight per document (n_documents,)
    """
    counts = np.asarray(document_term_table, dtype=np.float64)
    sizes = counts.sum(axis=1)
    if np.any(sizes <= 0):
        raise ValueError("every document must contain at least one word")
    return sizes / sizes.mean()


def check_weights(weights) -> None:
    """
    Check that document weights are numeric and positive.

    A mean weight that does not round to 1 is allowed but logged, since the
    likelihood scale (and therefore the fit) depends on it.
    """
    if weights is None:
        return
    arr = np.asarray(weights)
    if not np.issubdtype(arr.dtype, np.number) or arr.dtype == np.bool_:
        raise TypeError("weights vector must be numeric")
    if np.any(~np.isfinite(arr)) or np.any(arr <= 0):
        raise ValueError("weights must be positive")
    if round(float(np.mean(arr))) != 1:
        logger.warning("weights should have a mean of 1, fit may be unstable")


def time_steps(values) -> np.ndarray:
    """
    Time column as integer steps.

    Integer-valued numbers pass through; dates (``datetime64`` arrays,
    pandas datetime columns, or ``datetime.date`` objects) become whole days
    since 1970-01-01.
    """
    values = np.asarray(values)
    if values.dtype == object and values.size and \
            all(isinstance(v, (datetime.date, np.datetime64)) for v in values.ravel()):
        values = values.astype('datetime64[D]')
    if np.issubdtype(values.dtype, np.datetime64):
        return values.astype('datetime64[D]').astype(np.int64)
    return values


def check_timename(table, timename: str) -> None:
    """Check the time column exists and is integer-valued or a date."""
    if not isinstance(timename, str):
        raise TypeError("timename is not a character value")
    if timename not in set(table.keys()):
        raise ValueError(f"timename '{timename}' not present in document covariate table")
    values = time_steps(table[timename])
    if not np.issubdtype(values.dtype, np.number) or not np.all(np.mod(values, 1) == 0):
        raise ValueError("covariate indicated by timename is not an integer or a date")


def check_nchangepoints(nchangepoints) -> None:
    """Check changepoint count(s) are non-negative integers."""
    arr = np.atleast_1d(np.asarray(nchangepoints))
    if not np.issubdtype(arr.dtype, np.number) or arr.dtype == np.bool_ \
            or not np.all(np.mod(arr, 1) == 0):
        raise ValueError("nchangepoints must be integer-valued")
    if np.any(arr < 0):
        raise ValueError("nchangepoints must be non-negative")


def series_from_arrays(time, Y, X=None, weights=None,
                       term_labels: Optional[Tuple[str, ...]] = None) -> TimeSeriesDataset:
    """
    Build a TimeSeriesDataset directly from arrays (intercept-only when X is None).
    """
    time = np.asarray(time)
    if X is None:
        X = np.ones((time.shape[0], 1))
        term_labels = term_labels or ("(Intercept)",)
    if weights is None:
        weights = np.ones(time.shape[0])
    return TimeSeriesDataset(time=time, X=X, Y=Y, weights=weights,
                             term_labels=tuple(term_labels or ()))
