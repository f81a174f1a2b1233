"""
Predictor Term Sets

A TermSet is the resolved form of a one-sided regression formula such as
``~ 1``, ``~ newmoon`` or ``~ x + y - 1``. The response is always the topic
proportion matrix, so formulas never carry a left-hand side.

Example:
    terms = parse_formula("~ newmoon")
    terms.resolve(table.keys())
    X = terms.design_matrix(table)
"""

from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np


INTERCEPT_LABEL = "(Intercept)"


@dataclass(frozen=True)
class TermSet:
    """
    Ordered set of named predictor terms plus an intercept flag.

    Attributes:
        terms: Column names used as predictors, in formula order
        intercept: Whether a constant column is prepended to the design matrix
        formula: Original formula text (for labelling fitted models)
    """
    terms: Tuple[str, ...] = ()
    intercept: bool = True
    formula: str = "~ 1"

    def __post_init__(self):
        if len(set(self.terms)) != len(self.terms):
            raise ValueError(f"Duplicate predictor terms in formula '{self.formula}'")
        if self.n_terms == 0:
            raise ValueError(f"Formula '{self.formula}' has no terms and no intercept")

    @property
    def n_terms(self) -> int:
        """Number of columns in the design matrix."""
        return len(self.terms) + int(self.intercept)

    @property
    def labels(self) -> Tuple[str, ...]:
        """Coefficient row labels, intercept first."""
        if self.intercept:
            return (INTERCEPT_LABEL,) + self.terms
        return self.terms

    def resolve(self, columns: Iterable[str]) -> None:
        """Check every predictor is available as a column of the covariate table."""
        available = set(columns)
        misses = [t for t in self.terms if t not in available]
        if misses:
            raise ValueError(
                f"formula includes predictors not present in data: {', '.join(misses)}"
            )

    def design_matrix(self, table) -> np.ndarray:
        """
        Build the (n_obs, n_terms) design matrix from a column table.

        Args:
            table: Mapping of column name to 1-D array (dict, DataFrame, ...)

        Returns:
            Float design matrix with the intercept column first
        """
        self.resolve(table.keys())
        columns = [np.asarray(table[t], dtype=np.float64) for t in self.terms]
        for name, col in zip(self.terms, columns):
            if col.ndim != 1:
                raise ValueError(f"Predictor '{name}' must be one-dimensional")
            if not np.all(np.isfinite(col)):
                raise ValueError(f"Predictor '{name}' contains non-finite values")
        if columns:
            n_obs = columns[0].shape[0]
        else:
            n_obs = _table_length(table)
        if self.intercept:
            columns.insert(0, np.ones(n_obs))
        return np.column_stack(columns)


def _table_length(table) -> int:
    lengths = {len(np.asarray(table[c])) for c in table.keys()}
    if len(lengths) != 1:
        raise ValueError("Covariate table columns have unequal lengths")
    return lengths.pop()


def parse_formula(formula) -> TermSet:
    """
    Parse a one-sided formula string into a TermSet.

    Supported syntax: ``~ 1``, ``~ a + b``, ``~ 0 + a``, ``~ a - 1``.
    Terms are plain column names; interactions and transformations are not
    part of the mini-language.

    Args:
        formula: Formula string, or an existing TermSet (returned unchanged)

    Returns:
        TermSet

    Raises:
        ValueError: If the formula has a response or cannot be parsed
    """
    if isinstance(formula, TermSet):
        return formula
    if not isinstance(formula, str):
        raise TypeError(f"formula must be a string or TermSet, got {type(formula).__name__}")

    text = formula.strip()
    if "~" not in text:
        raise ValueError(f"formula '{formula}' does not contain '~'")
    lhs, rhs = text.split("~", 1)
    if lhs.strip():
        raise ValueError("formula inputs should not include response variable")
    if "~" in rhs:
        raise ValueError(f"formula '{formula}' contains more than one '~'")

    intercept = True
    terms = []
    # Normalise "a - 1" into signed tokens
    tokens = rhs.replace("-", "+-").split("+")
    for raw in tokens:
        token = raw.strip()
        if not token:
            continue
        negated = token.startswith("-")
        name = token.lstrip("-").strip()
        if not name:
            raise ValueError(f"formula '{formula}' has an empty term")
        if name in ("0", "1"):
            intercept = (name == "1") and not negated
            continue
        if negated:
            raise ValueError(f"formula '{formula}': only the intercept can be removed")
        if not name.isidentifier():
            raise ValueError(f"formula '{formula}': unsupported term '{name}'")
        if name not in terms:
            terms.append(name)

    return TermSet(terms=tuple(terms), intercept=intercept, formula=f"~ {rhs.strip()}")
