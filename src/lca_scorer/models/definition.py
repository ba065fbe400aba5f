"""
Model Definition for fixed-parameter Latent Class Analysis scoring.

A Model Definition bundles everything the scorer needs from a fitted LCA:
- classes: ordered class identifiers (order matters only for display and
  for the arg-max tie-break)
- priors: P(class) for each class (segment sizes in the reference population)
- tables: for each categorical variable, a (n_classes, n_levels) matrix of
  P(level | class), levels numbered 1..n_levels

The object is built once, validated strictly, and never mutated afterwards.
It holds plain numpy arrays only, never a fitting library's model object,
so it can be shared read-only across threads and processes.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Sequence, Tuple, Union

import numpy as np

from ..exceptions import InvalidModelError


logger = logging.getLogger(__name__)

# Tolerance for "sums to 1" checks and for arg-max ties
DEFAULT_TOLERANCE = 1e-6


@dataclass(frozen=True, eq=False)
class ModelDefinition:
    """
    Immutable LCA parameter bundle.

    Use `build_model` rather than constructing this directly; the builder
    validates the probabilities and freezes the arrays.
    """
    classes: Tuple[str, ...]
    priors: np.ndarray                   # (n_classes,)
    tables: Mapping[str, np.ndarray]     # variable -> (n_classes, n_levels)

    @property
    def variables(self) -> Tuple[str, ...]:
        return tuple(self.tables.keys())

    @property
    def n_classes(self) -> int:
        return len(self.classes)

    def n_levels(self, variable: str) -> int:
        """Number of valid levels (levels run 1..n) for a variable."""
        return self.tables[variable].shape[1]

    def class_index(self, class_name: str) -> int:
        return self.classes.index(class_name)

    def prior_dict(self) -> Dict[str, float]:
        return {c: float(p) for c, p in zip(self.classes, self.priors)}

    def conditional(self, variable: str, level: int) -> Dict[str, float]:
        """P(variable = level | class) for every class."""
        column = self.tables[variable][:, level - 1]
        return {c: float(p) for c, p in zip(self.classes, column)}

    def __repr__(self) -> str:
        levels = ", ".join(f"{v}={self.n_levels(v)}" for v in self.variables)
        return f"ModelDefinition(classes={list(self.classes)}, levels=[{levels}])"


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def _as_probability_array(values, what: str) -> np.ndarray:
    try:
        arr = np.array(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidModelError(f"{what} must be numeric: {e}") from e
    if not np.all(np.isfinite(arr)):
        raise InvalidModelError(f"{what} contains non-finite values")
    if np.any(arr < 0.0) or np.any(arr > 1.0):
        raise InvalidModelError(f"{what} contains probabilities outside [0, 1]")
    return arr


def _validate_classes(classes: Sequence[str]) -> Tuple[str, ...]:
    classes = tuple(classes)
    if len(classes) < 2:
        raise InvalidModelError(f"A model needs at least 2 classes, got {len(classes)}")
    for c in classes:
        if not isinstance(c, str) or not c:
            raise InvalidModelError(f"Class identifiers must be non-empty strings, got {c!r}")
    if len(set(classes)) != len(classes):
        raise InvalidModelError(f"Class identifiers must be distinct: {list(classes)}")
    return classes


def _validate_priors(classes: Tuple[str, ...],
                     priors: Union[Sequence[float], Mapping[str, float]],
                     tol: float) -> np.ndarray:
    if isinstance(priors, Mapping):
        if set(priors.keys()) != set(classes):
            raise InvalidModelError(
                f"Prior keys {sorted(priors.keys())} do not match classes {sorted(classes)}"
            )
        priors = [priors[c] for c in classes]

    arr = _as_probability_array(priors, "Priors")
    if arr.ndim != 1 or arr.shape[0] != len(classes):
        raise InvalidModelError(
            f"Expected {len(classes)} prior probabilities, got shape {arr.shape}"
        )

    total = arr.sum()
    if abs(total - 1.0) > tol:
        raise InvalidModelError(
            f"Priors sum to {total:.10f}, expected 1 within {tol:g}"
        ).add_context("prior_sum", float(total))
    return arr


def _validate_table(variable: str, table, n_classes: int, tol: float) -> np.ndarray:
    if not isinstance(variable, str) or not variable:
        raise InvalidModelError(f"Variable identifiers must be non-empty strings, got {variable!r}")

    arr = _as_probability_array(table, f"Table for '{variable}'")
    if arr.ndim != 2:
        raise InvalidModelError(
            f"Table for '{variable}' must be 2-dimensional (classes x levels), got shape {arr.shape}"
        )
    if arr.shape[0] != n_classes:
        raise InvalidModelError(
            f"Table for '{variable}' has {arr.shape[0]} rows, expected one per class ({n_classes})"
        ).add_context("variable", variable)
    if arr.shape[1] == 0:
        raise InvalidModelError(f"Table for '{variable}' has no levels")

    # Each row is a distribution over this variable's levels
    row_sums = arr.sum(axis=1)
    bad_rows = np.flatnonzero(np.abs(row_sums - 1.0) > tol)
    if bad_rows.size:
        row = int(bad_rows[0])
        raise InvalidModelError(
            f"Row {row} of table '{variable}' sums to {row_sums[row]:.10f}, expected 1 within {tol:g}"
        ).add_context("variable", variable).add_context("row", row)
    return arr


def _freeze(arr: np.ndarray) -> np.ndarray:
    arr.flags.writeable = False
    return arr


# =============================================================================
# CONSTRUCTION
# =============================================================================

def build_model(classes: Sequence[str],
                priors: Union[Sequence[float], Mapping[str, float]],
                variable_tables: Mapping[str, Sequence[Sequence[float]]],
                tol: float = DEFAULT_TOLERANCE) -> ModelDefinition:
    """
    Validate LCA parameters and build an immutable Model Definition.

    Construction is rejected, never silently corrected: any invalid input
    raises InvalidModelError before a model object exists.

    Args:
        classes: K distinct class identifiers, in display order
        priors: Length-K prior vector aligned with `classes`, or a mapping
                keyed by class identifier
        variable_tables: For each variable, a K x L matrix where row i is
                         the distribution over levels 1..L for class i
        tol: Tolerance for the sums-to-one checks

    Returns:
        A frozen ModelDefinition

    Raises:
        InvalidModelError: if any prior or conditional table is malformed
    """
    classes = _validate_classes(classes)
    prior_arr = _validate_priors(classes, priors, tol)

    if not variable_tables:
        raise InvalidModelError("A model needs at least one variable table")

    tables = {}
    for variable, table in variable_tables.items():
        tables[variable] = _freeze(_validate_table(variable, table, len(classes), tol))

    model = ModelDefinition(
        classes=classes,
        priors=_freeze(prior_arr),
        tables=MappingProxyType(tables),
    )
    logger.debug(f"Built {model!r}")
    return model
