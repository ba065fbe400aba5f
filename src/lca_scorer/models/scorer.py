"""
Posterior scoring of a single observation record.

Given a fixed Model Definition, the posterior class membership of a record
follows from Bayes' theorem under the LCA local-independence assumption:

    P(class = c | x) ∝ P(c) × Π_v P(x_v | c)

This is the E-step of the EM algorithm with the parameters held fixed, or
equivalently naive-Bayes scoring over categorical variables. Probabilities
are multiplied directly (no log transform) so results agree with a plain
product-and-normalize reference computation to well beyond five decimals.
`score` rescales the running product to sum 1 after every variable, so
records with many low-probability levels do not underflow to zero.
"""

import math
import numbers
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping

import numpy as np

from ..exceptions import DegenerateLikelihoodError, InvalidLevelError, MissingVariableError
from .definition import DEFAULT_TOLERANCE, ModelDefinition


@dataclass(frozen=True)
class PosteriorResult:
    """Posterior distribution over classes plus the arg-max assignment."""
    posteriors: Mapping[str, float]
    assigned_class: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "posteriors": dict(self.posteriors),
            "assigned_class": self.assigned_class,
        }


def _coerce_level(variable: str, value: Any, n_levels: int) -> int:
    """
    Interpret an observed value as a 1-based level index.

    Integral floats (2.0) are accepted since pandas upcasts integer columns
    that share a frame with floats. Booleans are rejected.
    """
    if isinstance(value, bool) or isinstance(value, np.bool_):
        raise InvalidLevelError(variable, value, n_levels)
    if isinstance(value, numbers.Integral):
        level = int(value)
    elif isinstance(value, numbers.Real) and math.isfinite(value) and float(value).is_integer():
        level = int(value)
    else:
        raise InvalidLevelError(variable, value, n_levels)

    if level < 1 or level > n_levels:
        raise InvalidLevelError(variable, value, n_levels)
    return level


def compute_joint_likelihoods(model: ModelDefinition, record: Mapping[str, Any],
                              rescale: bool = False) -> np.ndarray:
    """
    Unnormalized joint likelihood P(c) × Π_v P(x_v | c) for every class.

    Args:
        model: Validated Model Definition
        record: Mapping from variable identifier to observed level.
                Fields the model does not declare are ignored.
        rescale: Divide the running product by its sum after every
                 variable. The result is proportional to the plain product
                 but cannot underflow while any class still has mass.

    Returns:
        (n_classes,) array in model.classes order
    """
    acc = np.array(model.priors, dtype=np.float64)
    for variable in model.variables:
        if variable not in record:
            raise MissingVariableError(variable)
        table = model.tables[variable]
        level = _coerce_level(variable, record[variable], table.shape[1])
        acc *= table[:, level - 1]
        if rescale:
            total = acc.sum()
            if total > 0.0:
                acc /= total
    return acc


def argmax_with_tiebreak(posteriors: np.ndarray, tol: float = DEFAULT_TOLERANCE) -> int:
    """
    Index of the largest posterior.

    Classes within `tol` of the maximum are treated as tied and the one
    declared first in the model's class order wins.
    """
    best = posteriors.max()
    return int(np.flatnonzero(posteriors >= best - tol)[0])


def score(model: ModelDefinition, record: Mapping[str, Any],
          tol: float = DEFAULT_TOLERANCE) -> PosteriorResult:
    """
    Compute the posterior class distribution and assigned class for one record.

    Args:
        model: Validated Model Definition (shared read-only)
        record: Mapping from variable identifier to observed integer level
        tol: Tie tolerance for the arg-max assignment

    Returns:
        PosteriorResult with one probability per class and the arg-max class

    Raises:
        MissingVariableError: a required variable is absent from the record
        InvalidLevelError: an observed level is outside 1..n_levels
        DegenerateLikelihoodError: the total likelihood is zero or not finite
    """
    joint = compute_joint_likelihoods(model, record, rescale=True)

    total = joint.sum()
    if not np.isfinite(total) or total <= 0.0:
        observed = {v: record[v] for v in model.variables}
        raise DegenerateLikelihoodError(
            f"Total likelihood is {total!r}; no class can generate the observed levels"
        ).add_context("levels", observed)

    posteriors = joint / total
    best = argmax_with_tiebreak(posteriors, tol)

    return PosteriorResult(
        posteriors=MappingProxyType({c: float(p) for c, p in zip(model.classes, posteriors)}),
        assigned_class=model.classes[best],
    )
