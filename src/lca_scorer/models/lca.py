"""
Vectorized Latent Class posterior computation for polytomous data.

This is the E-step of polytomous LCA with the parameters held fixed,
computed for a whole matrix of observations at once:

    log P(c, x_i) = log P(c) + Σ_v log P(x_iv | c)
    P(c | x_i)    = exp(log P(c, x_i) - logsumexp_c log P(c, x_i))

Working in log space keeps long records from underflowing. The routine is
independent of the per-record scorer in `scorer.py` (different code path,
different arithmetic) and serves as the default reference computation when
certifying a Model Definition, as well as a fast path for bulk scoring.

Key outputs:
- posteriors: (n_obs, n_classes) P(class | record)
- log_likelihood: Σ_i log P(x_i), the marginal log-likelihood of the batch
"""

import numbers
from typing import Iterable, Mapping, Any, Union

import numpy as np
import pandas as pd
from scipy.special import logsumexp

from ..exceptions import DegenerateLikelihoodError, InvalidLevelError, MissingVariableError
from .definition import DEFAULT_TOLERANCE, ModelDefinition


# =============================================================================
# ENCODING
# =============================================================================

def _is_non_numeric(value: Any) -> bool:
    return isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Real)


def encode_levels(model: ModelDefinition,
                  data: Union[pd.DataFrame, Iterable[Mapping[str, Any]]]) -> np.ndarray:
    """
    Extract and validate the model's variables as an integer level matrix.

    Args:
        model: Model Definition declaring the variables and level counts
        data: DataFrame (one column per variable) or iterable of records.
              Extra columns are ignored.

    Returns:
        (n_obs, n_variables) int matrix of 1-based levels, columns in
        model.variables order

    Raises:
        MissingVariableError: a variable column is absent
        InvalidLevelError: a value is missing, boolean, text, non-integral or
                           out of range
    """
    if not isinstance(data, pd.DataFrame):
        data = pd.DataFrame(list(data))

    n_obs = len(data)
    levels = np.empty((n_obs, len(model.variables)), dtype=np.int64)

    for j, variable in enumerate(model.variables):
        if variable not in data.columns:
            raise MissingVariableError(variable)
        n_levels = model.n_levels(variable)
        series = data[variable]
        # Booleans and text are never levels, even when they would coerce to one
        if pd.api.types.is_bool_dtype(series.dtype):
            non_numeric = np.ones(n_obs, dtype=bool)
        elif not pd.api.types.is_numeric_dtype(series.dtype):
            non_numeric = series.map(_is_non_numeric).to_numpy(dtype=bool)
        else:
            non_numeric = np.zeros(n_obs, dtype=bool)
        column = pd.to_numeric(series.where(~non_numeric), errors="coerce").to_numpy(
            dtype=np.float64, na_value=np.nan
        )

        bad = (non_numeric | ~np.isfinite(column) | (column != np.round(column))
               | (column < 1) | (column > n_levels))
        if bad.any():
            position = int(np.flatnonzero(bad)[0])
            raise InvalidLevelError(
                variable, data[variable].iloc[position], n_levels
            ).add_context("record_position", position)

        levels[:, j] = column.astype(np.int64)

    return levels


# =============================================================================
# POSTERIORS
# =============================================================================

def compute_log_joint(model: ModelDefinition, levels: np.ndarray) -> np.ndarray:
    """
    log P(c) + Σ_v log P(x_iv | c) for every observation and class.

    Zero probabilities map to -inf (no smoothing constant), so a class that
    cannot generate a record gets exactly zero posterior mass.

    Args:
        model: Model Definition
        levels: (n_obs, n_variables) matrix from `encode_levels`

    Returns:
        (n_obs, n_classes) log joint probabilities
    """
    with np.errstate(divide="ignore"):
        log_joint = np.tile(np.log(model.priors), (levels.shape[0], 1))
        for j, variable in enumerate(model.variables):
            log_table = np.log(model.tables[variable])     # (n_classes, n_levels)
            # Fancy indexing picks log P(level_i | c) per observation
            log_joint += log_table[:, levels[:, j] - 1].T  # (n_obs, n_classes)
    return log_joint


def compute_posteriors(model: ModelDefinition, levels: np.ndarray,
                       return_log_likelihood: bool = False):
    """
    Posterior class membership for a matrix of encoded observations.

    Args:
        model: Model Definition
        levels: (n_obs, n_variables) matrix from `encode_levels`
        return_log_likelihood: If True, also return the total log-likelihood

    Returns:
        posteriors: (n_obs, n_classes) posterior probabilities
        If return_log_likelihood=True, returns (posteriors, log_likelihood)

    Raises:
        DegenerateLikelihoodError: one or more rows have zero total likelihood
    """
    log_joint = compute_log_joint(model, levels)

    # log P(x_i) = logsumexp_c [ log P(c, x_i) ]
    with np.errstate(divide="ignore"):
        log_marginal = logsumexp(log_joint, axis=1, keepdims=True)

    degenerate = ~np.isfinite(log_marginal[:, 0])
    if degenerate.any():
        positions = np.flatnonzero(degenerate).tolist()
        raise DegenerateLikelihoodError(
            f"{len(positions)} record(s) have zero total likelihood under every class"
        ).add_context("record_positions", positions)

    posteriors = np.exp(log_joint - log_marginal)

    if return_log_likelihood:
        return posteriors, float(log_marginal.sum())
    return posteriors


def assign_labels(model: ModelDefinition, posteriors: np.ndarray,
                  tol: float = DEFAULT_TOLERANCE) -> np.ndarray:
    """
    Arg-max class per row, ties within `tol` going to the first declared class.

    Returns:
        (n_obs,) object array of class identifiers
    """
    best = posteriors.max(axis=1, keepdims=True)
    # argmax returns the first True, i.e. the earliest class in declared order
    idx = np.argmax(posteriors >= best - tol, axis=1)
    return np.asarray(model.classes, dtype=object)[idx]


def posteriors_frame(model: ModelDefinition, data: pd.DataFrame,
                     tol: float = DEFAULT_TOLERANCE,
                     label_column: str = "assigned_class") -> pd.DataFrame:
    """
    Score a whole DataFrame in one vectorized pass.

    Unlike `score_batch`, any invalid record fails the entire call.

    Returns:
        DataFrame indexed like `data` with one probability column per class
        and the assigned-class column
    """
    levels = encode_levels(model, data)
    posteriors = compute_posteriors(model, levels)
    frame = pd.DataFrame(posteriors, index=data.index, columns=list(model.classes))
    frame[label_column] = assign_labels(model, posteriors, tol)
    return frame
