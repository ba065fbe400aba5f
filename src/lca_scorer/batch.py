"""
Batch scoring of observation records.

Each record is scored independently against the shared, read-only Model
Definition, so records can be dispatched to a thread pool without any
coordination. Results always come back in input order.

Per-record failures (missing variable, invalid level, zero likelihood) are
handled according to the caller's error policy:
- ABORT: the first failing record (in input order) is re-raised with its
  position and identifier attached to the error context
- COLLECT: failures are gathered alongside the successfully scored records
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .exceptions import RecordError
from .models.definition import DEFAULT_TOLERANCE, ModelDefinition
from .models.scorer import PosteriorResult, score


logger = logging.getLogger(__name__)

LABEL_COLUMN = "assigned_class"


class ErrorPolicy(str, Enum):
    """What to do when a record in a batch cannot be scored."""
    ABORT = "abort"
    COLLECT = "collect"


@dataclass(frozen=True)
class RecordFailure:
    """A record that could not be scored, with where it sat in the batch."""
    position: int
    record_id: Any
    error: RecordError

    @property
    def error_type(self) -> str:
        return type(self.error).__name__

    @property
    def message(self) -> str:
        return self.error.message

    def as_dict(self) -> dict:
        return {
            "position": self.position,
            "record_id": self.record_id,
            "error_type": self.error_type,
            "error_code": self.error.error_code,
            "message": self.message,
        }


@dataclass
class BatchResult:
    """
    Outcome of scoring a batch.

    Attributes:
        posteriors: One row per successfully scored record, indexed by the
                    record identifier, one probability column per class
                    plus the assigned-class column. Rows keep input order.
        errors: One entry per record that failed, in input order
        n_records: Total number of records submitted
    """
    posteriors: pd.DataFrame
    errors: List[RecordFailure] = field(default_factory=list)
    n_records: int = 0

    @property
    def n_scored(self) -> int:
        return len(self.posteriors)

    @property
    def n_failed(self) -> int:
        return len(self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def labels(self) -> pd.Series:
        return self.posteriors[LABEL_COLUMN]

    def errors_frame(self) -> pd.DataFrame:
        """Per-record failures as a DataFrame (empty with the right columns if none)."""
        columns = ["position", "record_id", "error_type", "error_code", "message"]
        return pd.DataFrame([e.as_dict() for e in self.errors], columns=columns)

    def class_sizes(self) -> pd.Series:
        """Number of records assigned to each class (zero counts included)."""
        classes = [c for c in self.posteriors.columns if c != LABEL_COLUMN]
        return self.labels.value_counts().reindex(classes, fill_value=0)


# =============================================================================
# HELPERS
# =============================================================================

def _iter_records(records: Union[pd.DataFrame, Iterable[Mapping[str, Any]]],
                  id_column: Optional[str]) -> List[Tuple[Any, Mapping[str, Any]]]:
    """Pair every record with its identifier (id column, frame index, or position)."""
    if isinstance(records, pd.DataFrame):
        if id_column is not None and id_column not in records.columns:
            raise KeyError(f"Identifier column '{id_column}' not found in records")
        rows = records.to_dict(orient="records")
        if id_column is not None:
            ids = [row[id_column] for row in rows]
        else:
            ids = list(records.index)
        return list(zip(ids, rows))

    pairs = []
    for position, record in enumerate(records):
        record_id = record.get(id_column, position) if id_column is not None else position
        pairs.append((record_id, record))
    return pairs


def _score_one(model: ModelDefinition, record: Mapping[str, Any],
               tol: float) -> Tuple[Optional[PosteriorResult], Optional[RecordError]]:
    try:
        return score(model, record, tol), None
    except RecordError as e:
        return None, e


# =============================================================================
# MAIN BATCH FUNCTION
# =============================================================================

def score_batch(model: ModelDefinition,
                records: Union[pd.DataFrame, Iterable[Mapping[str, Any]]],
                error_policy: Union[ErrorPolicy, str] = ErrorPolicy.COLLECT,
                id_column: Optional[str] = None,
                record_ids: Optional[Sequence[Any]] = None,
                max_workers: Optional[int] = None,
                tol: float = DEFAULT_TOLERANCE) -> BatchResult:
    """
    Score an ordered collection of records.

    Args:
        model: Validated Model Definition, shared read-only by all workers
        records: DataFrame (one row per record) or iterable of mappings
        error_policy: ABORT to raise on the first failing record,
                      COLLECT to report failures alongside results
        id_column: Optional column holding record identifiers. Defaults to
                   the DataFrame index, or the position for plain iterables.
        record_ids: Identifiers supplied alongside the records, one per
                    record in order. Takes precedence over `id_column`.
        max_workers: Thread pool size; None or 1 scores sequentially
        tol: Tie tolerance for the arg-max assignment

    Returns:
        BatchResult with posteriors in input order and any collected failures

    Raises:
        RecordError: under ABORT, the first failing record's error, with
                     `record_position` and `record_id` in its context
        ValueError: `record_ids` does not match the number of records
    """
    error_policy = ErrorPolicy(error_policy)
    pairs = _iter_records(records, id_column)
    if record_ids is not None:
        record_ids = list(record_ids)
        if len(record_ids) != len(pairs):
            raise ValueError(
                f"Got {len(record_ids)} record ids for {len(pairs)} records"
            )
        pairs = [(record_id, record) for record_id, (_, record) in zip(record_ids, pairs)]
    index_name = id_column
    if index_name is None and isinstance(records, pd.DataFrame):
        index_name = records.index.name

    if max_workers is not None and max_workers > 1 and len(pairs) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            # map() yields in submission order regardless of completion order
            outcomes = list(executor.map(lambda pair: _score_one(model, pair[1], tol), pairs))
    else:
        outcomes = [_score_one(model, record, tol) for _, record in pairs]

    ids = []
    rows = []
    failures = []
    for position, ((record_id, _), (result, error)) in enumerate(zip(pairs, outcomes)):
        if error is not None:
            error.add_context("record_position", position)
            error.add_context("record_id", record_id)
            if error_policy is ErrorPolicy.ABORT:
                logger.error(f"Aborting batch at record {record_id!r} (position {position}): {error}")
                raise error
            failures.append(RecordFailure(position=position, record_id=record_id, error=error))
            continue
        ids.append(record_id)
        row = dict(result.posteriors)
        row[LABEL_COLUMN] = result.assigned_class
        rows.append(row)

    posteriors = pd.DataFrame(
        rows,
        index=pd.Index(ids, name=index_name),
        columns=list(model.classes) + [LABEL_COLUMN],
    )

    if failures:
        logger.warning(f"Scored {len(rows)} of {len(pairs)} records; {len(failures)} failed")
    else:
        logger.info(f"Scored {len(rows)} records")

    return BatchResult(posteriors=posteriors, errors=failures, n_records=len(pairs))
