"""
Model acceptance: compare scorer output against a reference computation.

Before a newly built Model Definition goes into production, its posteriors
on a reference batch are compared with an independent computation of the
same quantities (an external LCA library's posterior routine, or the
vectorized log-space routine in `models.lca`). Two statistics decide
acceptance:
- label match rate: share of records assigned to the same class
- max absolute difference between corresponding posterior values

A model is certified at N decimals when every label matches and the largest
difference is below 0.5 × 10^-N.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import accuracy_score, confusion_matrix

from .batch import LABEL_COLUMN, ErrorPolicy, score_batch
from .exceptions import CertificationError
from .models.definition import DEFAULT_TOLERANCE, ModelDefinition
from .models.lca import posteriors_frame


logger = logging.getLogger(__name__)


def agreement_tolerance(decimals: int) -> float:
    """Largest absolute posterior difference that still agrees to `decimals` decimals."""
    return 0.5 * 10 ** (-decimals)


@dataclass
class ValidationReport:
    """Agreement between scorer output and a reference posterior computation."""
    n_records: int
    label_match_rate: float
    max_abs_difference: float
    per_class_max_abs_difference: Dict[str, float] = field(default_factory=dict)
    confusion: Optional[pd.DataFrame] = None

    def passed(self, decimals: int = 5) -> bool:
        return (self.label_match_rate == 1.0
                and self.max_abs_difference < agreement_tolerance(decimals))

    def as_dict(self, decimals: int = 5) -> dict:
        return {
            "n_records": self.n_records,
            "label_match_rate": self.label_match_rate,
            "max_abs_difference": self.max_abs_difference,
            "per_class_max_abs_difference": dict(self.per_class_max_abs_difference),
            "decimals": decimals,
            "passed": self.passed(decimals),
        }


def confusion_table(labels_true: Sequence[str], labels_pred: Sequence[str],
                    classes: Sequence[str]) -> pd.DataFrame:
    """
    Cross-tabulate two label assignments.

    Rows are the reference labels, columns the scorer labels, both in the
    declared class order.
    """
    matrix = confusion_matrix(list(labels_true), list(labels_pred), labels=list(classes))
    return pd.DataFrame(
        matrix,
        index=pd.Index(classes, name="reference"),
        columns=pd.Index(classes, name="scored"),
    )


def compare_posteriors(scored: pd.DataFrame, reference: pd.DataFrame,
                       classes: Sequence[str],
                       label_column: str = LABEL_COLUMN,
                       tol: float = DEFAULT_TOLERANCE) -> ValidationReport:
    """
    Compare two posterior tables record by record.

    Args:
        scored: Scorer output, one probability column per class plus
                `label_column`
        reference: Reference output with the same class columns. If it has
                   no `label_column`, reference labels are derived by arg-max
                   with the same first-declared tie-break.
        classes: Class identifiers, in declared order
        label_column: Name of the assigned-class column
        tol: Tie tolerance when deriving reference labels

    Returns:
        ValidationReport
    """
    classes = list(classes)
    missing = [c for c in classes if c not in scored.columns or c not in reference.columns]
    if missing:
        raise ValueError(f"Class columns missing from one of the tables: {missing}")
    if len(scored) != len(reference):
        raise ValueError(
            f"Tables have different lengths: {len(scored)} scored vs {len(reference)} reference"
        )

    scored_probs = scored[classes].to_numpy(dtype=np.float64)
    reference_probs = reference[classes].to_numpy(dtype=np.float64)

    if label_column in reference.columns:
        reference_labels = reference[label_column].astype(str).to_numpy()
    else:
        # Derive labels from probabilities; the class order decides ties
        best = reference_probs.max(axis=1, keepdims=True)
        idx = np.argmax(reference_probs >= best - tol, axis=1)
        reference_labels = np.asarray(classes, dtype=object)[idx]
    scored_labels = scored[label_column].astype(str).to_numpy()

    if len(scored) == 0:
        return ValidationReport(n_records=0, label_match_rate=1.0, max_abs_difference=0.0,
                                per_class_max_abs_difference={c: 0.0 for c in classes})

    abs_diff = np.abs(scored_probs - reference_probs)
    return ValidationReport(
        n_records=len(scored),
        label_match_rate=float(accuracy_score(reference_labels, scored_labels)),
        max_abs_difference=float(abs_diff.max()),
        per_class_max_abs_difference={c: float(d) for c, d in zip(classes, abs_diff.max(axis=0))},
        confusion=confusion_table(reference_labels, scored_labels, classes),
    )


def certify_model(model: ModelDefinition, data: pd.DataFrame,
                  reference: Optional[pd.DataFrame] = None,
                  decimals: int = 5,
                  raise_on_failure: bool = True,
                  tol: float = DEFAULT_TOLERANCE) -> ValidationReport:
    """
    Certify a Model Definition against a reference posterior computation.

    Args:
        model: Model Definition to certify
        data: Reference batch of recoded records
        reference: Externally computed posteriors for `data` (one column per
                   class, optional label column), row-aligned with `data`.
                   Defaults to the vectorized log-space computation.
        decimals: Number of decimals the posteriors must agree to
        raise_on_failure: Raise CertificationError instead of returning a
                          failing report
        tol: Tie tolerance for the arg-max assignment

    Returns:
        ValidationReport

    Raises:
        CertificationError: the model does not reproduce the reference
        RecordError: a record in `data` cannot be scored at all
    """
    scored = score_batch(model, data, error_policy=ErrorPolicy.ABORT, tol=tol).posteriors
    if reference is None:
        reference = posteriors_frame(model, data, tol=tol, label_column=LABEL_COLUMN)

    report = compare_posteriors(scored, reference, model.classes, tol=tol)
    logger.info(
        f"Certification on {report.n_records} records: "
        f"label match {report.label_match_rate:.4%}, "
        f"max |diff| {report.max_abs_difference:.3e}"
    )

    if not report.passed(decimals) and raise_on_failure:
        raise CertificationError(
            f"Model does not reproduce reference posteriors to {decimals} decimals "
            f"(label match {report.label_match_rate:.4%}, "
            f"max |diff| {report.max_abs_difference:.3e})",
            report=report,
        )
    return report
