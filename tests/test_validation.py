import pandas as pd
import pytest

from lca_scorer.batch import LABEL_COLUMN, score_batch
from lca_scorer.exceptions import CertificationError, InvalidLevelError
from lca_scorer.validation import (
    ValidationReport,
    agreement_tolerance,
    certify_model,
    compare_posteriors,
    confusion_table,
)


@pytest.fixture
def external_reference(model):
    """Posteriors for `reference_records` as reported by an external LCA routine."""
    return pd.DataFrame(
        [
            [0.3577262969, 0.5800225534, 0.0465835206, 0.0156676291],
            [0.0399642277, 0.0007961754, 0.9592389263, 0.0000006706],
            [0.0001808724, 0.0028932549, 0.0000182000, 0.9969076728],
            [0.9897719092, 0.0015306411, 0.0077207853, 0.0009766644],
        ],
        columns=list(model.classes),
    )


def test_certify_against_vectorized_reference(model, reference_records):
    report = certify_model(model, reference_records)
    assert report.passed()
    assert report.label_match_rate == 1.0
    assert report.max_abs_difference < 1e-12


def test_certify_against_external_reference(model, reference_records, external_reference):
    report = certify_model(model, reference_records, reference=external_reference, decimals=5)
    assert report.n_records == 4
    assert report.label_match_rate == 1.0
    assert report.max_abs_difference < 1e-9
    assert report.passed(decimals=8)


def test_certify_fails_when_posteriors_drift(model, reference_records, external_reference):
    drifted = external_reference.copy()
    drifted.iloc[2, 0] += 2e-5
    drifted.iloc[2, 3] -= 2e-5

    with pytest.raises(CertificationError) as exc:
        certify_model(model, reference_records, reference=drifted)
    assert exc.value.report.max_abs_difference == pytest.approx(2e-5, rel=1e-3)
    # Still agrees at four decimals
    assert exc.value.report.passed(decimals=4)


def test_certify_can_return_failing_report(model, reference_records, external_reference):
    drifted = external_reference.copy()
    drifted.iloc[0, 1] -= 1e-3
    report = certify_model(model, reference_records, reference=drifted, raise_on_failure=False)
    assert not report.passed()
    assert report.per_class_max_abs_difference["young_metabolic"] == pytest.approx(1e-3)


def test_certify_propagates_unscorable_records(model, reference_records):
    broken = reference_records.copy()
    broken.loc["p3", "egfr_cat"] = 5
    with pytest.raises(InvalidLevelError) as exc:
        certify_model(model, broken)
    assert exc.value.context["record_id"] == "p3"


def test_label_mismatch_rate_and_confusion(model, reference_records, external_reference):
    scored = score_batch(model, reference_records).posteriors
    reference = external_reference.copy()
    reference[LABEL_COLUMN] = [
        "young_metabolic",
        "polyvascular_comorbidity",
        "young_metabolic",               # scorer says smokers_few_riskfactors
        "elderly_few_comorbidities",
    ]

    report = compare_posteriors(scored, reference, model.classes)

    assert report.label_match_rate == 0.75
    assert not report.passed()
    assert report.confusion.loc["young_metabolic", "smokers_few_riskfactors"] == 1
    assert report.confusion.loc["young_metabolic", "young_metabolic"] == 1
    assert int(report.confusion.to_numpy().sum()) == 4


def test_reference_labels_derived_from_probabilities(model, reference_records, external_reference):
    scored = score_batch(model, reference_records).posteriors
    assert LABEL_COLUMN not in external_reference.columns
    report = compare_posteriors(scored, external_reference, model.classes)
    assert report.label_match_rate == 1.0


def test_compare_rejects_mismatched_tables(model, reference_records, external_reference):
    scored = score_batch(model, reference_records).posteriors
    with pytest.raises(ValueError, match="different lengths"):
        compare_posteriors(scored, external_reference.iloc[:3], model.classes)
    with pytest.raises(ValueError, match="missing"):
        compare_posteriors(scored, external_reference.drop(columns=["young_metabolic"]), model.classes)


def test_confusion_table_orders_by_declared_classes():
    table = confusion_table(["b", "a", "b"], ["b", "b", "b"], ["b", "a"])
    assert list(table.index) == ["b", "a"]
    assert table.loc["a", "b"] == 1
    assert table.loc["b", "b"] == 2


def test_report_as_dict(model, reference_records):
    summary = certify_model(model, reference_records).as_dict(decimals=5)
    assert summary["passed"] is True
    assert summary["decimals"] == 5
    assert set(summary["per_class_max_abs_difference"]) == set(model.classes)


@pytest.mark.parametrize("decimals, tolerance", [(5, 5e-6), (3, 5e-4), (8, 5e-9)])
def test_agreement_tolerance(decimals, tolerance):
    assert agreement_tolerance(decimals) == pytest.approx(tolerance)


def test_report_passes_just_inside_tolerance():
    report = ValidationReport(n_records=1, label_match_rate=1.0, max_abs_difference=4.9e-6)
    assert report.passed(5)
    assert not ValidationReport(n_records=1, label_match_rate=1.0, max_abs_difference=6e-6).passed(5)
