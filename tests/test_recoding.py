import numpy as np
import pandas as pd
import pytest

from lca_scorer.exceptions import RecodingError
from lca_scorer.models import score
from lca_scorer.recoding import (
    RECODING_RULES,
    recode_age,
    recode_binary,
    recode_bmi,
    recode_clinical,
    recode_egfr,
    recode_sex,
    recode_systolic_bp,
)


@pytest.fixture
def raw_patients():
    return pd.DataFrame(
        {
            "sex": ["male", "F", "m"],
            "age": [62, 78, 44],
            "current_smoker": [0, 0, 1],
            "bmi": [27.4, 22.0, 23.9],
            "systolic_bp": [151, 145, 118],
            "diabetes": [False, True, False],
            "dyslipidemia": [1, 1, 0],
            "vascular_beds": [1, 3, 0],
            "egfr": [74.0, 52.0, 96.0],
        },
        index=pd.Index(["p1", "p2", "p3"], name="patient"),
    )


@pytest.mark.parametrize(
    "age, level",
    [(30, 1), (55, 1), (56, 2), (70, 2), (71, 3), (95, 3)],
)
def test_age_thresholds(age, level):
    assert recode_age(pd.Series([age]))[0] == level


@pytest.mark.parametrize(
    "egfr, level",
    [(120, 1), (91, 1), (90, 2), (61, 2), (60, 3), (46, 3), (45, 4), (12, 4)],
)
def test_egfr_thresholds(egfr, level):
    assert recode_egfr(pd.Series([egfr]))[0] == level


def test_bmi_and_bp_thresholds():
    np.testing.assert_array_equal(recode_bmi(pd.Series([24.9, 25.0, 29.9, 30.0])), [1, 2, 2, 3])
    np.testing.assert_array_equal(recode_systolic_bp(pd.Series([129, 130, 139, 140])), [1, 2, 2, 3])


def test_sex_codes():
    codes = recode_sex(pd.Series(["Male", " f ", "1", 2, 1.0, "FEMALE"]))
    np.testing.assert_array_equal(codes, [1, 2, 1, 2, 1, 2])


def test_unknown_sex_code():
    with pytest.raises(RecodingError, match="Unrecognised sex codes"):
        recode_sex(pd.Series(["male", "x"]))


def test_recode_clinical(raw_patients):
    recoded = recode_clinical(raw_patients)

    assert list(recoded.columns) == list(RECODING_RULES)
    assert recoded.index.equals(raw_patients.index)
    assert (recoded.dtypes == np.int64).all()
    assert recoded.loc["p1"].to_dict() == {
        "sex_nr": 1,
        "age_cat": 2,
        "smoking_nr": 1,
        "bmi_cat": 2,
        "bp_cat": 3,
        "diabetes_nr": 1,
        "dyslipidemia_nr": 2,
        "polyvascular_nr": 1,
        "egfr_cat": 2,
    }
    assert recoded.loc["p2", "polyvascular_nr"] == 2
    assert recoded.loc["p3", "smoking_nr"] == 2


def test_recoded_records_score(model, raw_patients, golden_posterior):
    recoded = recode_clinical(raw_patients)
    result = score(model, recoded.loc["p1"].to_dict())
    for class_name, expected in golden_posterior.items():
        assert result.posteriors[class_name] == pytest.approx(expected, abs=1e-9)


def test_missing_raw_column(raw_patients):
    with pytest.raises(RecodingError) as exc:
        recode_clinical(raw_patients.drop(columns=["egfr", "bmi"]))
    assert exc.value.context["columns"] == ["bmi", "egfr"]


def test_missing_values_are_not_imputed(raw_patients):
    raw_patients.loc["p2", "age"] = np.nan
    with pytest.raises(RecodingError, match="'age'") as exc:
        recode_clinical(raw_patients)
    assert exc.value.context["rows"] == ["p2"]


@pytest.mark.parametrize(
    "answers, levels",
    [
        (["no", "No", " NO "], [1, 1, 1]),
        (["yes", "Y", "true"], [2, 2, 2]),
        (["0", "1", "0.0"], [1, 2, 1]),
        ([0, 1, 0], [1, 2, 1]),
        ([False, True, False], [1, 2, 1]),
    ],
)
def test_binary_answers(answers, levels):
    np.testing.assert_array_equal(recode_binary(pd.Series(answers, name="diabetes")), levels)


@pytest.mark.parametrize("token", ["maybe", "unknown", "2"])
def test_unknown_binary_answer(token):
    with pytest.raises(RecodingError, match="diabetes") as exc:
        recode_binary(pd.Series(["no", token], name="diabetes"))
    assert exc.value.context["column"] == "diabetes"


def test_text_answers_recode_end_to_end(raw_patients):
    raw_patients["current_smoker"] = ["no", "no", "yes"]
    raw_patients["diabetes"] = ["no", "yes", "no"]
    raw_patients["dyslipidemia"] = ["Yes", "Yes", "No"]

    recoded = recode_clinical(raw_patients)

    assert list(recoded["smoking_nr"]) == [1, 1, 2]
    assert list(recoded["diabetes_nr"]) == [1, 2, 1]
    assert list(recoded["dyslipidemia_nr"]) == [2, 2, 1]
