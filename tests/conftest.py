import pandas as pd
import pytest

from lca_scorer.models import build_model, reference_model


@pytest.fixture
def model():
    return reference_model()


@pytest.fixture
def toy_model():
    """Three classes, one binary and one three-level variable."""
    return build_model(
        ["a", "b", "c"],
        [0.5, 0.3, 0.2],
        {
            "x": [[0.9, 0.1], [0.2, 0.8], [0.5, 0.5]],
            "y": [[0.6, 0.3, 0.1], [0.1, 0.3, 0.6], [0.2, 0.6, 0.2]],
        },
    )


@pytest.fixture
def golden_record():
    return {
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


@pytest.fixture
def golden_posterior():
    # Product-and-normalize computed independently in double precision
    return {
        "elderly_few_comorbidities": 0.3577262969,
        "young_metabolic": 0.5800225534,
        "polyvascular_comorbidity": 0.0465835206,
        "smokers_few_riskfactors": 0.0156676291,
    }


@pytest.fixture
def reference_records():
    return pd.DataFrame(
        [
            # sex age smk bmi bp dm dys poly egfr
            [1, 2, 1, 2, 3, 1, 2, 1, 2],
            [2, 3, 1, 1, 3, 2, 2, 2, 3],
            [1, 1, 2, 1, 1, 1, 1, 1, 1],
            [2, 3, 1, 1, 2, 1, 1, 1, 2],
        ],
        columns=[
            "sex_nr", "age_cat", "smoking_nr", "bmi_cat", "bp_cat",
            "diabetes_nr", "dyslipidemia_nr", "polyvascular_nr", "egfr_cat",
        ],
        index=pd.Index(["p1", "p2", "p3", "p4"], name="patient"),
    )
