"""
Recoding of raw clinical fields into the reference model's factor levels.

Every rule is a deterministic threshold or equality test producing a
1-based level. The scorer validates only the level range, so these rules
are the single place where clinical meaning is attached to the numbers.

Raw column -> model variable:
- sex             -> sex_nr           male 1, female 2
- age             -> age_cat          <=55 / <=70 / older
- current_smoker  -> smoking_nr       no 1, yes 2
- bmi             -> bmi_cat          <25 / <30 / higher
- systolic_bp     -> bp_cat           <130 / <140 / higher
- diabetes        -> diabetes_nr      no 1, yes 2
- dyslipidemia    -> dyslipidemia_nr  no 1, yes 2
- vascular_beds   -> polyvascular_nr  fewer than 2 beds 1, 2 or more 2
- egfr            -> egfr_cat         >90 / >60 / >45 / lower
"""

from typing import Callable, Dict, Tuple

import numpy as np
import pandas as pd

from .exceptions import RecodingError


_SEX_CODES = {"male": 1, "m": 1, "1": 1, "female": 2, "f": 2, "2": 2}


def recode_sex(values: pd.Series) -> np.ndarray:
    normalized = values.astype(str).str.strip().str.lower()
    # Integral floats (1.0) come back as "1.0" from astype(str)
    normalized = normalized.str.replace(r"\.0+$", "", regex=True)
    codes = normalized.map(_SEX_CODES)
    if codes.isna().any():
        unknown = sorted(values[codes.isna()].astype(str).unique())
        raise RecodingError(f"Unrecognised sex codes: {unknown}").add_context("column", "sex")
    return codes.to_numpy(dtype=np.int64)


def recode_age(values: pd.Series) -> np.ndarray:
    return np.select([values <= 55, values <= 70], [1, 2], default=3)


def recode_bmi(values: pd.Series) -> np.ndarray:
    return np.select([values < 25, values < 30], [1, 2], default=3)


def recode_systolic_bp(values: pd.Series) -> np.ndarray:
    return np.select([values < 130, values < 140], [1, 2], default=3)


def recode_egfr(values: pd.Series) -> np.ndarray:
    return np.select([values > 90, values > 60, values > 45], [1, 2, 3], default=4)


_BINARY_CODES = {
    "yes": 2, "y": 2, "true": 2, "1": 2,
    "no": 1, "n": 1, "false": 1, "0": 1,
}


def recode_binary(values: pd.Series) -> np.ndarray:
    """
    Yes -> 2, no -> 1.

    Numeric and boolean columns go by truthiness. Text columns (what
    `pd.read_csv` yields for yes/no answers) must use one of the tokens in
    _BINARY_CODES.
    """
    if pd.api.types.is_bool_dtype(values.dtype) or pd.api.types.is_numeric_dtype(values.dtype):
        return np.where(values.astype(bool), 2, 1)

    normalized = values.astype(str).str.strip().str.lower()
    normalized = normalized.str.replace(r"\.0+$", "", regex=True)
    codes = normalized.map(_BINARY_CODES)
    if codes.isna().any():
        unknown = sorted(values[codes.isna()].astype(str).unique())
        raise RecodingError(
            f"Unrecognised yes/no codes in '{values.name}': {unknown}"
        ).add_context("column", values.name)
    return codes.to_numpy(dtype=np.int64)


def recode_polyvascular(values: pd.Series) -> np.ndarray:
    return np.where(values >= 2, 2, 1)


# Model variable -> (raw column, rule)
RECODING_RULES: Dict[str, Tuple[str, Callable[[pd.Series], np.ndarray]]] = {
    "sex_nr": ("sex", recode_sex),
    "age_cat": ("age", recode_age),
    "smoking_nr": ("current_smoker", recode_binary),
    "bmi_cat": ("bmi", recode_bmi),
    "bp_cat": ("systolic_bp", recode_systolic_bp),
    "diabetes_nr": ("diabetes", recode_binary),
    "dyslipidemia_nr": ("dyslipidemia", recode_binary),
    "polyvascular_nr": ("vascular_beds", recode_polyvascular),
    "egfr_cat": ("egfr", recode_egfr),
}


def recode_clinical(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Apply the recoding rules to a frame of raw clinical fields.

    Args:
        frame: One row per subject with the raw columns listed in
               RECODING_RULES. Extra columns are ignored.

    Returns:
        DataFrame with the same index and one integer column per model
        variable

    Raises:
        RecodingError: a raw column is absent, holds missing values, or
                       holds an unrecognised sex code
    """
    missing = sorted({raw for raw, _ in RECODING_RULES.values()} - set(frame.columns))
    if missing:
        raise RecodingError(f"Raw columns missing: {missing}").add_context("columns", missing)

    recoded = {}
    for variable, (raw, rule) in RECODING_RULES.items():
        values = frame[raw]
        if values.isna().any():
            rows = list(frame.index[values.isna()])
            raise RecodingError(
                f"Column '{raw}' has missing values; impute before recoding"
            ).add_context("column", raw).add_context("rows", rows)
        recoded[variable] = rule(values)

    return pd.DataFrame(recoded, index=frame.index).astype(np.int64)
