"""
Embedded four-class cardiovascular reference model.

Parameters were estimated once, offline, on the reference population and
are carried here as literal numbers so scoring never needs the fitting
library. Each table row is P(level | class) for levels 1..L, rows in
REFERENCE_CLASSES order.

Level coding (see `lca_scorer.recoding` for the raw-field rules):
- sex_nr:          1 male, 2 female
- age_cat:         1 <=55, 2 56-70, 3 >70 years
- smoking_nr:      1 non-smoker, 2 current smoker
- bmi_cat:         1 <25, 2 25-30, 3 >=30 kg/m2
- bp_cat:          1 systolic <130, 2 130-139, 3 >=140 mmHg
- diabetes_nr:     1 no, 2 yes
- dyslipidemia_nr: 1 no, 2 yes
- polyvascular_nr: 1 fewer than two affected vascular beds, 2 two or more
- egfr_cat:        1 >90, 2 61-90, 3 46-60, 4 <=45 ml/min/1.73m2
"""

from functools import lru_cache

from .definition import ModelDefinition, build_model


REFERENCE_CLASSES = [
    "elderly_few_comorbidities",
    "young_metabolic",
    "polyvascular_comorbidity",
    "smokers_few_riskfactors",
]

# Five decimals; rounds to the published 0.2966 / 0.3118 / 0.1399 / 0.2518,
# which on their own sum to 1.0001.
REFERENCE_PRIORS = [0.29656, 0.31178, 0.13988, 0.25178]

REFERENCE_TABLES = {
    "sex_nr": [
        [0.5841, 0.4159],
        [0.7702, 0.2298],
        [0.7013, 0.2987],
        [0.8476, 0.1524],
    ],
    "age_cat": [
        [0.0208, 0.4127, 0.5665],
        [0.4386, 0.4912, 0.0702],
        [0.0563, 0.4405, 0.5032],
        [0.5519, 0.4294, 0.0187],
    ],
    "smoking_nr": [
        [0.9183, 0.0817],
        [0.7154, 0.2846],
        [0.7725, 0.2275],
        [0.1032, 0.8968],
    ],
    "bmi_cat": [
        [0.4512, 0.4236, 0.1252],
        [0.0521, 0.3648, 0.5831],
        [0.2307, 0.4415, 0.3278],
        [0.4968, 0.4106, 0.0926],
    ],
    "bp_cat": [
        [0.3104, 0.3381, 0.3515],
        [0.2055, 0.3197, 0.4748],
        [0.2618, 0.2937, 0.4445],
        [0.4723, 0.3309, 0.1968],
    ],
    "diabetes_nr": [
        [0.9112, 0.0888],
        [0.6425, 0.3575],
        [0.5834, 0.4166],
        [0.9581, 0.0419],
    ],
    "dyslipidemia_nr": [
        [0.6614, 0.3386],
        [0.3127, 0.6873],
        [0.4109, 0.5891],
        [0.7345, 0.2655],
    ],
    "polyvascular_nr": [
        [0.9457, 0.0543],
        [0.9215, 0.0785],
        [0.2261, 0.7739],
        [0.9632, 0.0368],
    ],
    "egfr_cat": [
        [0.0715, 0.6342, 0.2137, 0.0806],
        [0.4523, 0.4931, 0.0412, 0.0134],
        [0.0411, 0.4627, 0.2694, 0.2268],
        [0.5512, 0.4231, 0.0201, 0.0056],
    ],
}


@lru_cache(maxsize=None)
def reference_model() -> ModelDefinition:
    """Build (once) and return the validated reference Model Definition."""
    return build_model(REFERENCE_CLASSES, REFERENCE_PRIORS, REFERENCE_TABLES)
