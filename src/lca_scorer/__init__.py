"""
LCA Posterior Scorer
====================

A standalone scorer that assigns categorical clinical records to a fixed set
of latent classes and reports the posterior probability of every class.

The class model (priors and per-variable conditional probability tables) is
estimated once, offline, and carried as a plain Model Definition. Scoring
reproduces the posterior routine of a fitted Latent Class Analysis without
needing the fitting library or its model object.

Quick Start
-----------
```python
from lca_scorer import reference_model, score, score_batch

model = reference_model()

# One record
result = score(model, {"sex_nr": 1, "age_cat": 2, ...})
result.posteriors, result.assigned_class

# A DataFrame of recoded records, failures collected per record
batch = score_batch(model, frame, error_policy="collect")
batch.posteriors, batch.errors
```

Package Structure
-----------------
- `models`: Model Definition, per-record scorer, vectorized posteriors,
  embedded reference model
- `batch`: Ordered batch scoring with abort/collect error policies
- `validation`: Certification against a reference posterior computation
- `recoding`: Raw clinical fields to factor levels
- `serialization`: Flat JSON form of a Model Definition
- `utils`: Batch summaries and ZIP export
- `api`: FastAPI scoring service
"""

__version__ = "0.1.0"

from .exceptions import (
    LCAScorerError,
    InvalidModelError,
    ModelFormatError,
    RecordError,
    MissingVariableError,
    InvalidLevelError,
    DegenerateLikelihoodError,
    RecodingError,
    CertificationError,
)

from . import models

from .models import (
    ModelDefinition,
    PosteriorResult,
    build_model,
    score,
    reference_model,
)

from .batch import BatchResult, ErrorPolicy, RecordFailure, score_batch
from .validation import ValidationReport, certify_model, compare_posteriors
from .recoding import recode_clinical
from .serialization import load_model, save_model, model_to_dict, model_from_dict

__all__ = [
    # Version
    '__version__',
    # Errors
    'LCAScorerError',
    'InvalidModelError',
    'ModelFormatError',
    'RecordError',
    'MissingVariableError',
    'InvalidLevelError',
    'DegenerateLikelihoodError',
    'RecodingError',
    'CertificationError',
    # Subpackages
    'models',
    # Core
    'ModelDefinition',
    'PosteriorResult',
    'build_model',
    'score',
    'reference_model',
    # Batch
    'BatchResult',
    'ErrorPolicy',
    'RecordFailure',
    'score_batch',
    # Validation
    'ValidationReport',
    'certify_model',
    'compare_posteriors',
    # Surfaces
    'recode_clinical',
    'load_model',
    'save_model',
    'model_to_dict',
    'model_from_dict',
]
