"""
Model definition and posterior scoring for fixed-parameter LCA.

This subpackage holds the inference-time contract of a Latent Class model:

- definition.py: Immutable Model Definition and its validating builder
- scorer.py: Per-record posterior computation and arg-max assignment
- lca.py: Vectorized log-space posterior computation (bulk / reference path)
- reference.py: Embedded four-class cardiovascular reference model
"""

from .definition import (
    DEFAULT_TOLERANCE,
    ModelDefinition,
    build_model,
)

from .scorer import (
    PosteriorResult,
    argmax_with_tiebreak,
    compute_joint_likelihoods,
    score,
)

from .lca import (
    assign_labels,
    compute_log_joint,
    compute_posteriors,
    encode_levels,
    posteriors_frame,
)

from .reference import (
    REFERENCE_CLASSES,
    REFERENCE_PRIORS,
    REFERENCE_TABLES,
    reference_model,
)

__all__ = [
    # Definition
    'DEFAULT_TOLERANCE',
    'ModelDefinition',
    'build_model',
    # Per-record scoring
    'PosteriorResult',
    'argmax_with_tiebreak',
    'compute_joint_likelihoods',
    'score',
    # Vectorized
    'assign_labels',
    'compute_log_joint',
    'compute_posteriors',
    'encode_levels',
    'posteriors_frame',
    # Reference model
    'REFERENCE_CLASSES',
    'REFERENCE_PRIORS',
    'REFERENCE_TABLES',
    'reference_model',
]
