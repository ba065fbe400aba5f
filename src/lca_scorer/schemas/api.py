"""
Pydantic schemas for API request/response validation.

These schemas define the contract between clients and the scoring
service. Records travel as plain variable -> level mappings and the model
as its flat serialized form, so no client needs this package installed.
"""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field, ConfigDict


# =============================================================================
# ENUMS
# =============================================================================

class ErrorPolicyEnum(str, Enum):
    """Batch error policy values."""
    ABORT = "abort"
    COLLECT = "collect"


# Levels pass through unconverted: the scorer decides what is a valid level
# (2 and 2.0 are; true, "2" and null are not) and rejects the rest with
# INVALID_LEVEL
LevelValue = Any


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class ScoreRequest(BaseModel):
    """Score a single observation record."""
    record: dict[str, LevelValue] = Field(description="Variable name -> observed level (1-based)")
    
    model_config = ConfigDict(extra="forbid")


class BatchScoreRequest(BaseModel):
    """Score an ordered batch of records."""
    records: list[dict[str, LevelValue]] = Field(description="Records in the order results are returned")
    record_ids: Optional[list[str]] = Field(default=None, description="Optional identifier per record")
    error_policy: Optional[ErrorPolicyEnum] = Field(
        default=None, description="Defaults to the server's configured policy"
    )
    
    model_config = ConfigDict(extra="forbid")


class ValidateRequest(BaseModel):
    """Compare the scorer against externally computed posteriors."""
    records: list[dict[str, LevelValue]] = Field(description="Reference batch of records")
    reference_posteriors: list[dict[str, float]] = Field(
        description="External posterior per record: class name -> probability"
    )
    reference_labels: Optional[list[str]] = Field(
        default=None, description="External assigned class per record, if available"
    )
    decimals: Optional[int] = Field(default=None, ge=1, le=12, description="Required agreement in decimals")
    
    model_config = ConfigDict(extra="forbid")


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class ModelDefinitionResponse(BaseModel):
    """Flat serialized Model Definition."""
    format_version: int
    classes: list[str]
    priors: list[float]
    variables: dict[str, list[list[float]]]


class PosteriorResponse(BaseModel):
    """Posterior distribution and assignment for one record."""
    posteriors: dict[str, float]
    assigned_class: str


class BatchRecordResult(BaseModel):
    """A successfully scored record within a batch."""
    position: int
    record_id: Optional[str] = None
    posteriors: dict[str, float]
    assigned_class: str


class BatchRecordError(BaseModel):
    """A record within a batch that could not be scored."""
    position: int
    record_id: Optional[str] = None
    error_type: str
    error_code: str
    message: str


class BatchScoreResponse(BaseModel):
    """Ordered batch results plus per-record failures."""
    n_records: int
    n_scored: int
    n_failed: int
    results: list[BatchRecordResult]
    errors: list[BatchRecordError]


class ValidationResponse(BaseModel):
    """Certification report."""
    n_records: int
    label_match_rate: float
    max_abs_difference: float
    per_class_max_abs_difference: dict[str, float]
    decimals: int
    passed: bool


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    model_loaded: bool
    n_classes: int
    n_variables: int


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str
    error_code: Optional[str] = None
    detail: Optional[str] = None
    context: Optional[dict[str, Any]] = None
