"""Pydantic schemas for API validation."""

from .api import (
    # Enums
    ErrorPolicyEnum,
    # Request schemas
    ScoreRequest,
    BatchScoreRequest,
    ValidateRequest,
    # Response schemas
    ModelDefinitionResponse,
    PosteriorResponse,
    BatchRecordResult,
    BatchRecordError,
    BatchScoreResponse,
    ValidationResponse,
    HealthResponse,
    ErrorResponse,
)

__all__ = [
    "ErrorPolicyEnum",
    "ScoreRequest",
    "BatchScoreRequest",
    "ValidateRequest",
    "ModelDefinitionResponse",
    "PosteriorResponse",
    "BatchRecordResult",
    "BatchRecordError",
    "BatchScoreResponse",
    "ValidationResponse",
    "HealthResponse",
    "ErrorResponse",
]
