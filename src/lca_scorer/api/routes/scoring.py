"""
FastAPI routes for posterior scoring.

Provides endpoints for:
- Inspecting the loaded Model Definition
- Scoring a single record
- Scoring an ordered batch of records
- Certifying the model against externally computed posteriors

Scoring is pure CPU work on a shared read-only model, so the handlers are
plain `def` functions and FastAPI runs them in its thread pool.
"""

import logging

import pandas as pd
from fastapi import APIRouter, Depends, HTTPException, Request

from ...batch import LABEL_COLUMN, ErrorPolicy, score_batch
from ...core.config import Settings, get_settings
from ...models import ModelDefinition, score
from ...schemas import (
    BatchRecordError,
    BatchRecordResult,
    BatchScoreRequest,
    BatchScoreResponse,
    ErrorResponse,
    ModelDefinitionResponse,
    PosteriorResponse,
    ScoreRequest,
    ValidateRequest,
    ValidationResponse,
)
from ...serialization import model_to_dict
from ...validation import compare_posteriors


logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Scoring"],
    responses={
        422: {"model": ErrorResponse, "description": "Record or model rejected by the scorer"},
    },
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_model(request: Request) -> ModelDefinition:
    """The Model Definition loaded at startup."""
    model = getattr(request.app.state, "model", None)
    if model is None:
        raise HTTPException(503, "No model loaded")
    return model


def _client_id(request: BatchScoreRequest, record_id):
    # Without client ids the batch falls back to positions, reported separately
    return record_id if request.record_ids is not None else None


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/model", response_model=ModelDefinitionResponse)
def get_model_definition(model: ModelDefinition = Depends(get_model)):
    """Return the loaded Model Definition in its flat serialized form."""
    return model_to_dict(model)


@router.post("/score", response_model=PosteriorResponse)
def score_record(
    request: ScoreRequest,
    model: ModelDefinition = Depends(get_model),
    settings: Settings = Depends(get_settings),
):
    """
    Score a single record.
    
    Returns the full posterior distribution and the assigned class.
    Malformed records are rejected with 422 and the offending variable.
    """
    result = score(model, request.record, tol=settings.tolerance)
    return PosteriorResponse(**result.as_dict())


@router.post("/score/batch", response_model=BatchScoreResponse)
def score_records(
    request: BatchScoreRequest,
    model: ModelDefinition = Depends(get_model),
    settings: Settings = Depends(get_settings),
):
    """
    Score an ordered batch of records.
    
    Results come back in request order. Under the "collect" policy failing
    records are listed in `errors`; under "abort" the first failure is
    returned as a 422 naming its position and identifier.
    """
    if request.record_ids is not None and len(request.record_ids) != len(request.records):
        raise HTTPException(
            400,
            f"record_ids has {len(request.record_ids)} entries for {len(request.records)} records",
        )
    
    policy = ErrorPolicy(request.error_policy.value if request.error_policy else settings.error_policy)
    # Records stay dicts so a missing key is reported as a missing variable
    result = score_batch(
        model,
        request.records,
        error_policy=policy,
        record_ids=request.record_ids,
        max_workers=settings.max_workers,
        tol=settings.tolerance,
    )
    
    failed = {failure.position for failure in result.errors}
    positions = [p for p in range(result.n_records) if p not in failed]
    results = [
        BatchRecordResult(
            position=position,
            record_id=_client_id(request, record_id),
            posteriors={c: float(row[c]) for c in model.classes},
            assigned_class=row[LABEL_COLUMN],
        )
        for position, (record_id, row) in zip(positions, result.posteriors.iterrows())
    ]
    errors = [
        BatchRecordError(
            position=failure.position,
            record_id=_client_id(request, failure.record_id),
            error_type=failure.error_type,
            error_code=failure.error.error_code,
            message=failure.message,
        )
        for failure in result.errors
    ]
    
    return BatchScoreResponse(
        n_records=result.n_records,
        n_scored=result.n_scored,
        n_failed=result.n_failed,
        results=results,
        errors=errors,
    )


@router.post("/validate", response_model=ValidationResponse)
def validate_model(
    request: ValidateRequest,
    model: ModelDefinition = Depends(get_model),
    settings: Settings = Depends(get_settings),
):
    """
    Certify the loaded model against externally computed posteriors.
    
    Every record must be scorable; the first failure is returned as 422.
    """
    n = len(request.records)
    if len(request.reference_posteriors) != n:
        raise HTTPException(400, f"Expected {n} reference posteriors, got {len(request.reference_posteriors)}")
    if request.reference_labels is not None and len(request.reference_labels) != n:
        raise HTTPException(400, f"Expected {n} reference labels, got {len(request.reference_labels)}")
    
    scored = score_batch(
        model, request.records, error_policy=ErrorPolicy.ABORT, tol=settings.tolerance
    ).posteriors
    
    reference = pd.DataFrame.from_records(request.reference_posteriors)
    missing = [c for c in model.classes if c not in reference.columns]
    if missing:
        raise HTTPException(400, f"Reference posteriors lack classes: {missing}")
    if request.reference_labels is not None:
        reference[LABEL_COLUMN] = request.reference_labels
    
    decimals = request.decimals or settings.certification_decimals
    report = compare_posteriors(scored, reference, model.classes, tol=settings.tolerance)
    logger.info(
        f"Validation of {report.n_records} records: label match {report.label_match_rate:.4%}, "
        f"max |diff| {report.max_abs_difference:.3e}"
    )
    return ValidationResponse(**report.as_dict(decimals))
