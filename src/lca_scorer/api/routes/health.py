"""
Health check endpoints for monitoring.
"""

from fastapi import APIRouter, Request

from ... import __version__
from ...schemas import HealthResponse


router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.
    
    Reports whether a Model Definition is loaded and its dimensions.
    """
    model = getattr(request.app.state, "model", None)
    
    return HealthResponse(
        status="healthy" if model is not None else "degraded",
        version=__version__,
        model_loaded=model is not None,
        n_classes=model.n_classes if model is not None else 0,
        n_variables=len(model.variables) if model is not None else 0,
    )


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness check for Kubernetes.
    
    Returns ready only once the model has been loaded and validated.
    """
    return {"ready": getattr(request.app.state, "model", None) is not None}


@router.get("/live")
async def liveness_check():
    """
    Liveness check for Kubernetes.
    
    Returns 200 if the service is alive.
    """
    return {"alive": True}
