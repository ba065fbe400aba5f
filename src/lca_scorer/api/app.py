"""
FastAPI application setup.

Configures the main application with:
- Model Definition loading (once, at startup)
- CORS middleware
- Exception handlers
- Route registration
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..core.config import get_settings
from ..exceptions import LCAScorerError, RecordError
from ..models import ModelDefinition, reference_model
from ..serialization import load_model
from .routes import scoring_router, health_router


logger = logging.getLogger(__name__)


def load_configured_model() -> ModelDefinition:
    """Load the model named in settings, or the embedded reference model."""
    settings = get_settings()
    if settings.model_path:
        return load_model(settings.model_path, tol=settings.tolerance)
    logger.info("No model_path configured; using the embedded reference model")
    return reference_model()


def create_app(model: Optional[ModelDefinition] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.
    
    Args:
        model: Model Definition to serve. When omitted the configured model
               is loaded during startup; a model that fails validation stops
               the service before it accepts any request.
    """
    settings = get_settings()
    
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        app.state.model = model if model is not None else load_configured_model()
        logger.info(f"Serving {app.state.model!r}")
        
        yield
        
        # Shutdown
        app.state.model = None
    
    app = FastAPI(
        title="LCA Posterior Scoring API",
        description="""
        Scores categorical clinical records against a fixed Latent Class model.
        
        Features:
        - Posterior class membership and arg-max assignment per record
        - Ordered batch scoring with abort or collect error policies
        - Certification against externally computed posteriors
        """,
        version=__version__,
        lifespan=lifespan,
    )
    
    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    # Exception handlers
    @app.exception_handler(LCAScorerError)
    async def scorer_exception_handler(request: Request, exc: LCAScorerError):
        if isinstance(exc, RecordError):
            logger.info(f"Rejected record: {exc}")
        else:
            logger.warning(f"Scoring request failed: {exc}")
        return JSONResponse(
            status_code=422,
            content={
                "error": type(exc).__name__,
                "error_code": exc.error_code,
                "detail": str(exc),
                "context": _jsonable(exc.context),
            }
        )
    
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.api_debug else None,
            }
        )
    
    # Register routes
    app.include_router(health_router)
    app.include_router(scoring_router, prefix="/api/v1")
    
    return app


def _jsonable(context: dict) -> dict:
    """Stringify context values JSON can't carry (numpy scalars, NaN, ...)."""
    out = {}
    for key, value in context.items():
        if isinstance(value, (str, int, bool)) or value is None:
            out[key] = value
        elif isinstance(value, float) and value == value:
            out[key] = value
        elif isinstance(value, (list, tuple)):
            out[key] = [v if isinstance(v, (str, int, bool)) else str(v) for v in value]
        else:
            out[key] = str(value)
    return out


# Application instance
app = create_app()
