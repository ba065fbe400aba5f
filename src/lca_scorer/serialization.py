"""
Flat, human-inspectable serialization of a Model Definition.

The serialized form carries only plain lists and numbers:

    {
        "format_version": 1,
        "classes": ["class_a", "class_b"],
        "priors": [0.6, 0.4],
        "variables": {
            "sex_nr": [[0.55, 0.45],     # row = class (in "classes" order)
                       [0.70, 0.30]]     # column = level 1..L
        }
    }

so a model can be embedded in source, written to a file, or sent over the
wire. Loading always goes back through `build_model`, so a file that
violates the probability invariants is rejected exactly like a hardcoded
model would be.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

from .exceptions import ModelFormatError
from .models.definition import DEFAULT_TOLERANCE, ModelDefinition, build_model


logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def model_to_dict(model: ModelDefinition) -> Dict[str, Any]:
    """Convert a Model Definition to plain Python lists and floats."""
    return {
        "format_version": FORMAT_VERSION,
        "classes": list(model.classes),
        "priors": model.priors.tolist(),
        "variables": {v: model.tables[v].tolist() for v in model.variables},
    }


def model_from_dict(payload: Dict[str, Any], tol: float = DEFAULT_TOLERANCE) -> ModelDefinition:
    """
    Rebuild a Model Definition from its flat form.

    Raises:
        ModelFormatError: required keys are missing or have the wrong shape
        InvalidModelError: the numbers violate the probability invariants
    """
    if not isinstance(payload, dict):
        raise ModelFormatError(f"Expected a JSON object, got {type(payload).__name__}")

    version = payload.get("format_version", FORMAT_VERSION)
    if version != FORMAT_VERSION:
        raise ModelFormatError(f"Unsupported model format version {version!r}")

    missing = [key for key in ("classes", "priors", "variables") if key not in payload]
    if missing:
        raise ModelFormatError(f"Serialized model is missing keys: {missing}")
    if not isinstance(payload["variables"], dict):
        raise ModelFormatError("'variables' must map variable names to class-by-level matrices")

    return build_model(payload["classes"], payload["priors"], payload["variables"], tol=tol)


def model_to_json(model: ModelDefinition, indent: int = 2) -> str:
    return json.dumps(model_to_dict(model), indent=indent)


def model_from_json(text: str, tol: float = DEFAULT_TOLERANCE) -> ModelDefinition:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ModelFormatError(f"Model file is not valid JSON: {e}") from e
    return model_from_dict(payload, tol=tol)


def save_model(model: ModelDefinition, path: Union[str, Path]) -> Path:
    """Write a Model Definition to a JSON file and return the path."""
    path = Path(path)
    path.write_text(model_to_json(model), encoding="utf-8")
    logger.info(f"Saved model with {model.n_classes} classes to {path}")
    return path


def load_model(path: Union[str, Path], tol: float = DEFAULT_TOLERANCE) -> ModelDefinition:
    """Load and validate a Model Definition from a JSON file."""
    path = Path(path)
    model = model_from_json(path.read_text(encoding="utf-8"), tol=tol)
    logger.info(f"Loaded model with {model.n_classes} classes from {path}")
    return model
