"""
Exception hierarchy for the LCA posterior scorer.

Errors fall into three groups:
- Model errors: the Model Definition itself is malformed. Always fatal,
  the model must not be used for scoring.
- Record errors: a single observation record cannot be scored (missing
  variable, level out of range, zero likelihood). Only that record is
  rejected; batch callers decide whether to abort or continue.
- Surface errors: recoding, serialization and certification failures.
"""

from typing import Any, Dict, List, Optional


class LCAScorerError(Exception):
    """Base exception for all scorer errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._get_default_error_code()
        self.context: Dict[str, Any] = context or {}
        self.suggestions: List[str] = suggestions or []

    def _get_default_error_code(self) -> str:
        return "LCA_SCORER_ERROR"

    def add_context(self, key: str, value: Any) -> "LCAScorerError":
        if key:
            self.context[key] = value
        return self

    def add_suggestion(self, suggestion: str) -> "LCAScorerError":
        if suggestion:
            self.suggestions.append(suggestion)
        return self

    def __str__(self) -> str:
        base = self.message or ""
        if self.suggestions:
            return f"{base} -- Suggestions: {'; '.join(self.suggestions)}"
        return base


# =============================================================================
# MODEL CONSTRUCTION
# =============================================================================

class InvalidModelError(LCAScorerError):
    """Priors or conditional probability tables are malformed."""

    def _get_default_error_code(self) -> str:
        return "INVALID_MODEL"


class ModelFormatError(InvalidModelError):
    """A serialized model could not be parsed into a Model Definition."""

    def _get_default_error_code(self) -> str:
        return "MODEL_FORMAT_ERROR"


# =============================================================================
# PER-RECORD SCORING
# =============================================================================

class RecordError(LCAScorerError):
    """A single observation record could not be scored."""

    def _get_default_error_code(self) -> str:
        return "RECORD_ERROR"


class MissingVariableError(RecordError):
    """The record does not supply a variable the model requires."""

    def __init__(self, variable: str, **kwargs):
        super().__init__(f"Record is missing required variable '{variable}'", **kwargs)
        self.variable = variable
        self.add_context("variable", variable)

    def _get_default_error_code(self) -> str:
        return "MISSING_VARIABLE"


class InvalidLevelError(RecordError):
    """The observed level is not a valid level of the variable."""

    def __init__(self, variable: str, level: Any, n_levels: int, **kwargs):
        super().__init__(
            f"Invalid level {level!r} for variable '{variable}' "
            f"(valid levels are 1..{n_levels})",
            **kwargs,
        )
        self.variable = variable
        self.level = level
        self.n_levels = n_levels
        self.add_context("variable", variable)
        self.add_context("level", level)
        self.add_context("n_levels", n_levels)

    def _get_default_error_code(self) -> str:
        return "INVALID_LEVEL"


class DegenerateLikelihoodError(RecordError):
    """Total likelihood over all classes is zero or not finite."""

    def _get_default_error_code(self) -> str:
        return "DEGENERATE_LIKELIHOOD"


# =============================================================================
# SURFACES
# =============================================================================

class RecodingError(LCAScorerError):
    """Raw clinical fields could not be recoded into factor levels."""

    def _get_default_error_code(self) -> str:
        return "RECODING_ERROR"


class CertificationError(LCAScorerError):
    """A model failed comparison against a reference posterior computation."""

    def __init__(self, message: str, *, report: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.report = report

    def _get_default_error_code(self) -> str:
        return "CERTIFICATION_FAILED"
