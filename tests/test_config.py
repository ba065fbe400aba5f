import pytest
from pydantic import ValidationError

from lca_scorer.core.config import Settings


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.tolerance == 1e-6
    assert settings.error_policy == "collect"
    assert settings.model_path is None
    assert settings.certification_decimals == 5


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LCA_SCORER_ERROR_POLICY", "abort")
    monkeypatch.setenv("LCA_SCORER_MAX_WORKERS", "4")
    monkeypatch.setenv("LCA_SCORER_CERTIFICATION_DECIMALS", "3")

    settings = Settings(_env_file=None)

    assert settings.error_policy == "abort"
    assert settings.max_workers == 4
    assert settings.certification_decimals == 3


def test_unknown_policy_rejected(monkeypatch):
    monkeypatch.setenv("LCA_SCORER_ERROR_POLICY", "ignore")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
