import pytest
from fastapi.testclient import TestClient

from lca_scorer.api.app import create_app


@pytest.fixture
def client(model):
    with TestClient(create_app(model=model)) as client:
        yield client


@pytest.fixture
def record_rows(reference_records):
    return [
        {k: int(v) for k, v in row.items()}
        for row in reference_records.to_dict(orient="records")
    ]


def test_health(client, model):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["model_loaded"] is True
    assert body["n_classes"] == 4
    assert body["n_variables"] == 9

    assert client.get("/ready").json() == {"ready": True}
    assert client.get("/live").json() == {"alive": True}


def test_get_model(client, model):
    body = client.get("/api/v1/model").json()
    assert body["classes"] == list(model.classes)
    assert body["priors"] == pytest.approx([0.29656, 0.31178, 0.13988, 0.25178])
    assert set(body["variables"]) == set(model.variables)


def test_score_record(client, golden_record, golden_posterior):
    response = client.post("/api/v1/score", json={"record": golden_record})
    assert response.status_code == 200
    body = response.json()
    assert body["assigned_class"] == "young_metabolic"
    for class_name, expected in golden_posterior.items():
        assert body["posteriors"][class_name] == pytest.approx(expected, abs=1e-9)


def test_score_record_missing_variable(client, golden_record):
    del golden_record["smoking_nr"]
    response = client.post("/api/v1/score", json={"record": golden_record})
    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "MISSING_VARIABLE"
    assert body["context"]["variable"] == "smoking_nr"


def test_score_record_invalid_level(client, golden_record):
    golden_record["age_cat"] = 0
    body = client.post("/api/v1/score", json={"record": golden_record}).json()
    assert body["error"] == "InvalidLevelError"
    assert body["context"] == {"variable": "age_cat", "level": 0, "n_levels": 3}


def test_batch_collect(client, record_rows):
    record_rows[1]["egfr_cat"] = 9
    response = client.post(
        "/api/v1/score/batch",
        json={
            "records": record_rows,
            "record_ids": ["p1", "p2", "p3", "p4"],
            "error_policy": "collect",
        },
    )
    assert response.status_code == 200
    body = response.json()

    assert (body["n_records"], body["n_scored"], body["n_failed"]) == (4, 3, 1)
    assert [r["record_id"] for r in body["results"]] == ["p1", "p3", "p4"]
    assert [r["position"] for r in body["results"]] == [0, 2, 3]
    assert [r["assigned_class"] for r in body["results"]] == [
        "young_metabolic",
        "smokers_few_riskfactors",
        "elderly_few_comorbidities",
    ]
    assert body["errors"] == [
        {
            "position": 1,
            "record_id": "p2",
            "error_type": "InvalidLevelError",
            "error_code": "INVALID_LEVEL",
            "message": body["errors"][0]["message"],
        }
    ]


def test_batch_abort(client, record_rows):
    del record_rows[2]["bmi_cat"]
    response = client.post(
        "/api/v1/score/batch", json={"records": record_rows, "error_policy": "abort"}
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "MISSING_VARIABLE"
    assert body["context"]["record_position"] == 2


def test_batch_rejects_misaligned_ids(client, record_rows):
    response = client.post(
        "/api/v1/score/batch", json={"records": record_rows, "record_ids": ["only-one"]}
    )
    assert response.status_code == 400


def test_validate(client, record_rows):
    reference = [
        {
            "elderly_few_comorbidities": 0.3577262969,
            "young_metabolic": 0.5800225534,
            "polyvascular_comorbidity": 0.0465835206,
            "smokers_few_riskfactors": 0.0156676291,
        },
        {
            "elderly_few_comorbidities": 0.0399642277,
            "young_metabolic": 0.0007961754,
            "polyvascular_comorbidity": 0.9592389263,
            "smokers_few_riskfactors": 0.0000006706,
        },
    ]
    response = client.post(
        "/api/v1/validate",
        json={"records": record_rows[:2], "reference_posteriors": reference, "decimals": 6},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["passed"] is True
    assert body["label_match_rate"] == 1.0
    assert body["decimals"] == 6

    reference[0]["young_metabolic"] = 0.58
    body = client.post(
        "/api/v1/validate",
        json={
            "records": record_rows[:2],
            "reference_posteriors": reference,
            "reference_labels": ["young_metabolic", "elderly_few_comorbidities"],
        },
    ).json()
    assert body["passed"] is False
    assert body["label_match_rate"] == 0.5


def test_validate_rejects_misaligned_reference(client, record_rows):
    response = client.post(
        "/api/v1/validate",
        json={"records": record_rows, "reference_posteriors": []},
    )
    assert response.status_code == 400


def test_unknown_fields_rejected(client, golden_record):
    response = client.post("/api/v1/score", json={"record": golden_record, "extra": 1})
    assert response.status_code == 422


@pytest.mark.parametrize("level", [True, "2", None])
def test_score_record_rejects_non_integer_levels(client, golden_record, level):
    golden_record["sex_nr"] = level
    response = client.post("/api/v1/score", json={"record": golden_record})
    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "INVALID_LEVEL"
    assert body["context"]["variable"] == "sex_nr"
    assert body["context"]["level"] == level


def test_batch_abort_names_client_id(client, record_rows):
    record_rows[2]["bmi_cat"] = 4
    response = client.post(
        "/api/v1/score/batch",
        json={
            "records": record_rows,
            "record_ids": ["p1", "p2", "p3", "p4"],
            "error_policy": "abort",
        },
    )
    assert response.status_code == 422
    context = response.json()["context"]
    assert context["record_id"] == "p3"
    assert context["record_position"] == 2


def test_error_schema_documented(client):
    schema = client.get("/openapi.json").json()
    assert "ErrorResponse" in schema["components"]["schemas"]
    responses = schema["paths"]["/api/v1/score"]["post"]["responses"]
    assert responses["422"]["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/ErrorResponse"
    }
