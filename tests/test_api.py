from __future__ import annotations

import sys
import time
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest
from fastapi.testclient import TestClient

from atelier.application import reset_engine_state
from atelier.core.errors import PredictionError

from fakes import ONTOLOGY, FakeCopywriter, FakePredictor, FakeVision, make_engine


@pytest.fixture()
def engine():
    return make_engine(vision=FakeVision(delay=0.05))


@pytest.fixture()
def client(engine):
    from atelier.app import create_app

    app = create_app(engine=engine)
    with TestClient(app) as test_client:
        yield test_client
    reset_engine_state()


def _wait_for(fetch, done, attempts: int = 200):
    for _ in range(attempts):
        payload = fetch()
        if done(payload):
            return payload
        time.sleep(0.01)
    raise AssertionError(f"condition not reached, last payload: {payload}")


def _create_project(client, engine, count: int = 3, activate: bool = True) -> str:
    response = client.post("/api/projects", json={"name": "Resort", "ontologySchema": ONTOLOGY})
    assert response.status_code == 200
    project_id = response.json()["id"]
    assert response.json()["status"] == "draft"

    items = [
        {
            "articleId": f"0{index}1234",
            "productType": "Dress",
            "description": f"Resort dress {index}",
            "velocityScore": 40 + index * 20,
            "articleAttributes": {"colour_group": "Red"},
        }
        for index in range(count)
    ]
    response = client.post(f"/api/projects/{project_id}/context-items", json={"items": items})
    assert response.json() == {"added": count, "skipped": 0}
    for item in items:
        engine.image_store.add_article_image(item["articleId"], b"jpeg")

    if activate:
        response = client.post(f"/api/projects/{project_id}/activate")
        assert response.json()["status"] == "active"
    return project_id


def _enrich(client, project_id: str) -> dict:
    response = client.post(f"/api/projects/{project_id}/start-enrichment")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Enrichment started"}
    return _wait_for(
        lambda: client.get(f"/api/projects/{project_id}/enrichment-status").json(),
        lambda payload: payload["status"] == "completed",
    )


def test_root_endpoint(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["docs"] == "/docs"


def test_enrichment_workflow(client, engine):
    project_id = _create_project(client, engine)

    status = client.get(f"/api/projects/{project_id}/enrichment-status").json()
    assert status["status"] == "idle"
    assert status["progress"] == {"processed": 0, "total": 0}

    final = _enrich(client, project_id)
    assert final["progress"] == {"processed": 3, "total": 3}
    assert final["currentItemId"] is None
    assert final["startedAt"] and final["completedAt"]

    listing = client.get(f"/api/projects/{project_id}/context-items").json()
    assert listing["ontologyAttributes"] == ["color", "sleeve_length"]
    assert listing["enrichment"]["status"] == "completed"
    first = listing["items"][0]
    assert first["enrichmentStatus"] == "enriched"
    assert first["enrichedAttributes"] == {"color": "red", "sleeve_length": "long"}
    assert first["imageUrl"] == "memory://images/articles/00/001234.jpg"

    retry = client.post(f"/api/projects/{project_id}/retry-enrichment", json={})
    assert retry.json() == {"success": True, "message": "No failed items to retry", "queuedCount": 0}


def test_start_enrichment_errors(client, engine):
    assert client.post("/api/projects/missing/start-enrichment").status_code == 404
    assert client.get("/api/projects/missing/enrichment-progress").status_code == 404
    assert client.get("/api/projects/missing/enrichment-status").status_code == 404

    draft = _create_project(client, engine, activate=False)
    response = client.post(f"/api/projects/{draft}/start-enrichment")
    assert response.status_code == 400
    assert response.json()["detail"] == "Project must be active to start enrichment"

    project_id = _create_project(client, engine, count=6)
    assert client.post(f"/api/projects/{project_id}/start-enrichment").status_code == 200
    second = client.post(f"/api/projects/{project_id}/start-enrichment")
    assert second.status_code == 400
    assert "already running" in second.json()["detail"]


def test_predict_and_poll_design(client, engine):
    project_id = _create_project(client, engine, count=3)

    preview = client.get(f"/api/projects/{project_id}/prediction-preview").json()
    assert preview == {"totalCount": 3, "enrichedCount": 0}

    _enrich(client, project_id)
    assert client.get(f"/api/projects/{project_id}/prediction-preview").json()["enrichedCount"] == 3

    response = client.post(
        f"/api/projects/{project_id}/predict",
        json={
            "lockedAttributes": {"article_colour_group": "Red"},
            "aiVariables": ["ontology_Dress_sleeve_length"],
            "successScore": 75,
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["designName"] == "Resort_001"
    assert body["predictedAttributes"] == {"ontology_Dress_sleeve_length": "predicted length"}
    assert body["predictionMetadata"]["contextRowsUsed"] == 3

    design_id = body["designId"]
    status = _wait_for(
        lambda: client.get(f"/api/projects/{project_id}/designs/{design_id}/image-status").json(),
        lambda payload: payload["imageStatus"] == "completed" and payload["salesTextStatus"] == "completed",
    )
    assert status["generatedImageUrl"] == f"memory://images/{design_id}_front.png"
    assert set(status["generatedImages"]) == {"front", "back", "model"}
    assert status["salesText"]

    designs = client.get(f"/api/projects/{project_id}/designs").json()["items"]
    assert [design["designId"] for design in designs] == [design_id]
    assert designs[0]["inputConstraints"] == {"article_colour_group": "Red", "_targetSuccessScore": 75}

    missing = client.get(f"/api/projects/{project_id}/designs/unknown/image-status")
    assert missing.status_code == 404


def test_predict_validation_errors(client, engine):
    project_id = _create_project(client, engine, count=2)

    empty = client.post(f"/api/projects/{project_id}/predict", json={"aiVariables": []})
    assert empty.status_code == 400
    assert empty.json()["detail"] == {
        "error": "At least one AI variable is required",
        "details": "aiVariables array cannot be empty",
    }

    no_context = client.post(
        f"/api/projects/{project_id}/predict",
        json={"aiVariables": ["ontology_Dress_color"]},
    )
    assert no_context.status_code == 400
    assert no_context.json()["detail"]["error"] == "No enriched context items"

    assert client.post("/api/projects/missing/predict", json={"aiVariables": ["x"]}).status_code == 404
    assert client.post(f"/api/projects/{project_id}/context-items", json={"items": []}).status_code == 422


def test_predictor_failures_map_to_bad_gateway():
    from atelier.app import create_app

    engine = make_engine(predictor=FakePredictor(error=PredictionError("No running predictor deployment found")))
    with TestClient(create_app(engine=engine)) as client:
        project_id = _create_project(client, engine, count=2)
        _enrich(client, project_id)

        response = client.post(
            f"/api/projects/{project_id}/predict",
            json={"aiVariables": ["ontology_Dress_color"]},
        )

    assert response.status_code == 502
    assert response.json()["detail"]["details"] == "No running predictor deployment found"
    reset_engine_state()


def test_generate_design_name(client, engine):
    response = client.post(
        "/api/generate-design-name",
        json={
            "productType": "Dress",
            "lockedAttributes": {"article_colour_group": "Red"},
            "predictedAttributes": {"ontology_Dress_sleeve_length": "long"},
        },
    )
    assert response.status_code == 200
    assert response.json() == {"suggestedName": "Midnight Bloom"}

    missing = client.post("/api/generate-design-name", json={"lockedAttributes": {}})
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Product type is required"


def test_generate_design_name_upstream_failure():
    import openai

    from atelier.app import create_app

    engine = make_engine(copywriter=FakeCopywriter(error=openai.OpenAIError("proxy unreachable")))
    with TestClient(create_app(engine=engine)) as client:
        response = client.post("/api/generate-design-name", json={"productType": "Dress"})

    assert response.status_code == 500
    assert response.json()["detail"] == {"error": "Failed to generate name", "details": "proxy unreachable"}
    reset_engine_state()
