import asyncio

from fastapi.testclient import TestClient
import pytest

from gallery.api.http_app import build_app
from gallery.roles import validate_role
from gallery.services.bootstrap import build_runtime_container
from gallery.settings import PipelineSettings
from gallery.workers.runner import WorkerRuntimeSettings


@pytest.mark.integration
def test_upload_publish_and_read_back_image() -> None:
    container = build_runtime_container(validate_role("standalone"), settings=PipelineSettings())
    pipeline_loop = next(loop for loop in container.worker_loops if loop.stage == "pipeline")
    # Loops are driven by the test so every step is deterministic.
    app = build_app(role="api", run_id="integration-api", api_deps=container.api_deps)

    with TestClient(app) as client:
        health = client.get("/health")
        assert health.status_code == 200
        assert health.json() == {"status": "ok", "role": "api", "mode": "in-memory"}

        upload = client.put("/images/shots/a.png", content=b"\x89PNG", headers={"content-type": "image/png"})
        assert upload.status_code == 200
        uploaded = upload.json()
        assert uploaded["image_id"] == "shots/a.png"
        assert uploaded["size"] == 4
        assert uploaded["message_id"].startswith("msg_")

        assert client.get("/images/shots/a.png").status_code == 404
        assert asyncio.run(pipeline_loop.run_once()) is True

        record = client.get("/images/shots/a.png")
        assert record.status_code == 200
        assert record.json()["size"] == 4
        assert record.json()["content_type"] == "image/png"
        assert record.json()["status"] == "Unset"
        assert record.json()["upload_time"] is not None

        published = client.post(
            "/messages",
            json={"body": {"id": "shots/a.png", "value": "Sunset"}, "attributes": {"metadata_type": "Caption"}},
        )
        assert published.status_code == 202
        assert published.json()["queue"] == "image-events"

        raw = client.post("/messages", json={"body": '{"id": "shots/a.png", "update": {"status": "Reject"}}'})
        assert raw.status_code == 202

        assert asyncio.run(pipeline_loop.run_once()) is True
        final = client.get("/images/shots/a.png").json()
        assert final["caption"] == "Sunset"
        assert final["status"] == "Reject"
        assert final["reason"] == "No reason provided"


@pytest.mark.integration
def test_publish_rejects_invalid_request_shape() -> None:
    container = build_runtime_container(validate_role("api"), settings=PipelineSettings())
    app = build_app(role="api", run_id="integration-api", api_deps=container.api_deps)

    with TestClient(app) as client:
        response = client.post("/messages", json={"attributes": {"metadata_type": "Caption"}})

    assert response.status_code == 422


@pytest.mark.integration
def test_endpoints_without_dependencies_report_unavailable() -> None:
    app = build_app(role="api", run_id="integration-api")

    with TestClient(app) as client:
        assert client.get("/health").json()["mode"] == "empty"
        assert client.put("/images/a.png", content=b"x").status_code == 503
        assert client.get("/images/a.png").status_code == 503
        assert client.post("/messages", json={"body": "{}"}).status_code == 503


@pytest.mark.integration
def test_ready_reports_every_hosted_worker_loop() -> None:
    container = build_runtime_container(validate_role("standalone"), settings=PipelineSettings())
    app = build_app(
        role="standalone",
        run_id="integration-ready",
        worker_loops=container.worker_loops,
        worker_runtime_settings=WorkerRuntimeSettings(poll_interval_ms=5, idle_backoff_ms=5, error_backoff_ms=5),
        api_deps=container.api_deps,
    )

    with TestClient(app) as client:
        ready = client.get("/ready")

    assert ready.status_code == 200
    payload = ready.json()
    assert payload["worker_loop_enabled"] is True
    assert set(payload["worker_metrics"]) == {"worker-pipeline", "worker-cleanup", "worker-notify"}
    assert payload["worker_metrics"]["worker-cleanup"]["stage"] == "cleanup"


@pytest.mark.integration
def test_ready_without_worker_loops() -> None:
    app = build_app(role="api", run_id="integration-ready")

    with TestClient(app) as client:
        payload = client.get("/ready").json()

    assert payload["worker_loop_enabled"] is False
    assert payload["worker_loop_ready"] is True
    assert payload["worker_metrics"] == {}
