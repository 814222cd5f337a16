import asyncio

import pytest
from fastapi.testclient import TestClient

from intel_pipeline.connectors.registry import ConnectorRegistry
from intel_pipeline.core.run_service import PipelineDefaults, RunService
from intel_pipeline.pipeline.pipeline_data import STATUS_CANCELLED
from intel_pipeline.server import _event_source, create_app


@pytest.fixture
def client(service):
    return TestClient(create_app(service, cors_origins=["http://localhost:5173"]))


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body['status'] == "ok"
    assert body['domains'] == ["REGISTRY", "COURT"]


def test_batch_start_then_poll(client, service):
    response = client.get("/api/dynamic", params={'q': "Acme", 'depth': 1})

    assert response.status_code == 200
    body = response.json()
    assert body['status'] == "processing"
    execution_id = body['execution_id']
    service.wait(execution_id, timeout=10)

    polled = client.get("/api/pipeline", params={'id': execution_id}).json()
    assert polled['success'] is True
    assert polled['data']['total_steps'] == 3
    assert polled['data']['config']['max_depth'] == 1

    steps = client.get("/api/pipeline/steps", params={'pipeline_id': execution_id}).json()
    assert steps['count'] == 3
    assert steps['pipeline_id'] == execution_id

    listing = client.get("/api/pipeline").json()
    assert [run['id'] for run in listing['data']] == [execution_id]


def test_post_accepted(client, service):
    response = client.post("/api/dynamic", params={'q': "Acme", 'execution_id': "fixed-id"})

    assert response.json()['execution_id'] == "fixed-id"
    service.wait("fixed-id", timeout=10)


def test_empty_query_rejected(client):
    response = client.get("/api/dynamic", params={'q': "  "})

    assert response.status_code == 400
    assert response.json()['success'] is False


def test_unknown_id(client):
    response = client.get("/api/pipeline", params={'id': "missing"})

    assert response.status_code == 404
    assert "missing" in response.json()['error']


def test_resume(client, service, registry_connector):
    execution_id = client.get("/api/dynamic", params={'q': "Acme"}).json()['execution_id']
    service.wait(execution_id, timeout=10)
    calls = list(registry_connector.calls)

    response = client.post(f"/api/pipeline/{execution_id}/resume")

    assert response.status_code == 200
    assert service.wait(execution_id, timeout=10).total_steps == 3
    assert registry_connector.calls == calls


def test_stream(client):
    with client.stream("GET", "/api/dynamic", params={'q': "Acme", 'stream': "true"}) as response:
        assert response.status_code == 200
        assert response.headers['content-type'].startswith("text/event-stream")
        body = "".join(response.iter_text())

    assert body.count("event: step\n") == 3
    assert "event: summary\n" in body
    assert body.rstrip().splitlines()[-2] == "event: complete"


class DisconnectingRequest:
    """Stands in for a Starlette request whose client can go away."""

    def __init__(self):
        self.gone = False

    async def is_disconnected(self):
        return self.gone


def test_client_disconnect_cancels_stream(registry_connector, court_connector, store):
    service = RunService(ConnectorRegistry([registry_connector, court_connector]), store,
                         PipelineDefaults(delay_between_steps=5.0,
                                          available_domains=["REGISTRY", "COURT"]))
    stream = service.stream_run("Acme")
    request = DisconnectingRequest()
    chunks = []

    async def consume():
        async for chunk in _event_source(request, stream):
            chunks.append(chunk)
            if chunk.startswith("event: step\n"):
                request.gone = True

    asyncio.run(consume())

    assert stream.cancel_event.is_set()
    assert stream.join(timeout=5)
    assert sum(chunk.startswith("event: step\n") for chunk in chunks) == 1
    assert stream.result.status == STATUS_CANCELLED
    assert court_connector.calls == []


def test_shutdown_closes_service(service, monkeypatch):
    closed = []
    monkeypatch.setattr(service, "close", lambda: closed.append(True))

    with TestClient(create_app(service)) as client:
        assert client.get("/api/health").status_code == 200
        assert closed == []

    assert closed == [True]
