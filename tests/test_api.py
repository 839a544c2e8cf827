"""Tests for the HTTP API."""

import time

import pytest
from fastapi.testclient import TestClient

from app.main import create_app


@pytest.fixture
def client(settings, store):
    with TestClient(create_app(settings, store)) as client:
        yield client


def wait_for_batch(client, agent_id, batch_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        data = client.get(f"/v1/agents/{agent_id}/knowledge/batches/{batch_id}").json()["data"]
        if not data["open"]:
            return data
        time.sleep(0.02)
    raise AssertionError(f"batch {batch_id} did not finish")


class TestKnowledgeAPI:
    """Test the v1 knowledge endpoints."""

    def test_health_and_types(self, client):
        assert client.get("/health").json()["status"] == "ok"

        data = client.get("/v1/knowledge/types").json()["data"]
        assert "web_page" in data["kinds"]
        assert ".pdf" in data["file_types"]["document_types"]

    def test_submit_and_track_batch(self, client, store):
        response = client.post("/v1/agents/agent-1/knowledge/qa", json={
            "entries": [{"question": "Opening hours?", "answer": "9 to 5"}],
        })
        assert response.status_code == 200
        batch_id = response.json()["data"]["batch_id"]

        batch = wait_for_batch(client, "agent-1", batch_id)

        assert batch["completed"] is True
        assert batch["items"][0]["status"] == "completed"
        knowledge = client.get("/v1/agents/agent-1/knowledge").json()["data"]
        assert knowledge["snapshot"]["count"] == 1
        assert knowledge["stats"]["in_flight"] == 0

    def test_upload_files_splits_documents_and_images(self, client):
        response = client.post("/v1/agents/agent-1/knowledge/files", files=[
            ("files", ("guide.pdf", b"%PDF-1.4 content", "application/pdf")),
            ("files", ("logo.png", b"\x89PNG\r\n", "image/png")),
        ])

        assert response.status_code == 200
        batch_ids = response.json()["data"]["batch_ids"]
        assert len(batch_ids) == 2

        image_batch = wait_for_batch(client, "agent-1", batch_ids[1])
        image = image_batch["items"][0]
        assert image["kind"] == "image"
        assert image["metadata"]["preview"].startswith("data:image/png;base64,")

    def test_upload_rejects_unsupported_file(self, client):
        response = client.post("/v1/agents/agent-1/knowledge/files", files=[
            ("files", ("guide.pdf", b"content", "application/pdf")),
            ("files", ("tool.exe", b"MZ", "application/x-msdownload")),
        ])

        assert response.status_code == 400
        snapshot = client.get("/v1/agents/agent-1/knowledge").json()["data"]["snapshot"]
        assert snapshot["count"] == 0

    def test_duplicate_web_page(self, client):
        body = {"entries": [{"url": "https://example.com/help"}]}
        assert client.post("/v1/agents/agent-1/knowledge/web_page", json=body).status_code == 200

        response = client.post("/v1/agents/agent-1/knowledge/web_page", json=body)

        assert response.status_code == 400

    def test_unknown_kind_and_batch(self, client):
        response = client.post("/v1/agents/agent-1/knowledge/video", json={"entries": [{"url": "x"}]})
        assert response.status_code == 400
        assert client.get("/v1/agents/agent-1/knowledge/batches/batch_missing").status_code == 404

    def test_delete_item(self, client, store):
        batch_id = client.post("/v1/agents/agent-1/knowledge/text", json={
            "entries": [{"content": "Returns are free"}, {"content": "Ships worldwide"}],
        }).json()["data"]["batch_id"]
        items = wait_for_batch(client, "agent-1", batch_id)["items"]

        response = client.delete(f"/v1/agents/agent-1/knowledge/{items[0]['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["saved"] is True
        snapshot = client.get("/v1/agents/agent-1/knowledge").json()["data"]["snapshot"]
        assert [item["id"] for item in snapshot["items"]] == [items[1]["id"]]
        assert client.delete(f"/v1/agents/agent-1/knowledge/{items[0]['id']}").status_code == 404

    def test_import_between_agents(self, client):
        batch_id = client.post("/v1/agents/agent-src/knowledge/text", json={
            "entries": [{"content": "Shared fact"}],
        }).json()["data"]["batch_id"]
        wait_for_batch(client, "agent-src", batch_id)

        response = client.post("/v1/agents/agent-dst/knowledge/import", json={"source_id": "agent-src"})

        assert response.status_code == 200
        assert response.json()["data"]["imported"] == 1
        snapshot = client.get("/v1/agents/agent-dst/knowledge").json()["data"]["snapshot"]
        assert snapshot["items"][0]["display_name"] == "Shared fact"

    def test_import_unknown_source(self, client):
        response = client.post("/v1/agents/agent-dst/knowledge/import", json={"source_id": "ghost"})
        assert response.status_code == 409
