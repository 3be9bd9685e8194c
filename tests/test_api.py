"""End-to-end tests for the wizard HTTP API with a fake extractor."""

import json
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent))

from gemini_client import ExtractionConfigError
from main import app


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def extractor():
    """Replace the real extraction client for the duration of a test."""
    fake = MagicMock(return_value={"title": "Report", "tags": ["a", "b"]})
    app.state.extractor = fake
    return fake


def _session(client: TestClient) -> str:
    resp = client.post("/api/v1/sessions")
    assert resp.status_code == 201
    return resp.json()["id"]


def _upload(client: TestClient, sid: str, name="report.pdf", body=b"%PDF-1.4", mime="application/pdf"):
    return client.put(f"/api/v1/sessions/{sid}/file", files={"file": (name, body, mime)})


def _schema_step_with_report_fields(client: TestClient) -> str:
    """Session on step 2 with fields title:STRING and tags:LIST_OF_STRING."""
    sid = _session(client)
    _upload(client, sid)
    client.post(f"/api/v1/sessions/{sid}/continue")

    fields = client.get(f"/api/v1/sessions/{sid}").json()["fields"]
    client.patch(
        f"/api/v1/sessions/{sid}/fields/{fields[1]['id']}",
        json={"key": "tags", "type": "LIST_OF_STRING", "description": "Topic tags"},
    )
    return sid


class TestSessions:
    def test_new_session(self, client):
        resp = client.post("/api/v1/sessions")
        body = resp.json()
        assert body["step"] == 1
        assert body["status"] == "idle"
        assert body["file"] is None
        assert [f["key"] for f in body["fields"]] == ["title", "summary"]

    def test_unknown_session(self, client):
        resp = client.get("/api/v1/sessions/does-not-exist")
        assert resp.status_code == 404

    def test_delete_session(self, client):
        sid = _session(client)
        assert client.delete(f"/api/v1/sessions/{sid}").status_code == 204
        assert client.get(f"/api/v1/sessions/{sid}").status_code == 404


class TestUpload:
    def test_continue_requires_file(self, client):
        sid = _session(client)
        resp = client.post(f"/api/v1/sessions/{sid}/continue")
        assert resp.status_code == 409

        _upload(client, sid)
        resp = client.post(f"/api/v1/sessions/{sid}/continue")
        assert resp.status_code == 200
        assert resp.json()["step"] == 2

    def test_upload_view_has_no_payload(self, client):
        sid = _session(client)
        body = _upload(client, sid).json()
        assert body["file"] == {"name": "report.pdf", "type": "application/pdf", "is_image": False, "size": 8}
        assert body["step"] == 1

    def test_empty_upload(self, client):
        sid = _session(client)
        resp = _upload(client, sid, body=b"")
        assert resp.status_code == 400

    def test_unsupported_upload(self, client):
        sid = _session(client)
        resp = _upload(client, sid, name="a.zip", body=b"PK", mime="application/zip")
        assert resp.status_code == 415

    def test_clear_file(self, client):
        sid = _session(client)
        _upload(client, sid)
        body = client.delete(f"/api/v1/sessions/{sid}/file").json()
        assert body["file"] is None
        assert body["can_continue"] is False


class TestFields:
    def test_add_update_remove(self, client):
        sid = _session(client)
        field = client.post(f"/api/v1/sessions/{sid}/fields").json()
        assert field["type"] == "STRING"
        assert field["key"] == ""

        updated = client.patch(
            f"/api/v1/sessions/{sid}/fields/{field['id']}",
            json={"key": "total", "type": "NUMBER"},
        ).json()
        assert updated["key"] == "total"
        assert updated["type"] == "NUMBER"

        body = client.delete(f"/api/v1/sessions/{sid}/fields/{field['id']}").json()
        assert [f["key"] for f in body["fields"]] == ["title", "summary"]

    def test_unknown_field(self, client):
        sid = _session(client)
        resp = client.delete(f"/api/v1/sessions/{sid}/fields/nope")
        assert resp.status_code == 404

    def test_invalid_type(self, client):
        sid = _session(client)
        field_id = client.get(f"/api/v1/sessions/{sid}").json()["fields"][0]["id"]
        resp = client.patch(f"/api/v1/sessions/{sid}/fields/{field_id}", json={"type": "DATE"})
        assert resp.status_code == 422


class TestExtraction:
    def test_extract_and_export(self, client, extractor):
        sid = _schema_step_with_report_fields(client)

        body = client.post(f"/api/v1/sessions/{sid}/extract").json()
        assert body["status"] == "success"
        assert body["step"] == 3
        assert body["result"] == {"title": "Report", "tags": ["a", "b"]}
        extractor.assert_called_once()

        resp = client.get(f"/api/v1/sessions/{sid}/export/txt")
        assert resp.text == "title: Report\ntags: a, b"
        assert resp.headers["content-disposition"] == 'attachment; filename="extracted_data.txt"'

        resp = client.get(f"/api/v1/sessions/{sid}/export/csv")
        assert resp.text == 'title,tags\n"Report","a; b"'
        assert resp.headers["content-type"].startswith("text/csv")

        resp = client.get(f"/api/v1/sessions/{sid}/export/json")
        assert json.loads(resp.text) == {"title": "Report", "tags": ["a", "b"]}
        assert 'filename="extracted_data.json"' in resp.headers["content-disposition"]

    def test_clipboard(self, client, extractor):
        sid = _schema_step_with_report_fields(client)
        client.post(f"/api/v1/sessions/{sid}/extract")
        resp = client.get(f"/api/v1/sessions/{sid}/clipboard")
        assert resp.text == '{\n  "title": "Report",\n  "tags": [\n    "a",\n    "b"\n  ]\n}'

    def test_sentinel_result_reaches_results(self, client, extractor):
        extractor.return_value = {"error": "Failed to parse JSON response", "raw": "not json"}
        sid = _schema_step_with_report_fields(client)

        body = client.post(f"/api/v1/sessions/{sid}/extract").json()
        assert body["step"] == 3
        assert body["result"] == {"error": "Failed to parse JSON response", "raw": "not json"}

    def test_configuration_error_shown_on_schema_step(self, client, extractor):
        extractor.side_effect = ExtractionConfigError("API Key is missing in environment variables.")
        sid = _schema_step_with_report_fields(client)

        resp = client.post(f"/api/v1/sessions/{sid}/extract")
        body = resp.json()
        assert resp.status_code == 200
        assert body["step"] == 2
        assert body["status"] == "error"
        assert body["error"] == "API Key is missing in environment variables."

    def test_real_client_without_credential(self, client):
        sid = _schema_step_with_report_fields(client)
        app.state.gemini_client._api_key = ""

        body = client.post(f"/api/v1/sessions/{sid}/extract").json()
        assert body["status"] == "error"
        assert body["step"] == 2
        assert "API Key is missing" in body["error"]

    def test_extract_rejected_from_upload_step(self, client, extractor):
        sid = _session(client)
        resp = client.post(f"/api/v1/sessions/{sid}/extract")
        assert resp.status_code == 409
        extractor.assert_not_called()

    def test_duplicate_keys_rejected(self, client, extractor):
        sid = _schema_step_with_report_fields(client)
        field = client.post(f"/api/v1/sessions/{sid}/fields").json()
        client.patch(f"/api/v1/sessions/{sid}/fields/{field['id']}", json={"key": "title"})

        assert client.get(f"/api/v1/sessions/{sid}").json()["can_extract"] is False
        resp = client.post(f"/api/v1/sessions/{sid}/extract")
        assert resp.status_code == 409
        extractor.assert_not_called()

    def test_export_before_result(self, client):
        sid = _session(client)
        assert client.get(f"/api/v1/sessions/{sid}/export/json").status_code == 409
        assert client.get(f"/api/v1/sessions/{sid}/clipboard").status_code == 409

    def test_unknown_export_format(self, client, extractor):
        sid = _schema_step_with_report_fields(client)
        client.post(f"/api/v1/sessions/{sid}/extract")
        assert client.get(f"/api/v1/sessions/{sid}/export/xml").status_code == 422


class TestNavigationAndReset:
    def test_back_and_forward_keep_result(self, client, extractor):
        sid = _schema_step_with_report_fields(client)
        client.post(f"/api/v1/sessions/{sid}/extract")

        body = client.post(f"/api/v1/sessions/{sid}/back").json()
        assert body["step"] == 2
        assert body["result"] is not None
        assert body["can_continue"] is True

        body = client.post(f"/api/v1/sessions/{sid}/continue").json()
        assert body["step"] == 3
        extractor.assert_called_once()

    def test_reset(self, client, extractor):
        sid = _schema_step_with_report_fields(client)
        client.post(f"/api/v1/sessions/{sid}/extract")

        body = client.post(f"/api/v1/sessions/{sid}/reset").json()
        assert body["step"] == 1
        assert body["status"] == "idle"
        assert body["file"] is None
        assert body["result"] is None
        assert body["error"] is None
        # Field list survives a reset
        assert [f["key"] for f in body["fields"]] == ["title", "tags"]


class TestHealth:
    def test_health(self, client):
        app.state.gemini_client._api_key = ""
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["extraction_configured"] is False
        assert "extraction_service" not in body
