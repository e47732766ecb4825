"""
HTTP tests for the persona API, with the Gemini client swapped for a fake.
"""

import pytest
from fastapi.testclient import TestClient

import app as persona_app
from conftest import PNG_BYTES, SOURCE_IMAGE, FakeModelFactory, make_part, make_response
from gemini_service import TransformationClient, TransformationResult


@pytest.fixture
def api(client):
    persona_app.app.dependency_overrides[persona_app.get_transformation_client] = lambda: client
    yield TestClient(persona_app.app)
    persona_app.app.dependency_overrides.clear()
    persona_app.sessions.clear()


def use_client(transformation_client):
    persona_app.app.dependency_overrides[persona_app.get_transformation_client] = lambda: transformation_client


def new_session(api):
    response = api.post("/sessions")
    assert response.status_code == 201
    return response.json()["id"]


def upload(api, session_id, content_type="image/jpeg"):
    return api.post(
        f"/sessions/{session_id}/image",
        files={"file": ("portrait.jpg", b"\x00\x00\x00", content_type)},
    )


class ResettingClient:
    """Resets the session while its render is in flight, as a second browser tab would."""

    def __init__(self, session_id):
        self.session_id = session_id

    def ensure_configured(self):
        return "key"

    async def transform(self, source_image, prompt):
        persona_app.sessions.get(self.session_id).reset()
        return TransformationResult.ok("data:image/png;base64,BBBB")


class TestStatelessEndpoints:

    def test_options(self, api):
        body = api.get("/options").json()

        assert body["defaults"]["cameraAngle"] == "eye_level"
        assert {"value": "smile", "label": "Warm Smile"} in body["options"]["expression"]

    def test_prompt_preview(self, api):
        response = api.post("/prompt", json={"outfit": "dress", "background": "paris", "expression": "smile"})

        assert response.status_code == 200
        assert "professional power dress" in response.json()["prompt"]
        assert response.json()["filename"] == "persona-paris-smile.png"

    def test_prompt_rejects_unknown_value(self, api):
        assert api.post("/prompt", json={"outfit": "tuxedo"}).status_code == 422

    def test_generate_returns_image_bytes(self, api):
        response = api.post("/generate", json={"personImage": SOURCE_IMAGE, "config": {"background": "ny"}})

        assert response.status_code == 200
        assert response.content == PNG_BYTES
        assert response.headers["content-type"] == "image/png"
        assert "persona-ny-natural.png" in response.headers["content-disposition"]

    def test_generate_names_download_after_result_mime_type(self, api):
        use_client(TransformationClient(
            api_key="k",
            model_factory=FakeModelFactory(response=make_response([make_part(mime_type="image/jpeg", data=b"\xff\xd8\xff")])),
        ))

        response = api.post("/generate", json={"personImage": SOURCE_IMAGE, "config": {"background": "tokyo"}})

        assert response.status_code == 200
        assert response.content == b"\xff\xd8\xff"
        assert response.headers["content-type"] == "image/jpeg"
        assert "persona-tokyo-natural.jpg" in response.headers["content-disposition"]

    def test_generate_empty_result(self, api):
        use_client(TransformationClient(
            api_key="k",
            model_factory=FakeModelFactory(response=make_response([make_part(text="no")])),
        ))

        response = api.post("/generate", json={"personImage": SOURCE_IMAGE})

        assert response.status_code == 502
        assert response.json()["detail"] == "No image data returned from the model."


class TestSessionFlow:

    def test_full_flow(self, api):
        session_id = new_session(api)

        patched = api.patch(f"/sessions/{session_id}/config", json={"outfit": "coat", "colorPalette": "analogous"})
        assert patched.status_code == 200
        assert "executive wool coat" in patched.json()["prompt"]
        assert patched.json()["config"]["colorPalette"] == "analogous"

        uploaded = upload(api, session_id)
        assert uploaded.json()["state"]["original"] == SOURCE_IMAGE
        assert uploaded.json()["phase"] == "idle"

        rendered = api.post(f"/sessions/{session_id}/render")
        assert rendered.status_code == 200
        assert rendered.json()["phase"] == "success"
        assert rendered.json()["state"]["transformed"] == "data:image/png;base64,BBBB"

        download = api.get(f"/sessions/{session_id}/download")
        assert download.content == PNG_BYTES
        assert 'filename="persona-berlin-natural.png"' in download.headers["content-disposition"]

        reset = api.post(f"/sessions/{session_id}/reset")
        assert reset.json()["phase"] == "idle"
        assert reset.json()["config"]["outfit"] == "suit"
        assert api.get(f"/sessions/{session_id}/download").status_code == 404

    def test_non_image_upload_rejected(self, api):
        session_id = new_session(api)

        response = upload(api, session_id, content_type="application/pdf")

        assert response.status_code == 400
        assert response.json()["detail"] == "Please upload a valid image file."
        assert api.get(f"/sessions/{session_id}").json()["state"]["error"] == "Please upload a valid image file."

    def test_render_without_image_conflicts(self, api):
        session_id = new_session(api)

        assert api.post(f"/sessions/{session_id}/render").status_code == 409

    def test_render_without_credentials(self, api, no_credentials):
        factory = FakeModelFactory()
        use_client(TransformationClient(model_factory=factory))
        session_id = new_session(api)
        upload(api, session_id)

        response = api.post(f"/sessions/{session_id}/render")

        assert response.status_code == 500
        assert response.json()["detail"] == "API Key not found in environment."
        assert factory.calls == []

    def test_render_transport_failure(self, api):
        use_client(TransformationClient(api_key="k", model_factory=FakeModelFactory(error=RuntimeError("boom"))))
        session_id = new_session(api)
        upload(api, session_id)

        response = api.post(f"/sessions/{session_id}/render")

        assert response.status_code == 502
        assert response.json()["detail"] == "boom"
        assert api.get(f"/sessions/{session_id}").json()["phase"] == "error"

    def test_unknown_session(self, api):
        assert api.get("/sessions/missing").status_code == 404

    def test_delete_session(self, api):
        session_id = new_session(api)

        assert api.delete(f"/sessions/{session_id}").status_code == 204
        assert api.get(f"/sessions/{session_id}").status_code == 404

    def test_render_superseded_in_flight(self, api):
        session_id = new_session(api)
        upload(api, session_id)
        use_client(ResettingClient(session_id))

        response = api.post(f"/sessions/{session_id}/render")

        assert response.status_code == 409
        assert response.json()["detail"] == "Render was superseded by a newer request."
        state = api.get(f"/sessions/{session_id}").json()
        assert state["phase"] == "idle"
        assert state["state"]["transformed"] is None

    def test_oversized_upload_rejected(self, api, monkeypatch):
        monkeypatch.setattr(persona_app, "MAX_UPLOAD_BYTES", 2)
        session_id = new_session(api)

        response = upload(api, session_id)

        assert response.status_code == 413
        assert api.get(f"/sessions/{session_id}").json()["state"]["original"] is None

    def test_least_recently_used_session_evicted(self, api, monkeypatch):
        monkeypatch.setattr(persona_app.sessions, "max_sessions", 2)
        first, second = new_session(api), new_session(api)

        assert api.get(f"/sessions/{first}").status_code == 200
        third = new_session(api)

        assert api.get(f"/sessions/{second}").status_code == 404
        assert api.get(f"/sessions/{first}").status_code == 200
        assert api.get(f"/sessions/{third}").status_code == 200
        assert len(persona_app.sessions) == 2
