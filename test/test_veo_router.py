# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import os
import sys
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from conftest import FakeCredentials, make_http_response, make_operation
from models.requests import GenerationInputs
from models.veo import VeoClient
from routers import veo_router
from services.asset_fetcher import AssetFetcher
from services.veo_service import VeoSession


@pytest.fixture
def session(config, credentials, genai_client):
    http = MagicMock()
    http.get.return_value = make_http_response(content=b"mp4-data")
    return VeoSession(
        veo_client=VeoClient(
            credentials, config, client_factory=lambda key: genai_client, sleep=lambda s: None
        ),
        fetcher=AssetFetcher(credentials, config, http=http),
        credentials=credentials,
    )


@pytest.fixture
def client(session):
    app = FastAPI()
    app.include_router(veo_router.router)
    app.dependency_overrides[veo_router.get_session] = lambda: session
    return TestClient(app)


def test_generate_runs_in_background(client):
    response = client.post("/api/veo/generate", json={"prompt": "A cat"})

    assert response.status_code == 200
    assert response.json()["phase"] == "loading"

    status = client.get("/api/veo/session").json()
    assert status["phase"] == "success"
    assert status["can_extend"] is True
    assert status["download_filename"] == "veo-studio-a-cat.mp4"


def test_generate_rejects_invalid_inputs(client):
    response = client.post("/api/veo/generate", json={"mode": "i2v", "prompt": "A cat"})

    assert response.status_code == 422
    assert "input image" in response.json()["detail"]
    assert client.get("/api/veo/session").json()["phase"] == "idle"


def test_generate_while_loading_conflicts(client, session):
    session.begin(GenerationInputs(prompt="A dog"))
    response = client.post("/api/veo/generate", json={"prompt": "A cat"})
    assert response.status_code == 409


def test_generate_without_key_is_unauthorized(config, genai_client):
    session = VeoSession(
        veo_client=VeoClient(FakeCredentials(api_key=None), config, client_factory=lambda k: genai_client),
        fetcher=AssetFetcher(FakeCredentials(api_key=None), config, http=MagicMock()),
        credentials=FakeCredentials(api_key=None),
    )
    app = FastAPI()
    app.include_router(veo_router.router)
    app.dependency_overrides[veo_router.get_session] = lambda: session

    response = TestClient(app).post("/api/veo/generate", json={"prompt": "A cat"})

    assert response.status_code == 401


def test_error_then_try_again(client, genai_client):
    genai_client.operations.get.return_value = make_operation(done=True, uris=[])
    client.post("/api/veo/generate", json={"prompt": "A cat", "music_prompt": "jazz"})
    assert client.get("/api/veo/session").json()["phase"] == "error"

    response = client.post("/api/veo/try_again")

    body = response.json()
    assert body["phase"] == "idle"
    assert body["form_prefill"]["music_prompt"] == "jazz"


def test_retry(client, genai_client):
    genai_client.operations.get.return_value = make_operation(done=True, uris=[])
    client.post("/api/veo/generate", json={"prompt": "A cat"})

    genai_client.operations.get.return_value = make_operation(
        done=True, uris=["https://example.com/files/v2"]
    )
    client.post("/api/veo/retry")

    assert client.get("/api/veo/session").json()["phase"] == "success"


def test_extend_and_new(client):
    client.post("/api/veo/generate", json={"prompt": "A cat"})

    body = client.post("/api/veo/extend").json()
    assert body["form_prefill"]["mode"] == "video_extension"
    assert body["form_prefill"]["prompt"] == ""

    body = client.post("/api/veo/new").json()
    assert body["phase"] == "idle"
    assert body["form_prefill"] is None


def test_extend_unavailable_for_1080p(client):
    client.post("/api/veo/generate", json={"prompt": "A cat", "resolution": "1080p"})
    assert client.post("/api/veo/extend").status_code == 409


def test_video_download(client):
    assert client.get("/api/veo/video").status_code == 404

    client.post("/api/veo/generate", json={"prompt": "A cat"})
    response = client.get("/api/veo/video")

    assert response.status_code == 200
    assert response.content == b"mp4-data"
    assert "veo-studio-a-cat.mp4" in response.headers["content-disposition"]


def test_prompt_suggestion(client, genai_client):
    genai_client.models.generate_content.return_value.text = "A fox in the snow."
    assert client.post("/api/veo/prompt_suggestion").json() == {"prompt": "A fox in the snow."}

    genai_client.models.generate_content.side_effect = RuntimeError("boom")
    assert client.post("/api/veo/prompt_suggestion").status_code == 502


def test_media_upload_returns_payload(client):
    response = client.post(
        "/api/veo/media",
        files={"file": ("frame.jpg", b"jpeg-bytes", "image/jpeg")},
    )

    assert response.status_code == 200
    assert response.json()["mime_type"] == "image/jpeg"
    assert response.json()["name"] == "frame.jpg"


def test_empty_media_upload_is_rejected(client):
    response = client.post(
        "/api/veo/media",
        files={"file": ("frame.jpg", b"", "image/jpeg")},
    )
    assert response.status_code == 422


def test_app_includes_veo_routes():
    from main import create_app

    paths = {route.path for route in create_app().routes}
    assert "/api/veo/generate" in paths
    assert "/api/veo/session" in paths
