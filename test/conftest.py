# Copyright 2025 Google LLC
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

import base64
import os
import sys
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

# Setup sys.path to allow imports from the parent directory.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from common.auth import CredentialProvider
from config.default import Default
from models.requests import MediaPayload


class FakeCredentials(CredentialProvider):
    """Credential provider whose key selection can be scripted."""

    def __init__(self, api_key="test-key", selectable_key=None):
        self.api_key = api_key
        self.selectable_key = selectable_key
        self.select_calls = 0

    def get_api_key(self):
        return self.api_key

    def open_select_key(self):
        self.select_calls += 1
        if self.selectable_key:
            self.api_key = self.selectable_key


def make_payload(name="frame.png", data=b"png-bytes", mime_type="image/png"):
    return MediaPayload(
        name=name, mime_type=mime_type, data=base64.b64encode(data).decode("ascii")
    )


def make_operation(done, uris=None, error=None, filtered_reasons=None, name="operations/veo-1"):
    """Builds an object shaped like a GenerateVideosOperation."""
    response = None
    if uris is not None or filtered_reasons:
        response = SimpleNamespace(
            generated_videos=[
                SimpleNamespace(video=SimpleNamespace(uri=uri, mime_type="video/mp4"))
                for uri in (uris or [])
            ],
            rai_media_filtered_count=len(filtered_reasons or []),
            rai_media_filtered_reasons=filtered_reasons,
        )
    return SimpleNamespace(name=name, done=done, error=error, response=response)


def make_http_response(status_code=200, content=b"video-bytes", text="", reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = reason
    response.content = content
    response.text = text
    response.headers = {"Content-Type": "video/mp4"}
    return response


@pytest.fixture
def config(tmp_path):
    return Default(
        GEMINI_API_KEY="test-key",
        VEO_POLL_INTERVAL_SECONDS=10,
        VEO_MAX_POLL_ATTEMPTS=5,
        MEDIA_CACHE_DIR=str(tmp_path / "media"),
    )


@pytest.fixture
def credentials():
    return FakeCredentials()


@pytest.fixture
def genai_client():
    """A stand-in for genai.Client; operations resolve on the first poll."""
    client = MagicMock()
    client.models.generate_videos.return_value = make_operation(done=False)
    client.operations.get.return_value = make_operation(
        done=True, uris=["https://generativelanguage.googleapis.com/v1beta/files/abc:download?alt=media"]
    )
    return client


@pytest.fixture
def sleeps():
    return []
