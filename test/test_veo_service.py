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
from pathlib import Path
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from common.error_handling import (
    AUTHORIZATION_FAILURE_MESSAGE,
    DOWNLOAD_FAILURE_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    CredentialRequiredError,
    InvalidTransitionError,
    ValidationError,
)
from config.veo_models import GenerationMode
from conftest import FakeCredentials, make_http_response, make_operation, make_payload
from models.requests import GenerationInputs
from models.veo import VeoClient
from services.asset_fetcher import AssetFetcher
from services.veo_service import VeoSession
from state.veo_state import SessionPhase


@pytest.fixture
def http():
    session = MagicMock()
    session.get.return_value = make_http_response(content=b"mp4-data")
    return session


def _session(config, credentials, genai_client, http):
    return VeoSession(
        veo_client=VeoClient(
            credentials, config, client_factory=lambda key: genai_client, sleep=lambda s: None
        ),
        fetcher=AssetFetcher(credentials, config, http=http),
        credentials=credentials,
    )


@pytest.fixture
def session(config, credentials, genai_client, http):
    return _session(config, credentials, genai_client, http)


def _inputs(**kwargs):
    kwargs.setdefault("prompt", "A cat playing piano")
    return GenerationInputs(**kwargs)


def test_starts_idle(session):
    assert session.phase == SessionPhase.IDLE
    assert session.snapshot().video_url is None


def test_successful_submit(session):
    assert session.submit(_inputs()) == SessionPhase.SUCCESS

    state = session.state
    assert state.last_descriptor.uri.startswith("https://generativelanguage")
    assert Path(state.last_video.path).read_bytes() == b"mp4-data"
    assert state.error_message == ""
    assert session.snapshot().download_filename == "veo-studio-a-cat-playing-piano.mp4"


def test_validation_error_never_enters_loading(session, genai_client):
    with pytest.raises(ValidationError):
        session.submit(GenerationInputs(mode=GenerationMode.IMAGE_TO_VIDEO))

    assert session.phase == SessionPhase.IDLE
    assert session.state.last_request is None
    genai_client.models.generate_videos.assert_not_called()


def test_submit_while_loading_is_rejected(session):
    session.begin(_inputs())
    assert session.phase == SessionPhase.LOADING

    with pytest.raises(InvalidTransitionError):
        session.begin(_inputs())
    with pytest.raises(InvalidTransitionError):
        session.new_session()


def test_remote_failure_moves_to_error(session, genai_client, credentials):
    genai_client.operations.get.return_value = make_operation(done=True, uris=[])

    assert session.submit(_inputs()) == SessionPhase.ERROR
    assert session.state.error_message == GENERIC_FAILURE_MESSAGE
    assert session.state.needs_credential_selection is False
    assert credentials.select_calls == 0


def test_authorization_failure_prompts_for_a_new_key(session, genai_client, credentials):
    genai_client.operations.get.return_value = make_operation(
        done=True, error={"message": "Requested entity was not found."}
    )

    assert session.submit(_inputs()) == SessionPhase.ERROR
    assert session.state.error_message == AUTHORIZATION_FAILURE_MESSAGE
    assert session.state.needs_credential_selection is True
    assert credentials.select_calls == 1


def test_success_after_authorization_failure_clears_key_request(session, genai_client):
    genai_client.operations.get.return_value = make_operation(
        done=True, error={"message": "API key not valid. Please pass a valid API key."}
    )
    assert session.submit(_inputs()) == SessionPhase.ERROR
    assert session.snapshot().needs_credential_selection is True

    genai_client.operations.get.return_value = make_operation(
        done=True, uris=["https://generativelanguage.googleapis.com/v1beta/files/def:download"]
    )
    assert session.submit(_inputs()) == SessionPhase.SUCCESS
    assert session.snapshot().needs_credential_selection is False


def test_unexpected_exception_is_contained(session, genai_client):
    genai_client.models.generate_videos.side_effect = RuntimeError("socket closed")

    assert session.submit(_inputs()) == SessionPhase.ERROR
    assert session.state.error_message == GENERIC_FAILURE_MESSAGE


def test_missing_key_is_requested_before_submitting(config, genai_client, http):
    credentials = FakeCredentials(api_key=None, selectable_key="picked-key")
    session = _session(config, credentials, genai_client, http)

    assert session.submit(_inputs()) == SessionPhase.SUCCESS
    assert credentials.select_calls == 1


def test_submit_is_deferred_until_a_key_is_selected(config, genai_client, http):
    credentials = FakeCredentials(api_key=None)
    session = _session(config, credentials, genai_client, http)

    with pytest.raises(CredentialRequiredError):
        session.submit(_inputs())

    assert session.phase == SessionPhase.IDLE
    assert session.state.needs_credential_selection is True
    genai_client.models.generate_videos.assert_not_called()


def test_invalid_inputs_are_reported_before_asking_for_a_key(config, genai_client, http):
    credentials = FakeCredentials(api_key=None)
    session = _session(config, credentials, genai_client, http)

    with pytest.raises(ValidationError):
        session.submit(GenerationInputs(mode=GenerationMode.IMAGE_TO_VIDEO))

    assert credentials.select_calls == 0
    assert session.phase == SessionPhase.IDLE
    assert session.state.needs_credential_selection is False


def test_retry_resubmits_the_same_request(session, genai_client):
    genai_client.operations.get.return_value = make_operation(done=True, uris=[])
    session.submit(_inputs())
    failed_request = session.state.last_request

    genai_client.operations.get.return_value = make_operation(
        done=True, uris=["https://example.com/files/v2"]
    )
    assert session.retry() == SessionPhase.SUCCESS
    assert session.state.last_request is failed_request
    assert genai_client.models.generate_videos.call_count == 2


def test_retry_from_idle_is_rejected(session):
    with pytest.raises(InvalidTransitionError):
        session.retry()


def test_try_again_restores_inputs_without_submitting(session, genai_client):
    genai_client.operations.get.return_value = make_operation(done=True, uris=[])
    inputs = _inputs(music_prompt="jazz")
    session.submit(inputs)

    assert session.try_again() == SessionPhase.IDLE
    assert session.state.form_prefill == inputs
    assert session.state.error_message == ""
    assert genai_client.models.generate_videos.call_count == 1


def test_try_again_only_from_error(session):
    session.submit(_inputs())
    with pytest.raises(InvalidTransitionError):
        session.try_again()


def test_new_session_clears_everything(session):
    session.submit(_inputs())
    video = session.state.last_video

    assert session.new_session() == SessionPhase.IDLE
    assert session.state.last_video is None
    assert session.state.last_request is None
    assert session.state.last_descriptor is None
    assert session.state.form_prefill is None
    assert not Path(video.path).exists()
    assert session.fetcher.blob_store.live_urls == []


def test_consecutive_successes_keep_one_live_video(session, genai_client):
    session.submit(_inputs())
    first = session.state.last_video

    genai_client.operations.get.return_value = make_operation(
        done=True, uris=["https://example.com/files/v2"]
    )
    session.submit(_inputs(prompt="A dog"))

    assert session.fetcher.blob_store.live_urls == [session.state.last_video.url]
    assert not Path(first.path).exists()


def test_extend_prefills_an_extension_request(session):
    start_frame = make_payload()
    session.submit(
        _inputs(
            mode=GenerationMode.FRAMES_TO_VIDEO,
            aspect_ratio="9:16",
            start_frame=start_frame,
            is_looping=True,
            music_prompt="jazz",
        )
    )
    descriptor = session.state.last_descriptor
    assert session.can_extend

    prefill = session.extend()

    assert session.phase == SessionPhase.IDLE
    assert prefill.mode == GenerationMode.EXTEND_VIDEO
    assert prefill.prompt == ""
    assert prefill.music_prompt == ""
    assert prefill.input_video == descriptor
    assert prefill.resolution == "720p"
    assert prefill.model_version_id == "3.1-preview"
    assert prefill.aspect_ratio == "9:16"
    assert prefill.start_frame is None
    assert prefill.is_looping is False
    assert session.state.form_prefill == prefill
    # The previous video stays available as the form preview.
    assert session.state.last_video is not None


def test_extension_round_trip(session, genai_client):
    session.submit(_inputs())
    prefill = session.extend()

    genai_client.operations.get.return_value = make_operation(
        done=True, uris=["https://example.com/files/extended"]
    )
    assert session.submit(prefill.model_copy(update={"prompt": "The cat bows"})) == SessionPhase.SUCCESS

    args = genai_client.models.generate_videos.call_args.kwargs
    assert args["video"].uri.startswith("https://generativelanguage")
    assert args["config"].aspect_ratio is None
    assert session.fetcher.blob_store.live_urls == [session.state.last_video.url]


def test_1080p_results_cannot_be_extended(session):
    session.submit(_inputs(resolution="1080p"))

    assert session.phase == SessionPhase.SUCCESS
    assert session.can_extend is False
    assert session.snapshot().can_extend is False
    with pytest.raises(InvalidTransitionError):
        session.extend()


def test_failed_download_can_be_retried_without_regenerating(session, genai_client, http):
    http.get.return_value = make_http_response(status_code=500, content=b"", text="oops")

    assert session.submit(_inputs()) == SessionPhase.ERROR
    assert session.state.error_message == DOWNLOAD_FAILURE_MESSAGE
    assert session.can_retry_download

    http.get.return_value = make_http_response(content=b"mp4-data")
    assert session.retry_download() == SessionPhase.SUCCESS
    assert genai_client.models.generate_videos.call_count == 1
    assert session.can_retry_download is False


def test_retry_download_needs_an_undelivered_video(session):
    with pytest.raises(InvalidTransitionError):
        session.retry_download()


def test_download_without_a_key_keeps_the_finished_video(session, genai_client, monkeypatch):
    monkeypatch.setattr(
        session.fetcher,
        "fetch",
        MagicMock(side_effect=CredentialRequiredError("An API key must be selected.")),
    )

    assert session.submit(_inputs()) == SessionPhase.ERROR
    assert session.can_retry_download

    monkeypatch.undo()
    assert session.retry_download() == SessionPhase.SUCCESS
    assert genai_client.models.generate_videos.call_count == 1
    assert session.state.needs_credential_selection is False
