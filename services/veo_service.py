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

import re
import threading
from typing import Optional

from common.analytics import get_logger, log_session_transition
from common.auth import CredentialProvider
from common.error_handling import (
    AuthorizationProblem,
    CredentialRequiredError,
    DownloadFailedError,
    GenerationError,
    InvalidTransitionError,
    TransportError,
    classify_error,
    user_message_for,
)
from config.veo_models import (
    CANONICAL_MODEL_VERSION,
    CANONICAL_RESOLUTION,
    EXTENDABLE_RESOLUTIONS,
    GenerationMode,
)
from models.request_builder import build_request
from models.requests import GeneratedVideoDescriptor, GenerationInputs, GenerationRequest
from models.veo import VeoClient
from services.asset_fetcher import AssetFetcher, MaterializedVideo
from state.veo_state import Session, SessionPhase, SessionSnapshot

logger = get_logger(__name__)


class VeoSession:
    """Client-side controller for one generation at a time.

    Phases run IDLE -> LOADING -> SUCCESS or ERROR. ``submit`` is rejected
    while a generation is in flight.
    """

    def __init__(
        self,
        veo_client: VeoClient,
        fetcher: AssetFetcher,
        credentials: CredentialProvider,
    ):
        self.veo_client = veo_client
        self.fetcher = fetcher
        self.credentials = credentials
        self.state = Session()
        self._lock = threading.Lock()

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    @property
    def can_extend(self) -> bool:
        state = self.state
        return (
            state.phase == SessionPhase.SUCCESS
            and state.last_request is not None
            and state.last_descriptor is not None
            and state.last_request.resolution in EXTENDABLE_RESOLUTIONS
        )

    @property
    def can_retry_download(self) -> bool:
        return (
            self.state.phase == SessionPhase.ERROR
            and self.state.undelivered_descriptor is not None
        )

    def _transition(self, target: SessionPhase, action: str) -> None:
        source = self.state.phase
        self.state.phase = target
        log_session_transition(self.state.session_id, source.value, target.value, action)

    def _ensure_credential(self) -> None:
        if self.credentials.has_selected_api_key():
            return
        self.credentials.open_select_key()
        if not self.credentials.has_selected_api_key():
            self.state.needs_credential_selection = True
            raise CredentialRequiredError("An API key must be selected before generating.")
        self.state.needs_credential_selection = False

    # Transitions

    def begin(self, inputs: GenerationInputs) -> GenerationRequest:
        """Validates ``inputs`` and moves to LOADING.

        Validation, encoding and credential errors are raised here and leave
        the phase unchanged.
        """
        with self._lock:
            if self.state.phase == SessionPhase.LOADING:
                raise InvalidTransitionError("A video is already being generated.")
            request = build_request(inputs.mode, inputs)
            self._ensure_credential()
            self._start(inputs, request, "submit")
            return request

    def begin_retry(self) -> GenerationRequest:
        """Moves back to LOADING with the last request, unchanged."""
        with self._lock:
            if self.state.phase not in (SessionPhase.ERROR, SessionPhase.SUCCESS):
                raise InvalidTransitionError(f"Cannot retry from {self.state.phase.value}.")
            if self.state.last_request is None:
                raise InvalidTransitionError("There is no previous request to retry.")
            self._ensure_credential()
            request = self.state.last_request
            self._start(self.state.last_inputs, request, "retry")
            return request

    def _start(self, inputs: GenerationInputs, request: GenerationRequest, action: str) -> None:
        self.state.last_inputs = inputs
        self.state.last_request = request
        self.state.error_message = ""
        self.state.undelivered_descriptor = None
        self.state.form_prefill = None
        self.state.needs_credential_selection = False
        self._transition(SessionPhase.LOADING, action)

    def run(self) -> SessionPhase:
        """Generates and downloads the video for the request set by ``begin``."""
        request = self.state.last_request
        try:
            descriptor = self.veo_client.await_completion(
                self.veo_client.submit(request), request
            )
        except Exception as e:
            return self._fail(e)
        return self._deliver(descriptor)

    def submit(self, inputs: GenerationInputs) -> SessionPhase:
        self.begin(inputs)
        return self.run()

    def retry(self) -> SessionPhase:
        """Resubmits the last request unchanged."""
        self.begin_retry()
        return self.run()

    def begin_download_retry(self) -> GeneratedVideoDescriptor:
        with self._lock:
            if not self.can_retry_download:
                raise InvalidTransitionError("There is no finished video to download again.")
            descriptor = self.state.undelivered_descriptor
            self.state.error_message = ""
            self._transition(SessionPhase.LOADING, "retry_download")
            return descriptor

    def run_download(self, descriptor: GeneratedVideoDescriptor) -> SessionPhase:
        return self._deliver(descriptor)

    def retry_download(self) -> SessionPhase:
        """Downloads the finished job's video again without a new generation."""
        return self.run_download(self.begin_download_retry())

    def try_again(self) -> SessionPhase:
        """Goes back to the form with the failed inputs filled in."""
        if self.state.phase != SessionPhase.ERROR:
            raise InvalidTransitionError(f"Cannot try again from {self.state.phase.value}.")
        if self.state.last_inputs is None:
            return self.new_session()
        self.state.form_prefill = self.state.last_inputs.model_copy(deep=True)
        self.state.error_message = ""
        self._transition(SessionPhase.IDLE, "try_again")
        return self.state.phase

    def new_session(self) -> SessionPhase:
        if self.state.phase == SessionPhase.LOADING:
            raise InvalidTransitionError("Cannot start over while a video is being generated.")
        self.fetcher.release(self.state.last_video)
        self.state.last_video = None
        self.state.last_inputs = None
        self.state.last_request = None
        self.state.last_descriptor = None
        self.state.undelivered_descriptor = None
        self.state.error_message = ""
        self.state.form_prefill = None
        self._transition(SessionPhase.IDLE, "new")
        return self.state.phase

    def extend(self) -> GenerationInputs:
        """Prefills an extension of the last video and returns to IDLE.

        Only 720p results can be extended.
        """
        if not self.can_extend:
            raise InvalidTransitionError("The last video cannot be extended.")
        descriptor = self.state.last_descriptor
        prefill = self.state.last_inputs.model_copy(
            update={
                "mode": GenerationMode.EXTEND_VIDEO,
                "prompt": "",
                "music_prompt": "",
                "model_version_id": CANONICAL_MODEL_VERSION,
                "resolution": CANONICAL_RESOLUTION,
                "aspect_ratio": descriptor.aspect_ratio or self.state.last_inputs.aspect_ratio,
                "input_video": descriptor,
                "input_image": None,
                "start_frame": None,
                "end_frame": None,
                "is_looping": False,
                "reference_images": [],
                "style_image": None,
            },
            deep=True,
        )
        self.state.form_prefill = prefill
        self.state.error_message = ""
        self._transition(SessionPhase.IDLE, "extend")
        return prefill

    # Outcomes

    def _deliver(self, descriptor: GeneratedVideoDescriptor) -> SessionPhase:
        try:
            video = self.fetcher.fetch(descriptor)
        except TransportError as e:
            self.state.undelivered_descriptor = descriptor
            return self._fail(DownloadFailedError(e))
        except Exception as e:
            self.state.undelivered_descriptor = descriptor
            return self._fail(e)

        previous = self.state.last_video
        self.state.last_video = video
        self.state.last_descriptor = descriptor
        self.state.undelivered_descriptor = None
        self.state.needs_credential_selection = False
        self.fetcher.release(previous)
        self._transition(SessionPhase.SUCCESS, "complete")
        return self.state.phase

    def _fail(self, error: BaseException) -> SessionPhase:
        classified = classify_error(error)
        if isinstance(error, GenerationError):
            logger.error(f"Video generation failed: {error}")
        else:
            logger.exception(f"Video generation failed unexpectedly: {error}")
        if isinstance(classified, AuthorizationProblem):
            self.state.needs_credential_selection = True
            self.credentials.open_select_key()
        self.state.error_message = user_message_for(classified)
        self._transition(SessionPhase.ERROR, "fail")
        return self.state.phase

    # Presentation helpers

    def download_filename(self) -> str:
        prompt = self.state.last_inputs.prompt if self.state.last_inputs else ""
        slug = re.sub(r"[^a-z0-9]", "-", prompt.lower())[:30] or "video"
        return f"veo-studio-{slug}.mp4"

    def snapshot(self) -> SessionSnapshot:
        video: Optional[MaterializedVideo] = self.state.last_video
        return SessionSnapshot(
            session_id=self.state.session_id,
            phase=self.state.phase,
            error_message=self.state.error_message,
            needs_credential_selection=self.state.needs_credential_selection,
            can_extend=self.can_extend,
            can_retry_download=self.can_retry_download,
            form_prefill=self.state.form_prefill,
            video_url=video.url if video else None,
            video_uri=self.state.last_descriptor.uri if self.state.last_descriptor else None,
            download_filename=self.download_filename() if video else None,
        )
