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
import time
from typing import Callable, Optional

from google import genai
from google.genai import errors, types

from common.analytics import get_logger, track_model_call
from common.auth import CredentialProvider
from common.error_handling import (
    CredentialRequiredError,
    GenerationError,
    PollingTimeoutError,
    RemoteFailure,
    TransportError,
)
from config.default import Default
from config.veo_models import GenerationMode, get_veo_model_config
from models.requests import (
    GeneratedVideoDescriptor,
    GenerationRequest,
    MediaPayload,
)

logger = get_logger(__name__)

PROMPT_SUGGESTION_INSTRUCTION = (
    "Generate a short, creative, and visually descriptive prompt for a video "
    "generation model. The prompt should be a single sentence and not be "
    "enclosed in quotes."
)


REFERENCE_TYPES = {
    "asset": types.VideoGenerationReferenceType.ASSET,
    "style": types.VideoGenerationReferenceType.STYLE,
}


def _to_image(payload: MediaPayload) -> types.Image:
    return types.Image(
        image_bytes=base64.b64decode(payload.data),
        mime_type=payload.mime_type,
    )


def compose_generate_videos_args(request: GenerationRequest) -> dict:
    """Translates a request into keyword arguments for ``generate_videos``."""
    model_config = get_veo_model_config(request.model_version_id)
    if not model_config:
        raise GenerationError(
            f"Unsupported VEO model version: {request.model_version_id}"
        )

    gen_config_args = {
        "number_of_videos": 1,
        "resolution": request.resolution,
    }
    # The service inherits the aspect ratio of the video being extended.
    if request.mode != GenerationMode.EXTEND_VIDEO:
        gen_config_args["aspect_ratio"] = request.aspect_ratio

    image_input = None
    video_input = None

    if request.mode == GenerationMode.IMAGE_TO_VIDEO:
        logger.info(f"Mode: Image-to-Video, image: {request.input_image.name}")
        image_input = _to_image(request.input_image)
    elif request.mode == GenerationMode.FRAMES_TO_VIDEO:
        logger.info(f"Mode: Interpolation, first_frame: {request.start_frame.name}")
        image_input = _to_image(request.start_frame)
        if request.end_frame is not None:
            logger.info(f" last_frame: {request.end_frame.name} (looping={request.is_looping})")
            gen_config_args["last_frame"] = _to_image(request.end_frame)
    elif request.mode == GenerationMode.REFERENCES_TO_VIDEO:
        logger.info(f"Mode: Reference-to-Video (r2v), {len(request.reference_images)} references")
        gen_config_args["reference_images"] = [
            types.VideoGenerationReferenceImage(
                image=_to_image(ref.image),
                reference_type=REFERENCE_TYPES[ref.reference_type],
            )
            for ref in request.reference_images
        ]
    elif request.mode == GenerationMode.EXTEND_VIDEO:
        if not model_config.supports_video_extension:
            raise GenerationError(
                f"Video extension is not supported by model: {request.model_version_id}"
            )
        logger.info(f"Mode: Video Extension, video_input: {request.input_video.uri}")
        video_input = types.Video(
            uri=request.input_video.uri,
            mime_type=request.input_video.mime_type,
        )
    else:
        logger.info("Mode: Text-to-Video")

    args = {
        "model": model_config.model_name,
        "config": types.GenerateVideosConfig(**gen_config_args),
    }
    if request.prompt:
        args["prompt"] = request.prompt
    if image_input is not None:
        args["image"] = image_input
    if video_input is not None:
        args["video"] = video_input
    return args


class VeoClient:
    """Submits Veo jobs and polls them to completion.

    ``sleep`` and ``client_factory`` are injectable so the polling loop can
    be driven without real waits or network access.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        config: Default = None,
        client_factory: Callable[[str], genai.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or Default()
        self.credentials = credentials
        self.client_factory = client_factory or (lambda api_key: genai.Client(api_key=api_key))
        self.sleep = sleep
        self.poll_interval = self.config.VEO_POLL_INTERVAL_SECONDS
        self.max_poll_attempts = self.config.VEO_MAX_POLL_ATTEMPTS

    def _client(self) -> genai.Client:
        # A fresh client per call picks up a newly selected key.
        api_key = self.credentials.get_api_key()
        if not api_key:
            raise CredentialRequiredError("An API key must be selected before generating.")
        return self.client_factory(api_key)

    def submit(self, request: GenerationRequest) -> types.GenerateVideosOperation:
        """Starts the job and returns its operation handle."""
        args = compose_generate_videos_args(request)
        logger.info(f"Calling generate_videos with model: {args['model']}")
        logger.info(f"Config: {args['config']}")
        try:
            with track_model_call(
                model_name=args["model"],
                prompt_length=len(request.prompt),
                resolution=request.resolution,
                mode=request.mode.value,
            ):
                operation = self._client().models.generate_videos(**args)
        except errors.APIError as e:
            logger.error(f"Failed to start Veo job: {e}")
            raise TransportError(e.code, e.message or str(e)) from e
        logger.info(f"Video generation operation started: {operation.name}")
        return operation

    def await_completion(
        self,
        operation: types.GenerateVideosOperation,
        request: Optional[GenerationRequest] = None,
    ) -> GeneratedVideoDescriptor:
        """Polls the operation until it is done and returns the first video.

        Raises:
            RemoteFailure: if the job failed, was filtered or produced nothing.
            PollingTimeoutError: if the job is still running after
                ``max_poll_attempts`` status checks.
            TransportError: if a status query fails.
        """
        client = self._client()
        attempts = 0
        logger.info("Polling video generation operation...")
        while not operation.done:
            if attempts >= self.max_poll_attempts:
                raise PollingTimeoutError(attempts)
            self.sleep(self.poll_interval)
            attempts += 1
            try:
                operation = client.operations.get(operation)
            except errors.APIError as e:
                logger.error(f"Polling failed: {e}")
                raise TransportError(e.code, e.message or str(e)) from e
            logger.info(f"Operation in progress: {operation.name} (check {attempts})")

        return self._descriptor_from(operation, request)

    def _descriptor_from(self, operation, request) -> GeneratedVideoDescriptor:
        if operation.error:
            error_details = str(operation.error)
            logger.info(f"Video generation failed with error: {error_details}")
            raise RemoteFailure(f"API Error: {error_details}")

        result = operation.response
        if not result:
            raise RemoteFailure("No videos generated.")

        if getattr(result, "rai_media_filtered_count", None):
            reasons = result.rai_media_filtered_reasons or ["unspecified"]
            raise RemoteFailure(f"Content Filtered: {reasons[0]}")

        videos = result.generated_videos
        if not videos:
            raise RemoteFailure("No videos were generated.")

        video = videos[0].video
        if video is None or not video.uri:
            raise RemoteFailure("Generated video is missing a URI.")

        aspect_ratio = None
        resolution = None
        if request is not None:
            resolution = request.resolution
            if request.mode == GenerationMode.EXTEND_VIDEO:
                aspect_ratio = request.input_video.aspect_ratio
            else:
                aspect_ratio = request.aspect_ratio
        logger.info(f"Successfully generated video: {video.uri}")
        return GeneratedVideoDescriptor(
            uri=video.uri,
            mime_type=video.mime_type or "video/mp4",
            aspect_ratio=aspect_ratio,
            resolution=resolution,
        )

    def suggest_prompt(self) -> str:
        """Asks Gemini for a one-sentence video prompt."""
        model = self.config.PROMPT_SUGGESTION_MODEL
        try:
            with track_model_call(model_name=model):
                response = self._client().models.generate_content(
                    model=model,
                    contents=PROMPT_SUGGESTION_INSTRUCTION,
                )
            return response.text.strip()
        except Exception as e:
            logger.error(f"Failed to generate prompt: {e}")
            raise GenerationError("Could not generate a prompt. Please try again.") from e


def generate_video(client: VeoClient, request: GenerationRequest) -> GeneratedVideoDescriptor:
    """Submits ``request`` and waits for its video."""
    operation = client.submit(request)
    return client.await_completion(operation, request)
