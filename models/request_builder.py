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

from common.analytics import get_logger
from common.error_handling import ValidationError
from config.veo_models import (
    CANONICAL_ASPECT_RATIO,
    CANONICAL_MODEL_VERSION,
    CANONICAL_RESOLUTION,
    MAX_REFERENCE_IMAGES,
    GenerationMode,
    get_veo_model_config,
)
from models.requests import (
    ExtendVideoRequest,
    FramesToVideoRequest,
    GenerationInputs,
    GenerationRequest,
    ImageToVideoRequest,
    ReferenceImage,
    ReferencesToVideoRequest,
    TextToVideoRequest,
)

logger = get_logger(__name__)


def assemble_prompt(prompt: str, music_prompt: str) -> str:
    """Joins the visual prompt and the audio direction into the text sent to Veo.

    >>> assemble_prompt("A cat", "jazz")
    'A cat. Audio: jazz'
    """
    parts = []
    if prompt and prompt.strip():
        parts.append(prompt.strip())
    if music_prompt and music_prompt.strip():
        parts.append(f"Audio: {music_prompt.strip()}")
    return ". ".join(parts)


def _check_model_settings(model_version_id: str, mode: GenerationMode, aspect_ratio, resolution):
    model_config = get_veo_model_config(model_version_id)
    if not model_config:
        raise ValidationError(f"Unsupported VEO model version: {model_version_id}")
    if mode.value not in model_config.supported_modes:
        raise ValidationError(
            f"Mode {mode.value} is not supported by model: {model_version_id}"
        )
    if aspect_ratio is not None and aspect_ratio not in model_config.supported_aspect_ratios:
        raise ValidationError(
            f"Aspect ratio {aspect_ratio} is not supported by model: {model_version_id}"
        )
    if resolution not in model_config.resolutions:
        raise ValidationError(
            f"Resolution {resolution} is not supported by model: {model_version_id}"
        )


def build_request(mode: GenerationMode, inputs: GenerationInputs) -> GenerationRequest:
    """Builds the request for ``mode`` from the form inputs.

    Only the fields that belong to the mode are carried over; everything
    else in ``inputs`` is ignored.

    Raises:
        ValidationError: if an input the mode requires is missing.
    """
    try:
        mode = GenerationMode(mode)
    except ValueError as e:
        raise ValidationError(f"Unknown generation mode: {mode}") from e
    prompt = assemble_prompt(inputs.prompt, inputs.music_prompt)
    logger.info(f"Building request. Mode: {mode.value}")

    if mode == GenerationMode.TEXT_TO_VIDEO:
        if not prompt:
            raise ValidationError("A prompt or a music prompt is required.")
        _check_model_settings(inputs.model_version_id, mode, inputs.aspect_ratio, inputs.resolution)
        return TextToVideoRequest(
            prompt=prompt,
            model_version_id=inputs.model_version_id,
            aspect_ratio=inputs.aspect_ratio,
            resolution=inputs.resolution,
        )

    if mode == GenerationMode.IMAGE_TO_VIDEO:
        if inputs.input_image is None:
            raise ValidationError("An input image is required for Image to Video mode.")
        _check_model_settings(inputs.model_version_id, mode, inputs.aspect_ratio, inputs.resolution)
        return ImageToVideoRequest(
            prompt=prompt,
            model_version_id=inputs.model_version_id,
            aspect_ratio=inputs.aspect_ratio,
            resolution=inputs.resolution,
            input_image=inputs.input_image,
        )

    if mode == GenerationMode.FRAMES_TO_VIDEO:
        if inputs.start_frame is None:
            raise ValidationError("A start frame is required.")
        _check_model_settings(inputs.model_version_id, mode, inputs.aspect_ratio, inputs.resolution)
        end_frame = inputs.start_frame if inputs.is_looping else inputs.end_frame
        if inputs.is_looping:
            logger.info("Looping video: using the start frame as the end frame.")
        return FramesToVideoRequest(
            prompt=prompt,
            model_version_id=inputs.model_version_id,
            aspect_ratio=inputs.aspect_ratio,
            resolution=inputs.resolution,
            start_frame=inputs.start_frame,
            end_frame=end_frame,
            is_looping=inputs.is_looping,
        )

    if mode == GenerationMode.REFERENCES_TO_VIDEO:
        if not inputs.reference_images:
            raise ValidationError("At least one reference image is required.")
        if len(inputs.reference_images) > MAX_REFERENCE_IMAGES:
            raise ValidationError(
                f"At most {MAX_REFERENCE_IMAGES} reference images are allowed."
            )
        if not prompt:
            raise ValidationError("Please enter a prompt.")
        references = [
            ReferenceImage(image=img, reference_type="asset")
            for img in inputs.reference_images
        ]
        if inputs.style_image is not None:
            references.append(
                ReferenceImage(image=inputs.style_image, reference_type="style")
            )
        return ReferencesToVideoRequest(
            prompt=prompt,
            model_version_id=CANONICAL_MODEL_VERSION,
            aspect_ratio=CANONICAL_ASPECT_RATIO,
            resolution=CANONICAL_RESOLUTION,
            reference_images=references,
        )

    if mode == GenerationMode.EXTEND_VIDEO:
        if inputs.input_video is None:
            raise ValidationError(
                "An input video from a previous generation is required to extend."
            )
        return ExtendVideoRequest(
            prompt=prompt,
            model_version_id=CANONICAL_MODEL_VERSION,
            resolution=CANONICAL_RESOLUTION,
            input_video=inputs.input_video,
        )

    raise ValidationError(f"Unknown generation mode: {mode}")
