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

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from common.error_handling import ValidationError
from config.default import Default
from config.veo_models import (
    CANONICAL_ASPECT_RATIO,
    CANONICAL_MODEL_VERSION,
    MAX_REFERENCE_IMAGES,
    GenerationMode,
)


class MediaPayload(BaseModel):
    """Transport-safe media: base64 content plus its declared type."""

    model_config = ConfigDict(frozen=True)

    name: str
    mime_type: str
    data: str


class GeneratedVideoDescriptor(BaseModel):
    """The terminal result of a successful job.

    The uri doubles as the handle for extending the video.
    """

    model_config = ConfigDict(frozen=True)

    uri: str
    mime_type: str = "video/mp4"
    aspect_ratio: Optional[str] = None
    resolution: Optional[str] = None


class GenerationInputs(BaseModel):
    """
    The form-shaped bag of inputs.
    This is the prefill handed between the session and the presentation
    layer for retry, try-again and extend.
    """

    mode: GenerationMode = GenerationMode.TEXT_TO_VIDEO
    prompt: str = ""
    music_prompt: str = ""
    model_version_id: str = Field(default_factory=lambda: Default().VEO_DEFAULT_MODEL)
    aspect_ratio: str = CANONICAL_ASPECT_RATIO
    resolution: str = "720p"

    # For I2V
    input_image: Optional[MediaPayload] = None

    # For interpolation
    start_frame: Optional[MediaPayload] = None
    end_frame: Optional[MediaPayload] = None
    is_looping: bool = False

    # For R2V
    reference_images: List[MediaPayload] = Field(default_factory=list)
    style_image: Optional[MediaPayload] = None

    # For video extension
    input_video: Optional[GeneratedVideoDescriptor] = None

    def add_reference_image(self, image: MediaPayload) -> None:
        """Appends an asset reference, refusing a fourth one."""
        if len(self.reference_images) >= MAX_REFERENCE_IMAGES:
            raise ValidationError(
                f"At most {MAX_REFERENCE_IMAGES} reference images are allowed."
            )
        self.reference_images.append(image)

    def remove_reference_image(self, index: int) -> None:
        del self.reference_images[index]


class ReferenceImage(BaseModel):
    """Represents a single reference image for the API request."""

    model_config = ConfigDict(frozen=True)

    image: MediaPayload
    reference_type: Literal["asset", "style"]


class _BaseGenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    prompt: str = ""
    model_version_id: str
    resolution: str


class TextToVideoRequest(_BaseGenerationRequest):
    mode: Literal[GenerationMode.TEXT_TO_VIDEO] = GenerationMode.TEXT_TO_VIDEO
    aspect_ratio: str


class ImageToVideoRequest(_BaseGenerationRequest):
    mode: Literal[GenerationMode.IMAGE_TO_VIDEO] = GenerationMode.IMAGE_TO_VIDEO
    aspect_ratio: str
    input_image: MediaPayload


class FramesToVideoRequest(_BaseGenerationRequest):
    mode: Literal[GenerationMode.FRAMES_TO_VIDEO] = GenerationMode.FRAMES_TO_VIDEO
    aspect_ratio: str
    start_frame: MediaPayload
    end_frame: Optional[MediaPayload] = None
    is_looping: bool = False


class ReferencesToVideoRequest(_BaseGenerationRequest):
    mode: Literal[GenerationMode.REFERENCES_TO_VIDEO] = GenerationMode.REFERENCES_TO_VIDEO
    model_version_id: str = CANONICAL_MODEL_VERSION
    aspect_ratio: str = CANONICAL_ASPECT_RATIO
    # Asset references first, then the style reference.
    reference_images: List[ReferenceImage] = Field(
        ..., min_length=1, max_length=MAX_REFERENCE_IMAGES + 1
    )


class ExtendVideoRequest(_BaseGenerationRequest):
    """The service takes the aspect ratio from the source video."""

    mode: Literal[GenerationMode.EXTEND_VIDEO] = GenerationMode.EXTEND_VIDEO
    model_version_id: str = CANONICAL_MODEL_VERSION
    input_video: GeneratedVideoDescriptor

    @property
    def aspect_ratio(self) -> Optional[str]:
        return None


GenerationRequest = Annotated[
    Union[
        TextToVideoRequest,
        ImageToVideoRequest,
        FramesToVideoRequest,
        ReferencesToVideoRequest,
        ExtendVideoRequest,
    ],
    Field(discriminator="mode"),
]
