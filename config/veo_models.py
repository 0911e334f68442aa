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

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class GenerationMode(str, Enum):
    """Input modes understood by the request builder."""

    TEXT_TO_VIDEO = "t2v"
    IMAGE_TO_VIDEO = "i2v"
    FRAMES_TO_VIDEO = "interpolation"
    REFERENCES_TO_VIDEO = "r2v"
    EXTEND_VIDEO = "video_extension"


class AspectRatio(str, Enum):
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class Resolution(str, Enum):
    P720 = "720p"
    P1080 = "1080p"


@dataclass
class VeoModelConfig:
    """Configuration for a specific VEO model version."""

    version_id: str
    model_name: str
    display_name: str
    supported_modes: List[str]
    supported_aspect_ratios: List[str]
    resolutions: List[str]
    supports_video_extension: bool = False


# This list is the single source of truth for all VEO model configurations.
VEO_MODELS: List[VeoModelConfig] = [
    VeoModelConfig(
        version_id="3.1-fast-preview",
        model_name="veo-3.1-fast-generate-preview",
        display_name="Veo 3.1 Fast",
        supported_modes=["t2v", "i2v", "interpolation"],
        supported_aspect_ratios=["16:9", "9:16"],
        resolutions=["720p", "1080p"],
    ),
    VeoModelConfig(
        version_id="3.1-preview",
        model_name="veo-3.1-generate-preview",
        display_name="Veo 3.1",
        supported_modes=["t2v", "i2v", "interpolation", "r2v", "video_extension"],
        supported_aspect_ratios=["16:9", "9:16"],
        resolutions=["720p", "1080p"],
        supports_video_extension=True,
    ),
]

# Reference-to-video and extension only run on the full model.
CANONICAL_MODEL_VERSION = "3.1-preview"
CANONICAL_ASPECT_RATIO = AspectRatio.LANDSCAPE.value
CANONICAL_RESOLUTION = Resolution.P720.value

# Only the 720p tier can be extended; 1080p results cannot.
EXTENDABLE_RESOLUTIONS = (Resolution.P720.value,)

MAX_REFERENCE_IMAGES = 3


# Helper function to easily find a model's config by its version_id.
def get_veo_model_config(version_id: str) -> Optional[VeoModelConfig]:
    """Finds and returns the configuration for a given VEO model version_id."""
    for model in VEO_MODELS:
        if model.version_id == version_id:
            return model
    return None
