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

import os
import tempfile
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv(override=True)


@dataclass
class Default:
    """Defaults class"""

    # Gemini API credential; API_KEY is accepted as a fallback
    GEMINI_API_KEY: str = os.environ.get(
        "GEMINI_API_KEY", os.environ.get("API_KEY", "")
    )

    # Veo
    VEO_DEFAULT_MODEL: str = os.environ.get("VEO_DEFAULT_MODEL", "3.1-fast-preview")
    VEO_POLL_INTERVAL_SECONDS: float = float(
        os.environ.get("VEO_POLL_INTERVAL_SECONDS", "10")
    )
    VEO_MAX_POLL_ATTEMPTS: int = int(os.environ.get("VEO_MAX_POLL_ATTEMPTS", "60"))
    VEO_DOWNLOAD_TIMEOUT_SECONDS: float = float(
        os.environ.get("VEO_DOWNLOAD_TIMEOUT_SECONDS", "300")
    )

    # Gemini
    PROMPT_SUGGESTION_MODEL: str = os.environ.get(
        "PROMPT_SUGGESTION_MODEL", "gemini-2.5-flash-lite"
    )

    # Local storage for downloaded videos
    MEDIA_CACHE_DIR: str = os.environ.get(
        "MEDIA_CACHE_DIR", os.path.join(tempfile.gettempdir(), "veo-studio")
    )

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
