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

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import uuid

from pydantic import BaseModel

from models.requests import (
    GeneratedVideoDescriptor,
    GenerationInputs,
    GenerationRequest,
)
from services.asset_fetcher import MaterializedVideo


class SessionPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class Session:
    """Session State"""

    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    phase: SessionPhase = SessionPhase.IDLE

    # The form inputs and the request built from them.
    last_inputs: Optional[GenerationInputs] = None
    last_request: Optional[GenerationRequest] = None

    last_descriptor: Optional[GeneratedVideoDescriptor] = None
    last_video: Optional[MaterializedVideo] = None
    # Set when the job succeeded but the download did not.
    undelivered_descriptor: Optional[GeneratedVideoDescriptor] = None

    error_message: str = ""
    needs_credential_selection: bool = False

    # Initial values for the presentation layer's form.
    form_prefill: Optional[GenerationInputs] = None


class SessionSnapshot(BaseModel):
    """Serializable view of a session for the HTTP surface."""

    session_id: str
    phase: SessionPhase
    error_message: str = ""
    needs_credential_selection: bool = False
    can_extend: bool = False
    can_retry_download: bool = False
    form_prefill: Optional[GenerationInputs] = None
    video_url: Optional[str] = None
    video_uri: Optional[str] = None
    download_filename: Optional[str] = None
