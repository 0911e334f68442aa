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

from __future__ import annotations

import base64
import io
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from common.analytics import get_logger
from common.error_handling import EncodingError
from models.requests import MediaPayload

logger = get_logger(__name__)


@dataclass
class RawMedia:
    """A user-supplied file, either in memory or on disk."""

    name: str
    data: bytes | None = None
    path: str | None = None
    mime_type: str | None = None

    @classmethod
    def from_path(cls, path: str | Path, mime_type: str | None = None) -> "RawMedia":
        path = Path(path)
        return cls(name=path.name, path=str(path), mime_type=mime_type)

    def read(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is None:
            raise EncodingError(f"{self.name} has neither content nor a path.")
        try:
            return Path(self.path).read_bytes()
        except OSError as e:
            raise EncodingError(f"Failed to read {self.name}: {e}") from e


@dataclass
class MediaAsset:
    """An encoded file ready to be placed in a request.

    The base64 form is computed on first access and cached.
    """

    raw_file: RawMedia
    mime_type: str
    content: bytes = field(repr=False, default=b"")
    _encoded: str | None = field(default=None, init=False, repr=False)

    @property
    def encoded_content(self) -> str:
        if self._encoded is None:
            self._encoded = base64.b64encode(self.content).decode("ascii")
        return self._encoded

    def to_payload(self) -> MediaPayload:
        return MediaPayload(
            name=self.raw_file.name,
            mime_type=self.mime_type,
            data=self.encoded_content,
        )


def sniff_mime_type(name: str, content: bytes) -> str | None:
    """Detects the media type from image headers, falling back to the file name."""
    try:
        with Image.open(io.BytesIO(content)) as img:
            if img.format and img.format in Image.MIME:
                return Image.MIME[img.format]
    except (UnidentifiedImageError, OSError):
        pass
    guessed, _ = mimetypes.guess_type(name)
    return guessed


def encode_media(raw_file: RawMedia) -> MediaAsset:
    """Reads and encodes a file.

    Raises:
        EncodingError: if the file cannot be read, is empty or its media
            type cannot be determined.
    """
    content = raw_file.read()
    if not content:
        raise EncodingError(f"Failed to read {raw_file.name}: the file is empty.")

    mime_type = raw_file.mime_type or sniff_mime_type(raw_file.name, content)
    if not mime_type:
        raise EncodingError(f"Could not determine the media type of {raw_file.name}.")

    asset = MediaAsset(raw_file=raw_file, mime_type=mime_type, content=content)
    logger.info(f"Encoded {raw_file.name} ({mime_type}, {len(content)} bytes)")
    return asset
