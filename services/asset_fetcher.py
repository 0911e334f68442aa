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

import mimetypes
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from common.analytics import get_logger
from common.auth import CredentialProvider, redact_key
from common.error_handling import CredentialRequiredError, TransportError
from config.default import Default
from models.requests import GeneratedVideoDescriptor

logger = get_logger(__name__)

UNREADABLE_BODY = "Could not read error response body."


@dataclass
class MaterializedVideo:
    """A downloaded video exposed through a local URL."""

    path: Path
    url: str
    mime_type: str
    size_bytes: int
    descriptor: GeneratedVideoDescriptor


class LocalBlobStore:
    """Keeps downloaded blobs on disk and tracks which local URLs are live."""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self._live: Dict[str, Path] = {}

    @property
    def live_urls(self) -> list[str]:
        return list(self._live)

    def create(self, data: bytes, mime_type: str) -> tuple[Path, str]:
        self.directory.mkdir(parents=True, exist_ok=True)
        extension = mimetypes.guess_extension(mime_type) or ".mp4"
        path = self.directory / f"{uuid.uuid4().hex}{extension}"
        path.write_bytes(data)
        url = path.resolve().as_uri()
        self._live[url] = path
        return path, url

    def release(self, url: str) -> None:
        path = self._live.pop(url, None)
        if path is None:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        logger.info(f"Released local video {url}")


def build_download_url(uri: str, api_key: str) -> str:
    """Adds the ``key`` query parameter to the video URI, replacing any existing one."""
    parts = urlsplit(uri)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "key"]
    query.append(("key", api_key))
    return urlunsplit(parts._replace(query=urlencode(query)))


class AssetFetcher:
    """Downloads generated videos and materializes them locally."""

    def __init__(
        self,
        credentials: CredentialProvider,
        config: Default = None,
        http: Optional[requests.Session] = None,
        blob_store: Optional[LocalBlobStore] = None,
    ):
        self.config = config or Default()
        self.credentials = credentials
        self.http = http or requests.Session()
        self.blob_store = blob_store or LocalBlobStore(self.config.MEDIA_CACHE_DIR)

    def fetch(self, descriptor: GeneratedVideoDescriptor) -> MaterializedVideo:
        """Downloads the video behind ``descriptor``.

        The caller owns the returned local URL and must release it through
        ``release``.

        Raises:
            TransportError: if the download does not succeed.
        """
        api_key = self.credentials.get_api_key()
        if not api_key:
            raise CredentialRequiredError("An API key must be selected to download the video.")
        url = build_download_url(descriptor.uri, api_key)
        logger.info(f"Fetching video from: {redact_key(url, api_key)}")

        try:
            response = self.http.get(url, timeout=self.config.VEO_DOWNLOAD_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            logger.error(f"Fetch failed: {e}")
            raise TransportError(None, str(e), f"Failed to fetch video: {e}") from e

        if not response.ok:
            try:
                body = response.text
            except Exception:
                body = UNREADABLE_BODY
            logger.error(f"Fetch failed. Status: {response.status_code} Response Body: {body}")
            raise TransportError(
                response.status_code,
                body,
                f'Failed to fetch video: {response.status_code} {response.reason}. Server said: "{body}"',
            )

        data = response.content
        if not data:
            raise TransportError(response.status_code, "", "Failed to fetch video: empty response body.")
        mime_type = response.headers.get("Content-Type", descriptor.mime_type).split(";")[0]
        path, local_url = self.blob_store.create(data, mime_type)
        logger.info(f"Materialized video at {local_url} ({len(data)} bytes)")
        return MaterializedVideo(
            path=path,
            url=local_url,
            mime_type=mime_type,
            size_bytes=len(data),
            descriptor=descriptor,
        )

    def release(self, video: Optional[MaterializedVideo]) -> None:
        if video is not None:
            self.blob_store.release(video.url)
