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

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse

from common.auth import EnvironmentCredentialProvider
from common.error_handling import (
    CredentialRequiredError,
    EncodingError,
    GenerationError,
    InvalidTransitionError,
    ValidationError,
)
from common.media import RawMedia, encode_media
from config.default import Default
from models.requests import GenerationInputs, MediaPayload
from models.veo import VeoClient
from services.asset_fetcher import AssetFetcher
from services.veo_service import VeoSession
from state.veo_state import SessionSnapshot

router = APIRouter(prefix="/api/veo", tags=["veo"])

_session: VeoSession = None


def create_session(config: Default = None) -> VeoSession:
    config = config or Default()
    credentials = EnvironmentCredentialProvider(config)
    return VeoSession(
        veo_client=VeoClient(credentials, config),
        fetcher=AssetFetcher(credentials, config),
        credentials=credentials,
    )


def get_session() -> VeoSession:
    """One session per application instance."""
    global _session
    if _session is None:
        _session = create_session()
    return _session


def _raise_http(error: GenerationError):
    if isinstance(error, CredentialRequiredError):
        raise HTTPException(status_code=401, detail=error.message) from error
    if isinstance(error, (ValidationError, EncodingError)):
        raise HTTPException(status_code=422, detail=error.message) from error
    if isinstance(error, InvalidTransitionError):
        raise HTTPException(status_code=409, detail=error.message) from error
    raise HTTPException(status_code=500, detail=error.message) from error


@router.post("/generate", response_model=SessionSnapshot)
async def generate(
    inputs: GenerationInputs,
    background_tasks: BackgroundTasks,
    session: VeoSession = Depends(get_session),
):
    """
    Validates the inputs and starts generation in the background.
    Poll GET /session for the outcome.
    """
    try:
        session.begin(inputs)
    except GenerationError as e:
        _raise_http(e)
    background_tasks.add_task(session.run)
    return session.snapshot()


@router.get("/session", response_model=SessionSnapshot)
async def get_session_status(session: VeoSession = Depends(get_session)):
    return session.snapshot()


@router.post("/retry", response_model=SessionSnapshot)
async def retry(background_tasks: BackgroundTasks, session: VeoSession = Depends(get_session)):
    try:
        session.begin_retry()
    except GenerationError as e:
        _raise_http(e)
    background_tasks.add_task(session.run)
    return session.snapshot()


@router.post("/retry_download", response_model=SessionSnapshot)
async def retry_download(background_tasks: BackgroundTasks, session: VeoSession = Depends(get_session)):
    try:
        descriptor = session.begin_download_retry()
    except GenerationError as e:
        _raise_http(e)
    background_tasks.add_task(session.run_download, descriptor)
    return session.snapshot()


@router.post("/try_again", response_model=SessionSnapshot)
async def try_again(session: VeoSession = Depends(get_session)):
    try:
        session.try_again()
    except GenerationError as e:
        _raise_http(e)
    return session.snapshot()


@router.post("/new", response_model=SessionSnapshot)
async def new_video(session: VeoSession = Depends(get_session)):
    try:
        session.new_session()
    except GenerationError as e:
        _raise_http(e)
    return session.snapshot()


@router.post("/extend", response_model=SessionSnapshot)
async def extend(session: VeoSession = Depends(get_session)):
    try:
        session.extend()
    except GenerationError as e:
        _raise_http(e)
    return session.snapshot()


@router.get("/video")
async def download_video(session: VeoSession = Depends(get_session)):
    video = session.state.last_video
    if video is None:
        raise HTTPException(status_code=404, detail="No video has been generated.")
    return FileResponse(
        video.path,
        media_type=video.mime_type,
        filename=session.download_filename(),
    )


@router.post("/prompt_suggestion")
def prompt_suggestion(session: VeoSession = Depends(get_session)):
    try:
        return {"prompt": session.veo_client.suggest_prompt()}
    except GenerationError as e:
        raise HTTPException(status_code=502, detail=e.message) from e


@router.post("/media", response_model=MediaPayload)
async def upload_media(file: UploadFile = File(...)):
    """
    Encodes an uploaded image or video for use in GenerationInputs.
    """
    data = await file.read()
    raw = RawMedia(name=file.filename or "upload", data=data, mime_type=file.content_type)
    try:
        return encode_media(raw).to_payload()
    except EncodingError as e:
        raise HTTPException(status_code=422, detail=e.message) from e
