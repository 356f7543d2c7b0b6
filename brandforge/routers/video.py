"""
Video generation API.

Start generations, follow them over SSE, and manage the gallery of past
generations. Every route acts on the calling user's own records only.
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from brandforge.auth import get_current_user
from brandforge.config import VideoConfig
from brandforge.database import get_db, get_session_factory
from brandforge.dependencies import get_blob_store, get_registry, get_video_config
from brandforge.models import User
from brandforge.providers.registry import ProviderRegistry
from brandforge.services.blob_storage import BlobStore
from brandforge.services.video_generation_service import (
    VideoGenerationError,
    VideoGenerationService,
)
from brandforge.services.video_key_service import VideoKeyService
from brandforge.services.video_status_poller import CancellationToken, VideoStatusPoller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/video", tags=["video"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class GenerateVideoRequest(BaseModel):
    """Request body for starting a generation. The prompt is validated by the service."""
    model_config = ConfigDict(populate_by_name=True)

    prompt: Any = None
    model: Optional[str] = None
    provider: Optional[str] = None
    aspect_ratio: Optional[str] = Field(default=None, alias="aspectRatio")
    duration: Any = None
    resolution: Optional[str] = None
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    message_id: Optional[str] = Field(default=None, alias="messageId")
    brand_profile_id: Optional[str] = Field(default=None, alias="brandProfileId")


class UpdateVideoRequest(BaseModel):
    prompt: Any = None


def _service(db: AsyncSession, registry: ProviderRegistry, config: VideoConfig) -> VideoGenerationService:
    return VideoGenerationService(db, registry, config)


def _http_error(e: VideoGenerationError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/generate")
async def generate_video(
    body: GenerateVideoRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    config: VideoConfig = Depends(get_video_config),
):
    """Start a video generation with the first enabled provider key."""
    service = _service(db, registry, config)
    try:
        started = await service.start_generation(
            user_id=user.id,
            prompt=body.prompt,
            model=body.model,
            provider=body.provider,
            aspect_ratio=body.aspect_ratio,
            duration=body.duration,
            resolution=body.resolution,
            conversation_id=body.conversation_id,
            message_id=body.message_id,
            brand_profile_id=body.brand_profile_id,
        )
    except VideoGenerationError as e:
        raise _http_error(e)
    return started.to_dict()


@router.get("")
async def list_videos(
    status: Optional[str] = None,
    brand_profile_id: Optional[str] = Query(default=None, alias="brandProfileId"),
    limit: int = 20,
    offset: int = 0,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    config: VideoConfig = Depends(get_video_config),
):
    """List the caller's generations, newest first."""
    service = _service(db, registry, config)
    limit = max(min(limit, 50), 1)
    offset = max(offset, 0)
    videos, total = await service.list_generations(
        user.id,
        status=status,
        brand_profile_id=brand_profile_id,
        limit=limit,
        offset=offset,
    )
    return {
        "videos": [v.to_dict() for v in videos],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/models")
async def list_models(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
):
    """Models available through every enabled key, deduplicated by id."""
    keys = await VideoKeyService(db).get_all_enabled_video_keys()

    seen = set()
    models = []
    for key in keys:
        for model in VideoKeyService.models_for_key(key, registry):
            if model.id in seen:
                continue
            seen.add(model.id)
            models.append(model.to_dict())

    return {"models": models}


@router.get("/file/{key:path}")
async def get_video_file(
    key: str,
    user: User = Depends(get_current_user),
    blob_store: Optional[BlobStore] = Depends(get_blob_store),
):
    """Serve a stored video. Only keys under the caller's own prefix are readable."""
    if not key.startswith(f"videos/{user.id}/") or blob_store is None:
        raise HTTPException(status_code=404, detail="File not found")

    stored = await blob_store.get(key)
    if stored is None:
        raise HTTPException(status_code=404, detail="File not found")

    body, content_type = stored
    return Response(
        content=body,
        media_type=content_type,
        headers={"Cache-Control": "private, max-age=3600"},
    )


@router.get("/{generation_id}")
async def get_video(
    generation_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    config: VideoConfig = Depends(get_video_config),
):
    service = _service(db, registry, config)
    try:
        generation = await service.get_generation(user.id, generation_id)
    except VideoGenerationError as e:
        raise _http_error(e)
    return generation.to_dict()


@router.patch("/{generation_id}")
async def update_video(
    generation_id: str,
    body: UpdateVideoRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    config: VideoConfig = Depends(get_video_config),
):
    """Update a generation's prompt (its gallery label)."""
    service = _service(db, registry, config)
    try:
        await service.get_generation(user.id, generation_id)
        if body.prompt is None:
            raise HTTPException(status_code=400, detail="No valid fields to update")
        await service.update_prompt(user.id, generation_id, body.prompt)
    except VideoGenerationError as e:
        raise _http_error(e)
    return {"success": True, "id": generation_id}


@router.post("/{generation_id}/cancel")
async def cancel_video(
    generation_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    config: VideoConfig = Depends(get_video_config),
):
    """Stop tracking an in-flight generation. Already finished ones are returned as-is."""
    service = _service(db, registry, config)
    try:
        generation = await service.cancel_generation(user.id, generation_id)
    except VideoGenerationError as e:
        raise _http_error(e)
    return generation.to_dict()


@router.delete("/{generation_id}")
async def delete_video(
    generation_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    config: VideoConfig = Depends(get_video_config),
    blob_store: Optional[BlobStore] = Depends(get_blob_store),
):
    service = _service(db, registry, config)
    try:
        await service.delete_generation(user.id, generation_id, blob_store=blob_store)
    except VideoGenerationError as e:
        raise _http_error(e)
    return {"success": True}


@router.get("/{generation_id}/stream")
async def stream_video_status(
    generation_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
    config: VideoConfig = Depends(get_video_config),
    blob_store: Optional[BlobStore] = Depends(get_blob_store),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """
    Server-sent events with generation progress.

    Finished generations get a single event. Running ones are polled until
    they finish, time out, or the client disconnects.
    """
    service = _service(db, registry, config)
    try:
        generation = await service.get_generation(user.id, generation_id)
    except VideoGenerationError as e:
        raise _http_error(e)

    provider = None
    api_key = None
    if not generation.is_terminal:
        key_service = VideoKeyService(db)
        video_key = await key_service.get_enabled_video_key(generation.provider)
        if not video_key:
            raise HTTPException(status_code=503, detail="Video provider no longer available")
        provider = registry.get(video_key.provider)
        if not provider:
            raise HTTPException(status_code=503, detail="Video provider not supported")
        api_key = key_service.decrypt(video_key)

    poller = VideoStatusPoller(session_factory, registry, config, blob_store)
    token = CancellationToken()

    async def event_stream():
        try:
            async for event in poller.stream(generation, token, provider=provider, api_key=api_key):
                yield event.to_sse()
        finally:
            token.cancel()
            logger.debug(f"Status stream for generation {generation_id} closed")

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)
