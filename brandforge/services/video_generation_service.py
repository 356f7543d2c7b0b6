"""
Video generation service - starts provider jobs and manages generation records.

Client input errors and provider failures raise `VideoGenerationError`
subclasses carrying the HTTP status the route should answer with. Writes
that follow a provider call (the record itself, the linked chat message)
are best-effort: a failed write is logged and never replaces the provider
outcome already in hand.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from brandforge.config import VideoConfig
from brandforge.models import (
    ChatMessage,
    VideoGeneration,
    STATUS_COMPLETE,
    STATUS_ERROR,
    STATUS_GENERATING,
    STATUS_PENDING,
    TERMINAL_STATUSES,
    generate_uuid,
)
from brandforge.providers.base import (
    PROVIDER_COMPLETE,
    PROVIDER_ERROR,
    PROVIDER_PROCESSING,
    PROVIDER_QUEUED,
    VideoGenerationRequest,
    VideoGenerationResult,
)
from brandforge.providers.pricing import lookup_model_cost
from brandforge.providers.registry import ProviderRegistry
from brandforge.services.blob_storage import BlobStore
from brandforge.services.video_key_service import VideoKeyService

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50
CANCELLED_MESSAGE = "Cancelled by user"

# Provider job state -> stored lifecycle state
PROVIDER_TO_DB_STATUS = {
    PROVIDER_QUEUED: STATUS_PENDING,
    PROVIDER_PROCESSING: STATUS_GENERATING,
    PROVIDER_COMPLETE: STATUS_COMPLETE,
}


def map_provider_status(provider_status: str) -> str:
    """Map provider vocabulary onto pending/generating/complete (anything else is pending)."""
    return PROVIDER_TO_DB_STATUS.get(provider_status, STATUS_PENDING)


class VideoGenerationError(Exception):
    """Base error for generation requests. `status_code` is the HTTP answer."""
    status_code = 500

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)


class PromptValidationError(VideoGenerationError):
    status_code = 400


class GenerationNotFoundError(VideoGenerationError):
    status_code = 404


class ProviderUnavailableError(VideoGenerationError):
    status_code = 503


class ProviderCallError(VideoGenerationError):
    status_code = 502


@dataclass
class GenerationStarted:
    """Result of a successful start_generation call."""
    id: str
    status: str  # provider vocabulary
    provider_job_id: str
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "providerJobId": self.provider_job_id,
            "videoUrl": self.video_url,
            "thumbnailUrl": self.thumbnail_url,
        }


class VideoGenerationService:
    """Service for starting video generations and managing their records."""

    def __init__(self, db: AsyncSession, registry: ProviderRegistry, config: VideoConfig):
        self.db = db
        self.registry = registry
        self.config = config

    def validate_prompt(self, prompt) -> str:
        """Return the trimmed prompt or raise PromptValidationError."""
        if not isinstance(prompt, str) or not prompt.strip():
            raise PromptValidationError("Prompt is required")
        if len(prompt) > self.config.max_prompt_length:
            raise PromptValidationError(
                f"Prompt too long (max {self.config.max_prompt_length} characters)"
            )
        return prompt.strip()

    def normalize_duration(self, duration) -> Optional[int]:
        """Durations the provider doesn't accept fall back to its default (None)."""
        if isinstance(duration, bool) or not isinstance(duration, (int, float)):
            return None
        if duration in self.config.valid_durations:
            return int(duration)
        return None

    async def start_generation(
        self,
        user_id: str,
        prompt,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        aspect_ratio: Optional[str] = None,
        duration: Optional[float] = None,
        resolution: Optional[str] = None,
        conversation_id: Optional[str] = None,
        message_id: Optional[str] = None,
        brand_profile_id: Optional[str] = None,
    ) -> GenerationStarted:
        """
        Start a video generation job.

        Raises:
            PromptValidationError: empty or oversized prompt (no provider call is made)
            ProviderUnavailableError: no enabled key, or its provider isn't supported
            ProviderCallError: the provider rejected or failed the request
        """
        prompt = self.validate_prompt(prompt)

        key_service = VideoKeyService(self.db)
        video_key = await key_service.get_enabled_video_key(provider)
        if not video_key:
            raise ProviderUnavailableError("No video generation provider is currently available")

        provider_name = video_key.provider
        video_provider = self.registry.get(provider_name)
        if not video_provider:
            raise ProviderUnavailableError(
                f'Video provider "{provider_name}" is not supported',
                provider=provider_name,
            )

        available = video_provider.get_available_models()
        selected_model = model or (available[0].id if available else self.config.fallback_model)
        video_duration = self.normalize_duration(duration)
        aspect_ratio = aspect_ratio or self.config.default_aspect_ratio
        resolution = resolution or None
        generation_id = generate_uuid()

        api_key = key_service.decrypt(video_key)
        try:
            result = await video_provider.generate_video(
                api_key,
                VideoGenerationRequest(
                    prompt=prompt,
                    model=selected_model,
                    aspect_ratio=aspect_ratio,
                    duration=video_duration,
                    resolution=resolution,
                ),
            )
        except Exception as e:
            logger.exception(f"Video provider {provider_name} raised during generate_video")
            result = VideoGenerationResult(
                provider_job_id="",
                status=PROVIDER_ERROR,
                error=str(e) or "Video generation failed",
            )

        try:
            await key_service.touch(video_key)
        except Exception as e:
            await self.db.rollback()
            logger.warning(f"Failed to record key usage: {e}")

        if result.status == PROVIDER_ERROR:
            error_message = result.error or "Video generation failed"
            logger.warning(
                f"Video generation failed at provider {provider_name}",
                extra={
                    "provider": provider_name,
                    "model": selected_model,
                    "error_message": error_message,
                },
            )
            await self._save(VideoGeneration(
                id=generation_id,
                user_id=user_id,
                message_id=message_id or None,
                conversation_id=conversation_id or None,
                brand_profile_id=brand_profile_id or None,
                prompt=prompt,
                provider=provider_name,
                model=selected_model,
                status=STATUS_ERROR,
                aspect_ratio=aspect_ratio,
                resolution=resolution,
                error=error_message,
                completed_at=datetime.now(timezone.utc),
            ))
            raise ProviderCallError(error_message, provider=provider_name)

        db_status = map_provider_status(result.status)

        cost = 0.0
        if db_status == STATUS_COMPLETE:
            if result.cost is not None:
                cost = result.cost
            else:
                cost = lookup_model_cost(
                    self.registry,
                    provider_name,
                    selected_model,
                    result.duration or video_duration,
                    resolution,
                )

        await self._save(VideoGeneration(
            id=generation_id,
            user_id=user_id,
            message_id=message_id or None,
            conversation_id=conversation_id or None,
            brand_profile_id=brand_profile_id or None,
            prompt=prompt,
            provider=provider_name,
            provider_job_id=result.provider_job_id,
            model=selected_model,
            status=db_status,
            video_url=result.video_url,
            thumbnail_url=result.thumbnail_url,
            aspect_ratio=aspect_ratio,
            resolution=resolution,
            duration_seconds=result.duration or video_duration,
            cost=cost,
            completed_at=datetime.now(timezone.utc) if db_status == STATUS_COMPLETE else None,
        ))

        if result.status == PROVIDER_COMPLETE and result.video_url and message_id and conversation_id:
            await self._mirror_to_message(message_id, conversation_id, result.video_url)

        return GenerationStarted(
            id=generation_id,
            status=result.status,
            provider_job_id=result.provider_job_id,
            video_url=result.video_url,
            thumbnail_url=result.thumbnail_url,
        )

    async def _save(self, generation: VideoGeneration) -> bool:
        """Insert a generation record. Failures are logged, not raised."""
        generation_id = generation.id
        try:
            self.db.add(generation)
            await self.db.commit()
            return True
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to store video generation record {generation_id}: {e}")
            return False

    async def _mirror_to_message(self, message_id: str, conversation_id: str, video_url: str) -> None:
        try:
            await self.db.execute(
                update(ChatMessage)
                .where(ChatMessage.id == message_id, ChatMessage.conversation_id == conversation_id)
                .values(media_status=STATUS_COMPLETE, media_url=video_url, media_type="video")
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.warning(f"Failed to update chat message {message_id} with video: {e}")

    # Gallery operations

    async def get_generation(self, user_id: str, generation_id: str) -> VideoGeneration:
        result = await self.db.execute(
            select(VideoGeneration).where(
                VideoGeneration.id == generation_id,
                VideoGeneration.user_id == user_id,
            )
        )
        generation = result.scalar_one_or_none()
        if not generation:
            raise GenerationNotFoundError("Video generation not found")
        return generation

    async def list_generations(
        self,
        user_id: str,
        status: Optional[str] = None,
        brand_profile_id: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[VideoGeneration], int]:
        """List a user's generations, newest first. Returns (page, total)."""
        limit = max(min(limit, MAX_PAGE_SIZE), 1)
        offset = max(offset, 0)

        filters = [VideoGeneration.user_id == user_id]
        if status:
            filters.append(VideoGeneration.status == status)
        if brand_profile_id:
            filters.append(VideoGeneration.brand_profile_id == brand_profile_id)

        result = await self.db.execute(
            select(VideoGeneration)
            .where(*filters)
            .order_by(VideoGeneration.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        rows = list(result.scalars().all())

        total = await self.db.scalar(
            select(func.count()).select_from(VideoGeneration).where(*filters)
        )
        return rows, total or 0

    async def update_prompt(self, user_id: str, generation_id: str, prompt) -> VideoGeneration:
        generation = await self.get_generation(user_id, generation_id)
        generation.prompt = self.validate_prompt(prompt)
        await self.db.commit()
        return generation

    async def cancel_generation(self, user_id: str, generation_id: str) -> VideoGeneration:
        """
        Mark an in-flight generation as errored.

        Terminal generations are returned unchanged. The provider job itself
        is not cancelled; neither provider offers a cancel endpoint.
        """
        generation = await self.get_generation(user_id, generation_id)
        if generation.status in TERMINAL_STATUSES:
            return generation

        generation.status = STATUS_ERROR
        generation.error = CANCELLED_MESSAGE
        generation.completed_at = datetime.now(timezone.utc)
        await self.db.commit()
        return generation

    async def delete_generation(
        self,
        user_id: str,
        generation_id: str,
        blob_store: Optional[BlobStore] = None,
    ) -> None:
        """Delete a generation, removing its stored video first when possible."""
        generation = await self.get_generation(user_id, generation_id)

        if generation.blob_key and blob_store:
            try:
                await blob_store.delete(generation.blob_key)
            except Exception as e:
                # Continue with the row deletion even if the blob delete fails
                logger.error(f"Failed to delete blob {generation.blob_key}: {e}")

        await self.db.delete(generation)
        await self.db.commit()
