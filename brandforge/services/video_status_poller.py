"""
Video generation status poller.

Drives one generation from pending/generating to a terminal state by
polling its provider, yielding a `StatusEvent` per attempt for the SSE
route to relay:

- A generation that is already terminal yields one event and stops, with
  no provider call.
- Otherwise the provider is queried immediately and then every
  `poll_interval_seconds`, at most `poll_max_attempts` times.
- A query that raises yields an advisory "processing" event and polling
  continues.
- A terminal answer is persisted (record, linked chat message, optional
  copy into blob storage) before the final event is yielded.
- Running out of attempts yields a synthetic "timed out" error event.

Waiting goes through a `CancellationToken`. The route cancels it when the
client disconnects, which ends the loop at its next suspension point.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker

from brandforge.config import VideoConfig
from brandforge.models import (
    ChatMessage,
    VideoGeneration,
    STATUS_COMPLETE,
    STATUS_ERROR,
    TERMINAL_STATUSES,
)
from brandforge.providers.base import (
    PROVIDER_COMPLETE,
    PROVIDER_ERROR,
    PROVIDER_PROCESSING,
    VideoProvider,
    VideoStatusResult,
)
from brandforge.providers.pricing import lookup_model_cost
from brandforge.providers.registry import ProviderRegistry
from brandforge.services.blob_storage import BlobStore, blob_file_url, video_blob_key

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Video generation timed out"
TRANSIENT_ERROR_MESSAGE = "Temporary polling error"


class CancellationToken:
    """Cooperative cancellation for the polling loop."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> bool:
        """Wait up to `seconds`. Returns True if cancelled before or during the wait."""
        if seconds <= 0:
            await asyncio.sleep(0)
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True


@dataclass
class StatusEvent:
    """One progress update relayed to the client."""
    status: str
    progress: int = 0
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[float] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (PROVIDER_COMPLETE, PROVIDER_ERROR)

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "progress": self.progress,
            "videoUrl": self.video_url,
            "thumbnailUrl": self.thumbnail_url,
            "duration": self.duration,
            "error": self.error,
        }

    def to_sse(self) -> str:
        return f"data: {json.dumps(self.to_dict())}\n\n"


@dataclass
class _Target:
    """The fields of a generation the poller needs, copied off the ORM row."""
    id: str
    user_id: str
    provider_job_id: Optional[str]
    provider: str
    model: Optional[str]
    resolution: Optional[str]
    duration_seconds: Optional[float]
    message_id: Optional[str]
    conversation_id: Optional[str]


class VideoStatusPoller:
    """Polls a provider for one generation and persists its terminal state."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        registry: ProviderRegistry,
        config: VideoConfig,
        blob_store: Optional[BlobStore] = None,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.config = config
        self.blob_store = blob_store

    @staticmethod
    def stored_event(generation: VideoGeneration) -> StatusEvent:
        """The single event sent for a generation that is already terminal."""
        return StatusEvent(
            status=generation.status,
            progress=100 if generation.status == STATUS_COMPLETE else 0,
            video_url=generation.video_url,
            thumbnail_url=generation.thumbnail_url,
            duration=generation.duration_seconds,
            error=generation.error,
        )

    async def stream(
        self,
        generation: VideoGeneration,
        token: CancellationToken,
        provider: Optional[VideoProvider] = None,
        api_key: Optional[str] = None,
    ) -> AsyncIterator[StatusEvent]:
        """Yield status events until the generation is terminal, times out, or is cancelled."""
        if generation.status in TERMINAL_STATUSES:
            yield self.stored_event(generation)
            return

        if provider is None or api_key is None:
            raise ValueError("A provider and API key are required to poll a running generation")

        target = _Target(
            id=generation.id,
            user_id=generation.user_id,
            provider_job_id=generation.provider_job_id,
            provider=generation.provider,
            model=generation.model,
            resolution=generation.resolution,
            duration_seconds=generation.duration_seconds,
            message_id=generation.message_id,
            conversation_id=generation.conversation_id,
        )

        for attempt in range(1, self.config.poll_max_attempts + 1):
            if token.cancelled:
                logger.debug(f"Polling for generation {target.id} cancelled before attempt {attempt}")
                return

            try:
                status = await provider.get_status(api_key, target.provider_job_id)
            except Exception as e:
                logger.warning(f"Poll error for generation {target.id} (attempt {attempt}): {e}")
                yield StatusEvent(status=PROVIDER_PROCESSING, progress=0, error=TRANSIENT_ERROR_MESSAGE)
            else:
                event = StatusEvent(
                    status=status.status,
                    progress=status.progress or 0,
                    video_url=status.video_url,
                    thumbnail_url=status.thumbnail_url,
                    duration=status.duration,
                    error=status.error,
                )
                if event.is_terminal:
                    event.video_url = await self._finalize(target, status, provider, api_key)
                    yield event
                    return
                yield event

            if attempt < self.config.poll_max_attempts and await token.sleep(self.config.poll_interval_seconds):
                logger.debug(f"Polling for generation {target.id} cancelled after attempt {attempt}")
                return

        logger.warning(
            f"Generation {target.id} not finished after {self.config.poll_max_attempts} polls"
        )
        if self.config.mark_timeout_as_error:
            await self._mark_timed_out(target)
        yield StatusEvent(status=PROVIDER_ERROR, progress=0, error=TIMEOUT_MESSAGE)

    async def _finalize(
        self,
        target: _Target,
        status: VideoStatusResult,
        provider: VideoProvider,
        api_key: str,
    ) -> Optional[str]:
        """
        Persist a terminal provider answer. Every write is best-effort.

        Returns the video URL the client should use (the blob-served URL when
        the video was copied into storage, else the provider URL).
        """
        now = datetime.now(timezone.utc)

        if status.status == PROVIDER_COMPLETE:
            duration = status.duration or target.duration_seconds
            if status.cost is not None:
                cost = status.cost
            else:
                cost = lookup_model_cost(self.registry, target.provider, target.model or "", duration, target.resolution)
            values = {
                "status": STATUS_COMPLETE,
                "video_url": status.video_url,
                "thumbnail_url": status.thumbnail_url,
                "duration_seconds": duration,
                "cost": cost,
                "completed_at": now,
            }
        else:
            values = {
                "status": STATUS_ERROR,
                "error": status.error or "Unknown error",
                "completed_at": now,
            }

        try:
            transitioned = await self._transition(target.id, values)
        except Exception as e:
            logger.error(f"Failed to update generation record {target.id}: {e}")
            return status.video_url

        if not transitioned:
            # Cancelled, or another poller got there first
            logger.info(f"Generation {target.id} was already terminal; skipping follow-up writes")
            return status.video_url

        if target.message_id:
            await self._mirror_to_message(target, status)

        if status.status == PROVIDER_COMPLETE and status.video_url and self.blob_store:
            return await self._relocate(target, status.video_url, provider, api_key)

        return status.video_url

    async def _transition(self, generation_id: str, values: dict) -> bool:
        """Apply a terminal update unless the row is already terminal. Returns whether it applied."""
        async with self.session_factory() as session:
            result = await session.execute(
                update(VideoGeneration)
                .where(
                    VideoGeneration.id == generation_id,
                    VideoGeneration.status.not_in(TERMINAL_STATUSES),
                )
                .values(**values)
            )
            await session.commit()
            return result.rowcount > 0

    async def _mirror_to_message(self, target: _Target, status: VideoStatusResult) -> None:
        try:
            async with self.session_factory() as session:
                if status.status == PROVIDER_COMPLETE:
                    if not target.conversation_id:
                        return
                    await session.execute(
                        update(ChatMessage)
                        .where(
                            ChatMessage.id == target.message_id,
                            ChatMessage.conversation_id == target.conversation_id,
                        )
                        .values(
                            media_status=STATUS_COMPLETE,
                            media_url=status.video_url,
                            media_thumbnail_url=status.thumbnail_url,
                            media_duration=status.duration,
                        )
                    )
                else:
                    await session.execute(
                        update(ChatMessage)
                        .where(ChatMessage.id == target.message_id)
                        .values(media_status=STATUS_ERROR, media_error=status.error or "Unknown error")
                    )
                await session.commit()
        except Exception as e:
            logger.warning(f"Failed to update chat message {target.message_id}: {e}")

    async def _relocate(
        self,
        target: _Target,
        video_url: str,
        provider: VideoProvider,
        api_key: str,
    ) -> str:
        """Copy the finished video into blob storage. Returns the URL to serve it from."""
        key = video_blob_key(target.user_id, target.id)
        try:
            data = await provider.download_video(api_key, video_url)
            await self.blob_store.put(key, data, content_type="video/mp4")
        except Exception as e:
            logger.error(f"Failed to store video for generation {target.id}: {e}")
            return video_url

        served_url = blob_file_url(key)
        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(VideoGeneration)
                    .where(VideoGeneration.id == target.id)
                    .values(blob_key=key, video_url=served_url)
                )
                if target.message_id:
                    await session.execute(
                        update(ChatMessage)
                        .where(ChatMessage.id == target.message_id)
                        .values(media_blob_key=key, media_url=served_url)
                    )
                await session.commit()
        except Exception as e:
            logger.error(f"Stored video for generation {target.id} but failed to record it: {e}")
            return video_url

        return served_url

    async def _mark_timed_out(self, target: _Target) -> None:
        try:
            await self._transition(target.id, {
                "status": STATUS_ERROR,
                "error": TIMEOUT_MESSAGE,
                "completed_at": datetime.now(timezone.utc),
            })
        except Exception as e:
            logger.error(f"Failed to mark generation {target.id} as timed out: {e}")
