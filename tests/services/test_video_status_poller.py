"""Tests for the video status poller."""
import json

import pytest
from sqlalchemy import select

from brandforge.config import VideoConfig
from brandforge.models import ChatMessage, VideoGeneration
from brandforge.providers.base import PROVIDER_COMPLETE, PROVIDER_ERROR, PROVIDER_PROCESSING, VideoStatusResult
from brandforge.services.video_status_poller import (
    TIMEOUT_MESSAGE,
    TRANSIENT_ERROR_MESSAGE,
    CancellationToken,
    StatusEvent,
    VideoStatusPoller,
)
from factories import FakeBlobStore, create_generation, create_user

COMPLETE = VideoStatusResult(
    status=PROVIDER_COMPLETE, progress=100, video_url="https://cdn.test/v.mp4", duration=8,
)
PROCESSING = VideoStatusResult(status=PROVIDER_PROCESSING, progress=40)


async def collect(poller, generation, token=None, provider=None, api_key="sk-test"):
    token = token or CancellationToken()
    return [event async for event in poller.stream(generation, token, provider=provider, api_key=api_key)]


async def reload(test_db, generation_id):
    async with test_db() as session:
        result = await session.execute(select(VideoGeneration).where(VideoGeneration.id == generation_id))
        return result.scalar_one()


async def make_generation(test_db, **kwargs):
    async with test_db() as session:
        user = await create_user(session)
        return await create_generation(session, user.id, **kwargs)


class TestStatusEvent:
    """Test event serialization."""

    def test_sse_frame(self):
        event = StatusEvent(status="processing", progress=40)
        frame = event.to_sse()

        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame[len("data: "):]) == {
            "status": "processing",
            "progress": 40,
            "videoUrl": None,
            "thumbnailUrl": None,
            "duration": None,
            "error": None,
        }

    def test_terminal(self):
        assert StatusEvent(status="complete").is_terminal
        assert StatusEvent(status="error").is_terminal
        assert not StatusEvent(status="queued").is_terminal


class TestCancellationToken:
    @pytest.mark.asyncio
    async def test_sleep_returns_false_when_not_cancelled(self):
        assert await CancellationToken().sleep(0.01) is False

    @pytest.mark.asyncio
    async def test_sleep_returns_true_when_cancelled(self):
        token = CancellationToken()
        token.cancel()
        assert await token.sleep(10) is True
        assert await token.sleep(0) is True


class TestTerminalGeneration:
    """A generation that already finished never touches the provider."""

    @pytest.mark.asyncio
    async def test_complete_generation_yields_one_event(self, test_db, registry, video_config, fake_provider):
        generation = await make_generation(
            test_db, status="complete", video_url="https://cdn.test/done.mp4", duration_seconds=4,
        )
        poller = VideoStatusPoller(test_db, registry, video_config)

        events = await collect(poller, generation, provider=fake_provider)

        assert len(events) == 1
        assert events[0].status == "complete"
        assert events[0].progress == 100
        assert events[0].video_url == "https://cdn.test/done.mp4"
        assert fake_provider.status_calls == []

    @pytest.mark.asyncio
    async def test_error_generation_yields_stored_error(self, test_db, registry, video_config):
        generation = await make_generation(test_db, status="error", error="Moderation")
        poller = VideoStatusPoller(test_db, registry, video_config)

        events = await collect(poller, generation)

        assert [(e.status, e.error) for e in events] == [("error", "Moderation")]

    @pytest.mark.asyncio
    async def test_running_generation_requires_provider(self, test_db, registry, video_config):
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, video_config)

        with pytest.raises(ValueError):
            await collect(poller, generation, provider=None)


class TestPolling:
    """Test polling a running generation to completion."""

    @pytest.mark.asyncio
    async def test_complete_is_persisted_before_final_event(self, test_db, registry, video_config, fake_provider):
        fake_provider.statuses = [PROCESSING, PROCESSING, COMPLETE]
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, video_config)

        events = await collect(poller, generation, provider=fake_provider)

        assert [e.status for e in events] == ["processing", "processing", "complete"]
        assert events[0].progress == 40
        assert events[-1].video_url == "https://cdn.test/v.mp4"
        assert len(fake_provider.status_calls) == 3
        assert fake_provider.status_calls[0] == ("sk-test", "job-1")

        record = await reload(test_db, generation.id)
        assert record.status == "complete"
        assert record.video_url == "https://cdn.test/v.mp4"
        assert record.duration_seconds == 8
        assert record.cost == pytest.approx(0.80)
        assert record.completed_at is not None

    @pytest.mark.asyncio
    async def test_provider_error_is_persisted(self, test_db, registry, video_config, fake_provider):
        fake_provider.statuses = [VideoStatusResult(status=PROVIDER_ERROR, error="NSFW content")]
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, video_config)

        events = await collect(poller, generation, provider=fake_provider)

        assert [(e.status, e.error) for e in events] == [("error", "NSFW content")]
        record = await reload(test_db, generation.id)
        assert record.status == "error"
        assert record.error == "NSFW content"
        assert record.completed_at is not None

    @pytest.mark.asyncio
    async def test_transient_error_keeps_polling(self, test_db, registry, video_config, fake_provider):
        """A failing status query is reported as advisory and the next attempt still happens."""
        fake_provider.statuses = [RuntimeError("502 Bad Gateway"), COMPLETE]
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, video_config)

        events = await collect(poller, generation, provider=fake_provider)

        assert events[0].status == "processing"
        assert events[0].progress == 0
        assert events[0].error == TRANSIENT_ERROR_MESSAGE
        assert events[1].status == "complete"

        record = await reload(test_db, generation.id)
        assert record.status == "complete"

    @pytest.mark.asyncio
    async def test_provider_reported_cost_wins(self, test_db, registry, video_config, fake_provider):
        fake_provider.statuses = [VideoStatusResult(status=PROVIDER_COMPLETE, video_url="https://v", cost=3.5)]
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, video_config)

        await collect(poller, generation, provider=fake_provider)

        record = await reload(test_db, generation.id)
        assert record.cost == pytest.approx(3.5)


class TestTimeoutAndCancellation:
    """Test how polling stops without a terminal answer."""

    @pytest.mark.asyncio
    async def test_timeout_leaves_record_untouched(self, test_db, registry, video_config, fake_provider):
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, video_config)

        events = await collect(poller, generation, provider=fake_provider)

        assert len(fake_provider.status_calls) == video_config.poll_max_attempts
        assert len(events) == video_config.poll_max_attempts + 1
        assert events[-1].status == "error"
        assert events[-1].error == TIMEOUT_MESSAGE

        record = await reload(test_db, generation.id)
        assert record.status == "generating"
        assert record.completed_at is None

    @pytest.mark.asyncio
    async def test_default_attempt_budget(self, test_db, registry, fake_provider):
        config = VideoConfig(poll_interval_seconds=0)
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, config)

        events = await collect(poller, generation, provider=fake_provider)

        assert len(fake_provider.status_calls) == 120
        assert len(events) == 121
        assert events[-1].status == "error"
        assert events[-1].error == TIMEOUT_MESSAGE

    @pytest.mark.asyncio
    async def test_timeout_marks_record_when_configured(self, test_db, registry, fake_provider):
        config = VideoConfig(poll_interval_seconds=0, poll_max_attempts=2, mark_timeout_as_error=True)
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, config)

        events = await collect(poller, generation, provider=fake_provider)

        assert events[-1].error == TIMEOUT_MESSAGE
        record = await reload(test_db, generation.id)
        assert record.status == "error"
        assert record.error == TIMEOUT_MESSAGE
        assert record.completed_at is not None

    @pytest.mark.asyncio
    async def test_cancelled_token_stops_before_polling(self, test_db, registry, video_config, fake_provider):
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, video_config)
        token = CancellationToken()
        token.cancel()

        events = await collect(poller, generation, token=token, provider=fake_provider)

        assert events == []
        assert fake_provider.status_calls == []

    @pytest.mark.asyncio
    async def test_cancel_between_polls(self, test_db, registry, video_config, fake_provider):
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, video_config)
        token = CancellationToken()

        events = []
        async for event in poller.stream(generation, token, provider=fake_provider, api_key="sk-test"):
            events.append(event)
            token.cancel()

        assert len(events) == 1
        assert len(fake_provider.status_calls) == 1

    @pytest.mark.asyncio
    async def test_user_cancel_is_not_overwritten(self, test_db, registry, video_config, fake_provider):
        """A generation cancelled while polling keeps its cancelled state."""
        fake_provider.statuses = [COMPLETE]
        generation = await make_generation(test_db)
        async with test_db() as session:
            record = await session.get(VideoGeneration, generation.id)
            record.status = "error"
            record.error = "Cancelled by user"
            await session.commit()

        poller = VideoStatusPoller(test_db, registry, video_config, blob_store=FakeBlobStore())
        events = await collect(poller, generation, provider=fake_provider)

        assert events[-1].status == "complete"
        assert fake_provider.download_calls == []

        record = await reload(test_db, generation.id)
        assert record.status == "error"
        assert record.error == "Cancelled by user"
        assert record.video_url is None


class TestFollowUpWrites:
    """Test chat message mirroring and blob relocation."""

    @pytest.mark.asyncio
    async def test_complete_mirrors_to_message(self, test_db, registry, video_config, fake_provider):
        fake_provider.statuses = [COMPLETE]
        async with test_db() as session:
            user = await create_user(session)
            message = ChatMessage(conversation_id="conv-1", user_id=user.id, media_status="pending")
            session.add(message)
            await session.commit()
            generation = await create_generation(
                session, user.id, message_id=message.id, conversation_id="conv-1",
            )

        poller = VideoStatusPoller(test_db, registry, video_config)
        await collect(poller, generation, provider=fake_provider)

        async with test_db() as session:
            stored = await session.get(ChatMessage, message.id)
            assert stored.media_status == "complete"
            assert stored.media_url == "https://cdn.test/v.mp4"
            assert stored.media_duration == 8

    @pytest.mark.asyncio
    async def test_error_mirrors_to_message(self, test_db, registry, video_config, fake_provider):
        fake_provider.statuses = [VideoStatusResult(status=PROVIDER_ERROR, error="Quota exceeded")]
        async with test_db() as session:
            user = await create_user(session)
            message = ChatMessage(conversation_id="conv-1", user_id=user.id, media_status="pending")
            session.add(message)
            await session.commit()
            generation = await create_generation(session, user.id, message_id=message.id)

        poller = VideoStatusPoller(test_db, registry, video_config)
        await collect(poller, generation, provider=fake_provider)

        async with test_db() as session:
            stored = await session.get(ChatMessage, message.id)
            assert stored.media_status == "error"
            assert stored.media_error == "Quota exceeded"

    @pytest.mark.asyncio
    async def test_video_copied_into_blob_storage(self, test_db, registry, video_config, fake_provider):
        fake_provider.statuses = [COMPLETE]
        blob_store = FakeBlobStore()
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, video_config, blob_store=blob_store)

        events = await collect(poller, generation, provider=fake_provider)

        key = f"videos/{generation.user_id}/{generation.id}.mp4"
        assert blob_store.objects[key] == (b"video", "video/mp4")
        assert fake_provider.download_calls == [("sk-test", "https://cdn.test/v.mp4")]
        assert events[-1].video_url == f"/api/video/file/{key}"

        record = await reload(test_db, generation.id)
        assert record.blob_key == key
        assert record.video_url == f"/api/video/file/{key}"

    @pytest.mark.asyncio
    async def test_failed_upload_keeps_provider_url(self, test_db, registry, video_config, fake_provider):
        fake_provider.statuses = [COMPLETE]
        generation = await make_generation(test_db)
        poller = VideoStatusPoller(test_db, registry, video_config, blob_store=FakeBlobStore(fail_puts=True))

        events = await collect(poller, generation, provider=fake_provider)

        assert events[-1].status == "complete"
        assert events[-1].video_url == "https://cdn.test/v.mp4"

        record = await reload(test_db, generation.id)
        assert record.status == "complete"
        assert record.blob_key is None
        assert record.video_url == "https://cdn.test/v.mp4"
