"""Tests for the OpenAI and WaveSpeed video providers against a mocked HTTP transport."""
import json
from unittest.mock import patch

import httpx
import pytest

from brandforge.providers.base import (
    PROVIDER_COMPLETE,
    PROVIDER_ERROR,
    PROVIDER_PROCESSING,
    PROVIDER_QUEUED,
    ProviderEndpoint,
    VideoGenerationRequest,
)
from brandforge.providers.openai_video import OpenAIVideoProvider
from brandforge.providers.wavespeed_video import WaveSpeedVideoProvider, map_status

_RealAsyncClient = httpx.AsyncClient


def mock_http(handler):
    """Route every httpx.AsyncClient through `handler`."""
    def factory(*args, **kwargs):
        return _RealAsyncClient(*args, transport=httpx.MockTransport(handler), **kwargs)
    return patch("httpx.AsyncClient", side_effect=factory)


def openai_provider():
    return OpenAIVideoProvider(ProviderEndpoint(base_url="https://openai.test/v1"))


def wavespeed_provider():
    return WaveSpeedVideoProvider(ProviderEndpoint(base_url="https://wavespeed.test/api/v3"))


class TestOpenAIGenerate:
    """Test starting Sora jobs."""

    @pytest.mark.asyncio
    async def test_job_accepted(self):
        """A job id without a URL is still processing."""
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "vid_123", "status": "queued"})

        with mock_http(handler):
            result = await openai_provider().generate_video(
                "sk-test",
                VideoGenerationRequest(prompt="A cat", model="sora", aspect_ratio="9:16", duration=8),
            )

        assert result.status == PROVIDER_PROCESSING
        assert result.provider_job_id == "vid_123"
        assert seen["url"] == "https://openai.test/v1/videos/generations"
        assert seen["body"]["size"] == "1080x1920"
        assert seen["body"]["duration"] == 8

    @pytest.mark.asyncio
    async def test_immediate_video(self):
        """A URL in the response means the video is already done."""
        def handler(request):
            return httpx.Response(200, json={"id": "vid_1", "data": [{"url": "https://cdn.test/v.mp4"}]})

        with mock_http(handler):
            result = await openai_provider().generate_video(
                "sk-test", VideoGenerationRequest(prompt="A cat", model="sora"),
            )

        assert result.status == PROVIDER_COMPLETE
        assert result.video_url == "https://cdn.test/v.mp4"

    @pytest.mark.asyncio
    async def test_api_error_message(self):
        """OpenAI error bodies surface their message."""
        def handler(request):
            return httpx.Response(400, json={"error": {"message": "Prompt rejected"}})

        with mock_http(handler):
            result = await openai_provider().generate_video(
                "sk-test", VideoGenerationRequest(prompt="A cat", model="sora"),
            )

        assert result.status == PROVIDER_ERROR
        assert result.error == "Prompt rejected"

    @pytest.mark.asyncio
    async def test_transport_error_becomes_error_result(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with mock_http(handler):
            result = await openai_provider().generate_video(
                "sk-test", VideoGenerationRequest(prompt="A cat", model="sora"),
            )

        assert result.status == PROVIDER_ERROR
        assert "connection refused" in result.error

    def test_unknown_aspect_ratio_is_landscape(self):
        assert OpenAIVideoProvider.map_aspect_ratio("4:3") == "1920x1080"
        assert OpenAIVideoProvider.map_aspect_ratio(None) == "1920x1080"


class TestOpenAIStatus:
    """Test polling Sora jobs."""

    @pytest.mark.asyncio
    async def test_completed(self):
        def handler(request):
            return httpx.Response(200, json={"status": "completed", "data": [{"url": "https://cdn.test/v.mp4"}]})

        with mock_http(handler):
            status = await openai_provider().get_status("sk-test", "vid_1")

        assert status.status == PROVIDER_COMPLETE
        assert status.progress == 100
        assert status.video_url == "https://cdn.test/v.mp4"

    @pytest.mark.asyncio
    async def test_failed(self):
        def handler(request):
            return httpx.Response(200, json={"status": "failed", "error": {"message": "Moderation"}})

        with mock_http(handler):
            status = await openai_provider().get_status("sk-test", "vid_1")

        assert status.status == PROVIDER_ERROR
        assert status.error == "Moderation"

    @pytest.mark.asyncio
    async def test_in_progress(self):
        def handler(request):
            return httpx.Response(200, json={"status": "in_progress"})

        with mock_http(handler):
            status = await openai_provider().get_status("sk-test", "vid_1")

        assert status.status == PROVIDER_PROCESSING
        assert status.progress == 50

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        """Network failures are left to the poller to retry."""
        def handler(request):
            raise httpx.ReadTimeout("timed out")

        with mock_http(handler):
            with pytest.raises(httpx.HTTPError):
                await openai_provider().get_status("sk-test", "vid_1")


class TestWaveSpeed:
    """Test the WaveSpeed provider."""

    def test_status_mapping(self):
        assert map_status("created") == PROVIDER_QUEUED
        assert map_status("pending") == PROVIDER_QUEUED
        assert map_status("processing") == PROVIDER_PROCESSING
        assert map_status("completed") == PROVIDER_COMPLETE
        assert map_status("failed") == PROVIDER_ERROR
        assert map_status("something-new") == PROVIDER_PROCESSING
        assert map_status(None) == PROVIDER_PROCESSING

    def test_model_path_adds_namespace_once(self):
        assert WaveSpeedVideoProvider.model_path("wan-2.1/t2v-720p") == "wavespeed-ai/wan-2.1/t2v-720p"
        assert WaveSpeedVideoProvider.model_path("wavespeed-ai/flux-dev") == "wavespeed-ai/flux-dev"

    @pytest.mark.asyncio
    async def test_generate_submits_to_model_path(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"id": "task-9", "status": "created"}})

        with mock_http(handler):
            result = await wavespeed_provider().generate_video(
                "ws-key",
                VideoGenerationRequest(prompt="Waves", model="wan-2.1/t2v-720p", duration=5),
            )

        assert seen["url"] == "https://wavespeed.test/api/v3/wavespeed-ai/wan-2.1/t2v-720p"
        assert seen["body"] == {"prompt": "Waves", "duration": 5}
        assert result.provider_job_id == "task-9"
        assert result.status == PROVIDER_QUEUED

    @pytest.mark.asyncio
    async def test_status_completed_uses_first_output(self):
        def handler(request):
            assert request.url.path == "/api/v3/predictions/task-9/result"
            return httpx.Response(200, json={"data": {"status": "completed", "outputs": ["https://ws.test/out.mp4"]}})

        with mock_http(handler):
            status = await wavespeed_provider().get_status("ws-key", "task-9")

        assert status.status == PROVIDER_COMPLETE
        assert status.video_url == "https://ws.test/out.mp4"

    @pytest.mark.asyncio
    async def test_status_failed(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"status": "failed", "error": "NSFW"}})

        with mock_http(handler):
            status = await wavespeed_provider().get_status("ws-key", "task-9")

        assert status.status == PROVIDER_ERROR
        assert status.error == "NSFW"

    @pytest.mark.asyncio
    async def test_validate_key(self):
        def handler(request):
            assert request.url.path == "/api/v3/balance"
            return httpx.Response(200, json={"data": {"balance": 12.5}})

        with mock_http(handler):
            result = await wavespeed_provider().validate_key("ws-key")

        assert result == {"valid": True, "balance": 12.5}

    @pytest.mark.asyncio
    async def test_validate_key_rejected(self):
        def handler(request):
            return httpx.Response(401, text="bad key")

        with mock_http(handler):
            result = await wavespeed_provider().validate_key("ws-key")

        assert result["valid"] is False
        assert "401" in result["error"]

    @pytest.mark.asyncio
    async def test_fetch_model_pricing(self):
        def handler(request):
            return httpx.Response(200, json={"data": [
                {"model_id": "wavespeed-ai/flux-dev", "name": "FLUX Dev", "base_price": 0.025,
                 "description": "Images", "type": "image", "extra": "ignored"},
            ]})

        with mock_http(handler):
            models = await wavespeed_provider().fetch_model_pricing("ws-key")

        assert models == [{
            "model_id": "wavespeed-ai/flux-dev",
            "name": "FLUX Dev",
            "base_price": 0.025,
            "description": "Images",
            "type": "image",
        }]

    @pytest.mark.asyncio
    async def test_fetch_model_pricing_error(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        with mock_http(handler):
            with pytest.raises(RuntimeError, match="WaveSpeed API error \\(500\\)"):
                await wavespeed_provider().fetch_model_pricing("ws-key")
