"""
OpenAI video provider (Sora).

Jobs are submitted to /videos/generations. OpenAI may answer with the video
right away or with a job id that has to be polled.
"""
import logging
from typing import Optional

import httpx

from brandforge.providers.base import (
    PROVIDER_COMPLETE,
    PROVIDER_ERROR,
    PROVIDER_PROCESSING,
    VideoGenerationRequest,
    VideoGenerationResult,
    VideoModel,
    VideoProvider,
    VideoStatusResult,
)

logger = logging.getLogger(__name__)

OPENAI_VIDEO_MODELS = [
    VideoModel(
        id="sora",
        display_name="Sora",
        provider="openai",
        type="text-to-video",
        max_duration=20,
        supported_aspect_ratios=["16:9", "9:16", "1:1"],
        supported_resolutions=["1080p", "720p", "480p"],
    ),
]

# OpenAI sizes by aspect ratio; anything unknown renders landscape
ASPECT_RATIO_SIZES = {
    "16:9": "1920x1080",
    "9:16": "1080x1920",
    "1:1": "1080x1080",
}


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Pull `error.message` out of an OpenAI error body."""
    try:
        data = response.json()
    except ValueError:
        return fallback
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return data["error"].get("message") or fallback
    return fallback


def _first_url(data: dict) -> Optional[str]:
    items = data.get("data") or []
    if items and isinstance(items[0], dict):
        return items[0].get("url")
    return None


class OpenAIVideoProvider(VideoProvider):
    name = "openai"

    def get_available_models(self) -> list[VideoModel]:
        return OPENAI_VIDEO_MODELS

    async def generate_video(self, api_key: str, request: VideoGenerationRequest) -> VideoGenerationResult:
        payload = {
            "model": request.model or "sora",
            "prompt": request.prompt,
            "size": self.map_aspect_ratio(request.aspect_ratio),
            "n": 1,
        }
        if request.duration:
            payload["duration"] = request.duration

        try:
            async with httpx.AsyncClient(timeout=self.endpoint.timeout) as client:
                response = await client.post(
                    f"{self.endpoint.base_url}/videos/generations",
                    headers={"Authorization": f"Bearer {api_key}"},
                    json=payload,
                )
        except httpx.HTTPError as e:
            logger.warning(f"OpenAI video request failed: {e}")
            return VideoGenerationResult(
                provider_job_id="",
                status=PROVIDER_ERROR,
                error=str(e) or "Failed to start video generation",
            )

        if response.status_code >= 400:
            return VideoGenerationResult(
                provider_job_id="",
                status=PROVIDER_ERROR,
                error=_error_message(response, f"OpenAI API error: {response.status_code}"),
            )

        data = response.json()

        # The video may come back immediately
        url = _first_url(data)
        if url:
            return VideoGenerationResult(
                provider_job_id=data.get("id") or "direct",
                status=PROVIDER_COMPLETE,
                video_url=url,
            )

        return VideoGenerationResult(
            provider_job_id=data.get("id", ""),
            status=PROVIDER_COMPLETE if data.get("status") == "completed" else PROVIDER_PROCESSING,
        )

    async def get_status(self, api_key: str, provider_job_id: str) -> VideoStatusResult:
        """Check a job. Transport errors propagate; the poller retries them."""
        async with httpx.AsyncClient(timeout=self.endpoint.timeout) as client:
            response = await client.get(
                f"{self.endpoint.base_url}/videos/generations/{provider_job_id}",
                headers={"Authorization": f"Bearer {api_key}"},
            )

        if response.status_code >= 400:
            return VideoStatusResult(
                status=PROVIDER_ERROR,
                error=_error_message(response, f"Status check failed: {response.status_code}"),
            )

        data = response.json()
        url = _first_url(data)

        if data.get("status") == "completed" and url:
            return VideoStatusResult(status=PROVIDER_COMPLETE, video_url=url, progress=100)

        if data.get("status") == "failed" or data.get("error"):
            error = data.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            return VideoStatusResult(status=PROVIDER_ERROR, error=message or "Video generation failed")

        # No granular progress from OpenAI
        return VideoStatusResult(status=PROVIDER_PROCESSING, progress=50)

    async def download_video(self, api_key: str, video_url: str) -> bytes:
        async with httpx.AsyncClient(timeout=self.endpoint.timeout, follow_redirects=True) as client:
            response = await client.get(video_url)
        if response.status_code >= 400:
            raise RuntimeError(f"Failed to download video: {response.status_code}")
        return response.content

    @staticmethod
    def map_aspect_ratio(aspect_ratio: Optional[str]) -> str:
        return ASPECT_RATIO_SIZES.get(aspect_ratio or "16:9", ASPECT_RATIO_SIZES["16:9"])
