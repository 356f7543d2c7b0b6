"""
WaveSpeed AI video provider.

API base: https://api.wavespeed.ai/api/v3
Auth: Bearer token in the Authorization header
Flow: submit a task to the model path, then poll /predictions/{id}/result
"""
import logging
from typing import Optional

import httpx

from brandforge.providers.base import (
    PROVIDER_COMPLETE,
    PROVIDER_ERROR,
    PROVIDER_PROCESSING,
    PROVIDER_QUEUED,
    VideoGenerationRequest,
    VideoGenerationResult,
    VideoModel,
    VideoModelPricing,
    VideoProvider,
    VideoStatusResult,
)

logger = logging.getLogger(__name__)

MODEL_NAMESPACE = "wavespeed-ai/"

# WaveSpeed task status -> provider vocabulary
STATUS_MAP = {
    "created": PROVIDER_QUEUED,
    "pending": PROVIDER_QUEUED,
    "processing": PROVIDER_PROCESSING,
    "completed": PROVIDER_COMPLETE,
    "failed": PROVIDER_ERROR,
}


def map_status(ws_status: Optional[str]) -> str:
    return STATUS_MAP.get(ws_status or "", PROVIDER_PROCESSING)


def _model(model_id: str, display_name: str, model_type: str, cost: float) -> VideoModel:
    is_video = model_type != "image"
    return VideoModel(
        id=model_id,
        display_name=display_name,
        provider="wavespeed",
        type=model_type,
        supported_durations=[5, 8] if is_video else None,
        supported_aspect_ratios=["16:9", "9:16", "1:1"],
        pricing=VideoModelPricing(estimated_cost_per_generation=cost),
    )


# Fallback estimates; live prices come from fetch_model_pricing()
# See https://wavespeed.ai/pricing
WAVESPEED_VIDEO_MODELS = [
    # Wan 2.1
    _model("wan-2.1/t2v-720p", "Wan 2.1 Text-to-Video 720p", "text-to-video", 0.03),
    _model("wan-2.1/i2v-720p", "Wan 2.1 Image-to-Video 720p", "image-to-video", 0.04),
    _model("wan-2.1/t2v-480p", "Wan 2.1 Text-to-Video 480p", "text-to-video", 0.02),
    # Wan 2.2
    _model("wan-2.2/t2v-720p", "Wan 2.2 Text-to-Video 720p", "text-to-video", 0.04),
    _model("wan-2.2/i2v-480p", "Wan 2.2 Image-to-Video 480p", "image-to-video", 0.03),
    # FLUX images
    _model("flux-dev", "FLUX Dev", "image", 0.025),
    _model("flux-schnell", "FLUX Schnell", "image", 0.015),
    # Hunyuan
    _model("hunyuan-video/t2v", "Hunyuan Video Text-to-Video", "text-to-video", 0.05),
    # LTX
    _model("ltx-video/ltx-2-19b-text-to-video", "LTX 2 Text-to-Video", "text-to-video", 0.03),
    _model("ltx-video/ltx-2-19b-image-to-video", "LTX 2 Image-to-Video", "image-to-video", 0.035),
    # Framepack
    _model("framepack/framepack-f1", "Framepack", "image-to-video", 0.04),
]


class WaveSpeedVideoProvider(VideoProvider):
    name = "wavespeed"

    def get_available_models(self) -> list[VideoModel]:
        return WAVESPEED_VIDEO_MODELS

    def _headers(self, api_key: str) -> dict:
        return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    @staticmethod
    def model_path(model_id: str) -> str:
        """Model ids map to URL path segments and may contain slashes."""
        return model_id if model_id.startswith(MODEL_NAMESPACE) else f"{MODEL_NAMESPACE}{model_id}"

    async def generate_video(self, api_key: str, request: VideoGenerationRequest) -> VideoGenerationResult:
        payload = {"prompt": request.prompt}
        if request.aspect_ratio:
            payload["aspect_ratio"] = request.aspect_ratio
        if request.duration:
            payload["duration"] = request.duration
        if request.resolution:
            payload["resolution"] = request.resolution

        async with httpx.AsyncClient(timeout=self.endpoint.timeout) as client:
            response = await client.post(
                f"{self.endpoint.base_url}/{self.model_path(request.model)}",
                headers=self._headers(api_key),
                json=payload,
            )

        if response.status_code >= 400:
            return VideoGenerationResult(
                provider_job_id="",
                status=PROVIDER_ERROR,
                error=f"WaveSpeed API error {response.status_code}: {response.text or 'Unknown error'}",
            )

        task = response.json().get("data") or {}
        return VideoGenerationResult(
            provider_job_id=task.get("id", ""),
            status=map_status(task.get("status")),
        )

    async def get_status(self, api_key: str, provider_job_id: str) -> VideoStatusResult:
        async with httpx.AsyncClient(timeout=self.endpoint.timeout) as client:
            response = await client.get(
                f"{self.endpoint.base_url}/predictions/{provider_job_id}/result",
                headers={"Authorization": f"Bearer {api_key}"},
            )

        if response.status_code >= 400:
            return VideoStatusResult(
                status=PROVIDER_ERROR,
                error=f"WaveSpeed API error {response.status_code}: {response.text or 'Unknown error'}",
            )

        task = response.json().get("data") or {}
        result = VideoStatusResult(status=map_status(task.get("status")))

        outputs = task.get("outputs") or []
        if result.status == PROVIDER_COMPLETE and outputs:
            result.video_url = outputs[0]
            result.progress = 100
        if result.status == PROVIDER_ERROR:
            result.error = task.get("error") or "Unknown error"

        return result

    async def download_video(self, api_key: str, video_url: str) -> bytes:
        async with httpx.AsyncClient(timeout=self.endpoint.timeout, follow_redirects=True) as client:
            response = await client.get(video_url)
        if response.status_code >= 400:
            raise RuntimeError(f"Failed to download video: {response.status_code}")
        return response.content

    async def validate_key(self, api_key: str) -> dict:
        """
        Check a key against the balance endpoint.

        Returns {"valid": True, "balance": ...} or {"valid": False, "error": ...}.
        Never raises.
        """
        try:
            async with httpx.AsyncClient(timeout=self.endpoint.timeout) as client:
                response = await client.get(
                    f"{self.endpoint.base_url}/balance",
                    headers=self._headers(api_key),
                )
        except httpx.HTTPError as e:
            return {"valid": False, "error": str(e) or "Failed to validate key"}

        if response.status_code >= 400:
            return {
                "valid": False,
                "error": f"WaveSpeed API returned {response.status_code}: {response.text or 'Unknown error'}",
            }

        data = response.json().get("data") or {}
        return {"valid": True, "balance": data.get("balance")}

    async def fetch_model_pricing(self, api_key: str) -> list[dict]:
        """
        Fetch the live model catalogue with base prices.

        Raises:
            httpx.HTTPError: transport failure
            RuntimeError: WaveSpeed answered with an error status
        """
        async with httpx.AsyncClient(timeout=self.endpoint.timeout) as client:
            response = await client.get(
                f"{self.endpoint.base_url}/models",
                headers=self._headers(api_key),
            )

        if response.status_code >= 400:
            raise RuntimeError(f"WaveSpeed API error ({response.status_code}): {response.text or 'Unknown error'}")

        return [
            {
                "model_id": m.get("model_id"),
                "name": m.get("name"),
                "base_price": m.get("base_price"),
                "description": m.get("description"),
                "type": m.get("type"),
            }
            for m in response.json().get("data") or []
        ]
