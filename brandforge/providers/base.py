"""
Video provider interface.

Every provider (OpenAI Sora, WaveSpeed, ...) implements `VideoProvider` and
reports job state in the provider vocabulary below. The generation service
maps that onto the stored lifecycle (pending/generating/complete/error).
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

# Provider-side job states
PROVIDER_QUEUED = "queued"
PROVIDER_PROCESSING = "processing"
PROVIDER_COMPLETE = "complete"
PROVIDER_ERROR = "error"


@dataclass
class ResolutionPricing:
    """Resolution-specific pricing override. Unset fields inherit the top-level rate."""
    estimated_cost_per_second: Optional[float] = None
    estimated_cost_per_generation: Optional[float] = None


@dataclass
class VideoModelPricing:
    """
    Estimated pricing for a model.

    Either a per-second rate (OpenAI Sora) or a flat per-generation rate
    (WaveSpeed). Per-second wins when both are set.
    """
    estimated_cost_per_second: Optional[float] = None
    estimated_cost_per_generation: Optional[float] = None
    pricing_by_resolution: Optional[dict[str, ResolutionPricing]] = None
    currency: str = "USD"

    def to_dict(self) -> dict:
        data = {"currency": self.currency}
        if self.estimated_cost_per_second is not None:
            data["estimatedCostPerSecond"] = self.estimated_cost_per_second
        if self.estimated_cost_per_generation is not None:
            data["estimatedCostPerGeneration"] = self.estimated_cost_per_generation
        if self.pricing_by_resolution:
            data["pricingByResolution"] = {
                res: {
                    k: v for k, v in (
                        ("estimatedCostPerSecond", p.estimated_cost_per_second),
                        ("estimatedCostPerGeneration", p.estimated_cost_per_generation),
                    ) if v is not None
                }
                for res, p in self.pricing_by_resolution.items()
            }
        return data


@dataclass
class VideoModel:
    id: str
    display_name: str
    provider: str
    type: str = "text-to-video"  # text-to-video, image-to-video, image
    max_duration: Optional[int] = None
    supported_durations: Optional[list[int]] = None
    supported_aspect_ratios: Optional[list[str]] = None
    supported_resolutions: Optional[list[str]] = None
    pricing: Optional[VideoModelPricing] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "provider": self.provider,
            "type": self.type,
            "maxDuration": self.max_duration,
            "supportedDurations": self.supported_durations,
            "supportedAspectRatios": self.supported_aspect_ratios,
            "supportedResolutions": self.supported_resolutions,
            "pricing": self.pricing.to_dict() if self.pricing else None,
        }


@dataclass
class VideoGenerationRequest:
    prompt: str
    model: str
    aspect_ratio: Optional[str] = None
    duration: Optional[int] = None
    resolution: Optional[str] = None


@dataclass
class VideoGenerationResult:
    provider_job_id: str
    status: str
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[float] = None
    error: Optional[str] = None
    cost: Optional[float] = None


@dataclass
class VideoStatusResult:
    status: str
    progress: Optional[int] = None
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[float] = None
    error: Optional[str] = None
    cost: Optional[float] = None


@dataclass
class ProviderEndpoint:
    """Connection settings handed to a provider at construction time."""
    base_url: str
    timeout: float = 60.0
    extra: dict = field(default_factory=dict)


class VideoProvider(ABC):
    """Capability interface all video providers implement."""

    name: str = ""

    def __init__(self, endpoint: ProviderEndpoint):
        self.endpoint = endpoint

    @abstractmethod
    async def generate_video(self, api_key: str, request: VideoGenerationRequest) -> VideoGenerationResult:
        """Start a video generation job."""

    @abstractmethod
    async def get_status(self, api_key: str, provider_job_id: str) -> VideoStatusResult:
        """Check the status of a video generation job."""

    @abstractmethod
    def get_available_models(self) -> list[VideoModel]:
        """Models this provider exposes, with pricing."""

    @abstractmethod
    async def download_video(self, api_key: str, video_url: str) -> bytes:
        """Download the finished video. Raises on HTTP failure."""
