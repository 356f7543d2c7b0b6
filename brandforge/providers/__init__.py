"""Video generation providers, their model catalogues, and pricing."""
from brandforge.providers.base import (
    ResolutionPricing,
    VideoGenerationRequest,
    VideoGenerationResult,
    VideoModel,
    VideoModelPricing,
    VideoProvider,
    VideoStatusResult,
)
from brandforge.providers.pricing import resolve_cost
from brandforge.providers.registry import ProviderRegistry

__all__ = [
    "ProviderRegistry",
    "ResolutionPricing",
    "VideoGenerationRequest",
    "VideoGenerationResult",
    "VideoModel",
    "VideoModelPricing",
    "VideoProvider",
    "VideoStatusResult",
    "resolve_cost",
]
