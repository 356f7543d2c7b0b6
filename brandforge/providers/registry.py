"""
Video provider registry.

A closed set of providers keyed by name, built once at startup from
VideoConfig and handed to services. Read-only after construction.
"""
from typing import Iterable, Optional

from brandforge.config import VideoConfig
from brandforge.providers.base import ProviderEndpoint, VideoModel, VideoProvider
from brandforge.providers.openai_video import OpenAIVideoProvider
from brandforge.providers.wavespeed_video import WaveSpeedVideoProvider

# Provider display names
PROVIDER_NAMES = {
    "openai": "OpenAI",
    "wavespeed": "WaveSpeed AI",
}


class ProviderRegistry:
    """Lookup table of video providers keyed by provider name."""

    def __init__(self, providers: Iterable[VideoProvider]):
        self._providers = {p.name: p for p in providers}

    @classmethod
    def from_config(cls, config: VideoConfig) -> "ProviderRegistry":
        timeout = config.provider_timeout_seconds
        return cls([
            OpenAIVideoProvider(ProviderEndpoint(base_url=config.openai_api_base, timeout=timeout)),
            WaveSpeedVideoProvider(ProviderEndpoint(base_url=config.wavespeed_api_base, timeout=timeout)),
        ])

    def get(self, name: Optional[str]) -> Optional[VideoProvider]:
        if not name:
            return None
        return self._providers.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._providers)

    def all_models(self) -> list[VideoModel]:
        models = []
        for provider in self._providers.values():
            models.extend(provider.get_available_models())
        return models

    def find_model(self, provider_name: str, model_id: str) -> Optional[VideoModel]:
        provider = self.get(provider_name)
        if provider is None:
            return None
        for model in provider.get_available_models():
            if model.id == model_id:
                return model
        return None
