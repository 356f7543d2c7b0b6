"""
Video provider key service - stores and selects provider credentials.

Keys are ordered by creation time. Generation requests use the first key
that is enabled and video-enabled, optionally restricted to one provider.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from brandforge.auth import encrypt_api_key, decrypt_api_key
from brandforge.models import VideoProviderKey
from brandforge.providers.base import VideoModel
from brandforge.providers.registry import ProviderRegistry


class VideoKeyService:
    """Service for managing video provider API keys (OpenAI, WaveSpeed)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, key_id: str) -> Optional[VideoProviderKey]:
        result = await self.db.execute(select(VideoProviderKey).where(VideoProviderKey.id == key_id))
        return result.scalar_one_or_none()

    async def list_all(self) -> list[VideoProviderKey]:
        result = await self.db.execute(
            select(VideoProviderKey).order_by(VideoProviderKey.created_at)
        )
        return list(result.scalars().all())

    async def get_enabled_video_key(
        self,
        preferred_provider: Optional[str] = None,
    ) -> Optional[VideoProviderKey]:
        """Get the first enabled, video-capable key (restricted to a provider if given)."""
        query = select(VideoProviderKey).where(
            VideoProviderKey.enabled == True,
            VideoProviderKey.video_enabled == True,
        )
        if preferred_provider:
            query = query.where(VideoProviderKey.provider == preferred_provider)
        query = query.order_by(VideoProviderKey.created_at).limit(1)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_all_enabled_video_keys(self) -> list[VideoProviderKey]:
        result = await self.db.execute(
            select(VideoProviderKey)
            .where(
                VideoProviderKey.enabled == True,
                VideoProviderKey.video_enabled == True,
            )
            .order_by(VideoProviderKey.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    def models_for_key(key: VideoProviderKey, registry: ProviderRegistry) -> list[VideoModel]:
        """Provider models available through a key, narrowed by its `video_models` list."""
        provider = registry.get(key.provider)
        if provider is None:
            return []

        models = provider.get_available_models()
        if key.video_models:
            allowed = set(key.video_models)
            return [m for m in models if m.id in allowed]
        return models

    async def create(
        self,
        name: str,
        provider: str,
        key: str,
        created_by_id: Optional[str] = None,
        enabled: bool = True,
        video_enabled: bool = False,
        video_models: Optional[list[str]] = None,
    ) -> VideoProviderKey:
        """
        Create a new provider key.

        Args:
            name: Display name for the key
            provider: Provider slug (openai, wavespeed)
            key: The actual API key to store (will be encrypted)
            created_by_id: The admin creating the key (audit trail)
        """
        provider_key = VideoProviderKey(
            name=name.strip(),
            provider=provider,
            encrypted_key=encrypt_api_key(key),
            key_suffix=key[-4:] if len(key) >= 4 else key,
            enabled=enabled,
            video_enabled=video_enabled,
            video_models=video_models or None,
            created_by_id=created_by_id,
        )
        self.db.add(provider_key)
        await self.db.commit()
        await self.db.refresh(provider_key)
        return provider_key

    async def update(
        self,
        key_id: str,
        name: Optional[str] = None,
        new_key: Optional[str] = None,
        enabled: Optional[bool] = None,
        video_enabled: Optional[bool] = None,
        video_models: Optional[list[str]] = None,
    ) -> Optional[VideoProviderKey]:
        provider_key = await self.get_by_id(key_id)
        if not provider_key:
            return None

        if name is not None:
            provider_key.name = name.strip()
        if new_key is not None:
            provider_key.encrypted_key = encrypt_api_key(new_key)
            provider_key.key_suffix = new_key[-4:] if len(new_key) >= 4 else new_key
        if enabled is not None:
            provider_key.enabled = enabled
        if video_enabled is not None:
            provider_key.video_enabled = video_enabled
        if video_models is not None:
            provider_key.video_models = video_models or None

        await self.db.commit()
        await self.db.refresh(provider_key)
        return provider_key

    async def delete(self, key_id: str) -> bool:
        provider_key = await self.get_by_id(key_id)
        if not provider_key:
            return False
        await self.db.delete(provider_key)
        await self.db.commit()
        return True

    @staticmethod
    def decrypt(provider_key: VideoProviderKey) -> str:
        return decrypt_api_key(provider_key.encrypted_key)

    async def touch(self, provider_key: VideoProviderKey) -> None:
        """Record that a key was just used."""
        provider_key.last_used_at = datetime.now(timezone.utc)
        await self.db.commit()


def key_to_dict(key: VideoProviderKey) -> dict:
    """Public view of a key. Never includes the secret."""
    return {
        "id": key.id,
        "name": key.name,
        "provider": key.provider,
        "keySuffix": key.key_suffix,
        "enabled": key.enabled,
        "videoEnabled": key.video_enabled,
        "videoModels": key.video_models or [],
        "createdAt": key.created_at.isoformat() if key.created_at else None,
        "lastUsedAt": key.last_used_at.isoformat() if key.last_used_at else None,
    }
