"""
Live WaveSpeed pricing with a 24 hour database cache.

The catalogue is fetched with the first enabled WaveSpeed key and cached in
`provider_pricing_cache`. Failures are reported in the returned payload
rather than raised, so the admin UI always gets a renderable answer.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from brandforge.models import ProviderPricingCache, VideoProviderKey
from brandforge.providers.registry import ProviderRegistry
from brandforge.services.video_key_service import VideoKeyService

logger = logging.getLogger(__name__)

WAVESPEED = "wavespeed"
CACHE_TTL = timedelta(hours=24)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PricingCacheService:
    """Service for the cached WaveSpeed price list."""

    def __init__(self, db: AsyncSession, registry: ProviderRegistry):
        self.db = db
        self.registry = registry

    async def get_cached(self, provider: str = WAVESPEED) -> Optional[ProviderPricingCache]:
        result = await self.db.execute(
            select(ProviderPricingCache).where(ProviderPricingCache.provider == provider)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def is_fresh(entry: ProviderPricingCache, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now - _as_utc(entry.fetched_at) < CACHE_TTL

    async def _first_wavespeed_key(self) -> Optional[VideoProviderKey]:
        result = await self.db.execute(
            select(VideoProviderKey)
            .where(
                VideoProviderKey.provider == WAVESPEED,
                VideoProviderKey.enabled == True,
            )
            .order_by(VideoProviderKey.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_pricing(self, refresh: bool = False) -> dict:
        """
        Get WaveSpeed model pricing.

        Returns {"models": [...], "cached": bool, "fetchedAt": iso} on success,
        or {"models": [], "error": str, "cached": False} on failure.
        """
        if not refresh:
            try:
                entry = await self.get_cached()
                if entry and self.is_fresh(entry):
                    return {
                        "models": entry.payload or [],
                        "cached": True,
                        "fetchedAt": _as_utc(entry.fetched_at).isoformat(),
                    }
            except Exception as e:
                logger.warning(f"Pricing cache read failed: {e}")

        provider = self.registry.get(WAVESPEED)
        key = await self._first_wavespeed_key()
        if provider is None or key is None:
            return {
                "models": [],
                "error": "No WaveSpeed API key configured. Add a WaveSpeed key first.",
                "cached": False,
            }

        try:
            models = await provider.fetch_model_pricing(VideoKeyService.decrypt(key))
        except Exception as e:
            logger.warning(f"WaveSpeed pricing fetch failed: {e}")
            return {"models": [], "error": str(e) or "Failed to fetch pricing", "cached": False}

        fetched_at = datetime.now(timezone.utc)
        await self._store(models, fetched_at)
        return {"models": models, "cached": False, "fetchedAt": fetched_at.isoformat()}

    async def _store(self, models: list[dict], fetched_at: datetime) -> None:
        try:
            entry = await self.get_cached()
            if entry is None:
                self.db.add(ProviderPricingCache(provider=WAVESPEED, payload=models, fetched_at=fetched_at))
            else:
                entry.payload = models
                entry.fetched_at = fetched_at
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.warning(f"Pricing cache write failed: {e}")
