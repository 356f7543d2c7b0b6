"""
Service layer for Brandforge.

Services encapsulate business logic and database operations,
providing a clean interface for routes and other consumers.
"""
from brandforge.services.blob_storage import BlobStore
from brandforge.services.pricing_cache_service import PricingCacheService
from brandforge.services.video_generation_service import VideoGenerationError, VideoGenerationService
from brandforge.services.video_key_service import VideoKeyService
from brandforge.services.video_status_poller import CancellationToken, VideoStatusPoller

__all__ = [
    "BlobStore",
    "CancellationToken",
    "PricingCacheService",
    "VideoGenerationError",
    "VideoGenerationService",
    "VideoKeyService",
    "VideoStatusPoller",
]
