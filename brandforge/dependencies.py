"""
Request dependencies for objects built once at startup.

The lifespan hook stores the video config, provider registry and blob
store on `app.state`; routes take them through these functions so tests
can swap them with `app.dependency_overrides`.
"""
from typing import Optional

from fastapi import Request

from brandforge.config import VideoConfig
from brandforge.providers.registry import ProviderRegistry
from brandforge.services.blob_storage import BlobStore


def get_video_config(request: Request) -> VideoConfig:
    return request.app.state.video_config


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_blob_store(request: Request) -> Optional[BlobStore]:
    return getattr(request.app.state, "blob_store", None)
