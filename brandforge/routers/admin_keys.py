"""
Admin management of video provider keys.

Keys are stored encrypted; responses only ever expose the last four
characters. Also hosts the WaveSpeed key check and live pricing lookup.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from brandforge.auth import require_admin
from brandforge.database import get_db
from brandforge.dependencies import get_registry
from brandforge.models import User
from brandforge.providers.registry import PROVIDER_NAMES, ProviderRegistry
from brandforge.services.pricing_cache_service import PricingCacheService
from brandforge.services.video_key_service import VideoKeyService, key_to_dict

router = APIRouter(prefix="/api/admin/video-keys", tags=["admin"])


class CreateVideoKeyRequest(BaseModel):
    """Request body for adding a provider key."""
    model_config = ConfigDict(populate_by_name=True)

    provider: str
    api_key: str = Field(alias="apiKey")
    name: str = "Default"
    enabled: bool = True
    video_enabled: bool = Field(default=False, alias="videoEnabled")
    video_models: Optional[list[str]] = Field(default=None, alias="videoModels")


class UpdateVideoKeyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    enabled: Optional[bool] = None
    video_enabled: Optional[bool] = Field(default=None, alias="videoEnabled")
    video_models: Optional[list[str]] = Field(default=None, alias="videoModels")


class ValidateKeyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: Optional[str] = Field(default=None, alias="apiKey")


@router.get("")
async def list_video_keys(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    keys = await VideoKeyService(db).list_all()
    return {"keys": [key_to_dict(k) for k in keys]}


@router.post("", status_code=201)
async def create_video_key(
    body: CreateVideoKeyRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Add a provider key. The provider must be one the registry knows."""
    if body.provider not in PROVIDER_NAMES:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown provider. Choose from: {', '.join(PROVIDER_NAMES)}",
        )
    if not body.api_key.strip():
        raise HTTPException(status_code=400, detail="API key is required")

    key = await VideoKeyService(db).create(
        name=body.name or "Default",
        provider=body.provider,
        key=body.api_key.strip(),
        created_by_id=admin.id,
        enabled=body.enabled,
        video_enabled=body.video_enabled,
        video_models=body.video_models,
    )
    return key_to_dict(key)


@router.patch("/{key_id}")
async def update_video_key(
    key_id: str,
    body: UpdateVideoKeyRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    key = await VideoKeyService(db).update(
        key_id,
        name=body.name,
        new_key=body.api_key.strip() if body.api_key else None,
        enabled=body.enabled,
        video_enabled=body.video_enabled,
        video_models=body.video_models,
    )
    if not key:
        raise HTTPException(status_code=404, detail="Provider key not found")
    return key_to_dict(key)


@router.delete("/{key_id}")
async def delete_video_key(
    key_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await VideoKeyService(db).delete(key_id):
        raise HTTPException(status_code=404, detail="Provider key not found")
    return {"message": "Provider key deleted", "id": key_id}


@router.post("/wavespeed/validate")
async def validate_wavespeed_key(
    body: ValidateKeyRequest,
    admin: User = Depends(require_admin),
    registry: ProviderRegistry = Depends(get_registry),
):
    """Check a WaveSpeed key against the balance endpoint."""
    if not body.api_key:
        raise HTTPException(status_code=400, detail="API key is required")

    provider = registry.get("wavespeed")
    if provider is None:
        raise HTTPException(status_code=503, detail="WaveSpeed provider not configured")
    return await provider.validate_key(body.api_key)


@router.get("/wavespeed/pricing")
async def wavespeed_pricing(
    refresh: bool = False,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry),
):
    """Live WaveSpeed model pricing, cached for 24 hours. `?refresh=true` bypasses the cache."""
    return await PricingCacheService(db, registry).get_pricing(refresh=refresh)
