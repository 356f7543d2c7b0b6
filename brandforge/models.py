import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, Float, Text, JSON, Boolean, CheckConstraint
from sqlalchemy.orm import relationship

from brandforge.database import Base


def generate_uuid():
    return str(uuid.uuid4())


def utc_now():
    return datetime.now(timezone.utc)


# Internal generation lifecycle. Terminal states are absorbing.
STATUS_PENDING = "pending"
STATUS_GENERATING = "generating"
STATUS_COMPLETE = "complete"
STATUS_ERROR = "error"

GENERATION_STATUSES = (STATUS_PENDING, STATUS_GENERATING, STATUS_COMPLETE, STATUS_ERROR)
TERMINAL_STATUSES = (STATUS_COMPLETE, STATUS_ERROR)


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=generate_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    is_admin = Column(Boolean, default=False, nullable=False)  # Can manage provider keys
    created_at = Column(DateTime(timezone=True), default=utc_now)

    video_generations = relationship("VideoGeneration", back_populates="user", cascade="all, delete-orphan")


class ChatMessage(Base):
    """
    A message in an onboarding/chat conversation.

    Video generations started from a chat keep a link to their message so the
    finished media can be mirrored onto it.
    """
    __tablename__ = "chat_messages"

    id = Column(String, primary_key=True, default=generate_uuid)
    conversation_id = Column(String, nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    role = Column(String, nullable=False, default="assistant")  # user, assistant, system
    content = Column(Text, nullable=True)

    # Attached media (generated video, image, audio)
    media_type = Column(String, nullable=True)
    media_status = Column(String, nullable=True)  # pending, complete, error
    media_url = Column(String, nullable=True)
    media_thumbnail_url = Column(String, nullable=True)
    media_duration = Column(Float, nullable=True)
    media_blob_key = Column(String, nullable=True)
    media_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)


class VideoProviderKey(Base):
    """
    A stored credential for a video generation provider.

    Keys are tried in creation order; the first one that is both enabled and
    video-enabled wins. `video_models` narrows which provider models the key
    exposes (null or empty = all).
    """
    __tablename__ = "video_provider_keys"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False)
    provider = Column(String, nullable=False, index=True)  # openai, wavespeed
    encrypted_key = Column(Text, nullable=False)
    key_suffix = Column(String, nullable=True)  # Last 4 chars for identification
    enabled = Column(Boolean, default=True, nullable=False)
    video_enabled = Column(Boolean, default=False, nullable=False)
    video_models = Column(JSON, nullable=True)
    created_by_id = Column(String, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    created_by = relationship("User", foreign_keys=[created_by_id])


class VideoGeneration(Base):
    """One request to a video provider and its outcome."""
    __tablename__ = "video_generations"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message_id = Column(String, ForeignKey("chat_messages.id", ondelete="SET NULL"), nullable=True)
    conversation_id = Column(String, nullable=True, index=True)
    brand_profile_id = Column(String, nullable=True, index=True)

    prompt = Column(Text, nullable=False)
    provider = Column(String, nullable=False)
    provider_job_id = Column(String, nullable=True)
    model = Column(String, nullable=True)
    status = Column(String, nullable=False, default=STATUS_PENDING, index=True)

    video_url = Column(String, nullable=True)
    thumbnail_url = Column(String, nullable=True)
    blob_key = Column(String, nullable=True)
    duration_seconds = Column(Float, nullable=True)
    aspect_ratio = Column(String, nullable=True, default="16:9")
    resolution = Column(String, nullable=True)
    cost = Column(Float, nullable=True, default=0)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)  # Set once, on entering complete/error

    user = relationship("User", back_populates="video_generations")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'generating', 'complete', 'error')",
            name="ck_video_generations_status",
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "provider": self.provider,
            "providerJobId": self.provider_job_id,
            "model": self.model,
            "status": self.status,
            "videoUrl": self.video_url,
            "thumbnailUrl": self.thumbnail_url,
            "blobKey": self.blob_key,
            "duration": self.duration_seconds,
            "aspectRatio": self.aspect_ratio,
            "resolution": self.resolution,
            "cost": self.cost,
            "error": self.error,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "conversationId": self.conversation_id,
            "messageId": self.message_id,
            "brandProfileId": self.brand_profile_id,
        }


class ProviderPricingCache(Base):
    """Last live price list fetched from a provider's catalogue API."""
    __tablename__ = "provider_pricing_cache"

    provider = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False, default=list)
    fetched_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
