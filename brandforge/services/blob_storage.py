"""
S3-compatible blob storage (Cloudflare R2, MinIO, AWS S3).

boto3 is blocking, so every call runs in a worker thread.
"""
import asyncio
import logging
from typing import Optional

import boto3
from botocore.exceptions import ClientError

from brandforge.config import VideoConfig

logger = logging.getLogger(__name__)


class BlobStore:
    """Thin async wrapper around a boto3 S3 client bound to one bucket."""

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_config(cls, config: VideoConfig) -> Optional["BlobStore"]:
        """Build a store from config, or None when blob storage isn't configured."""
        if not config.blob_storage_enabled:
            return None

        client = boto3.client(
            "s3",
            endpoint_url=config.blob_endpoint_url,
            aws_access_key_id=config.blob_access_key_id,
            aws_secret_access_key=config.blob_secret_access_key,
            region_name=config.blob_region,
        )
        return cls(client, config.blob_bucket)

    async def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )

    async def get(self, key: str) -> Optional[tuple[bytes, str]]:
        """Get (body, content_type), or None if the object doesn't exist."""
        def _read():
            try:
                response = self.client.get_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                    return None
                raise
            return response["Body"].read(), response.get("ContentType") or "application/octet-stream"

        return await asyncio.to_thread(_read)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)


def video_blob_key(user_id: str, generation_id: str) -> str:
    return f"videos/{user_id}/{generation_id}.mp4"


def blob_file_url(key: str) -> str:
    """URL of the route that serves a stored blob."""
    return f"/api/video/file/{key}"
