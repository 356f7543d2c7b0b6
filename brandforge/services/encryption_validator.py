"""
Encryption Key Validator

Checks that the current ENCRYPTION_KEY can decrypt the stored video
provider keys. A changed key otherwise only shows up later, as every
generation request failing with a decrypt error.
"""
from typing import Any, Dict

from cryptography.fernet import InvalidToken
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from brandforge.auth import decrypt_api_key
from brandforge.models import VideoProviderKey


async def validate_encryption_key(session_factory: async_sessionmaker) -> Dict[str, Any]:
    """
    Try to decrypt every stored provider key.

    Returns:
        Dict with:
        - status: "ok" | "warning" | "error"
        - message or error: Human-readable status
        - total_keys / decryptable_keys: counts
        - failed_keys: id, name and suffix of keys that failed (when any)
    """
    try:
        async with session_factory() as session:
            result = await session.execute(select(VideoProviderKey))
            keys = result.scalars().all()
    except Exception as e:
        return {
            "status": "error",
            "error": f"Failed to validate encryption: {e}",
            "total_keys": 0,
            "decryptable_keys": 0,
        }

    total_keys = len(keys)
    if total_keys == 0:
        return {
            "status": "ok",
            "message": "No provider keys configured",
            "total_keys": 0,
            "decryptable_keys": 0,
        }

    decryptable = 0
    failed_keys = []
    for key in keys:
        try:
            decrypt_api_key(key.encrypted_key)
            decryptable += 1
        except InvalidToken:
            failed_keys.append({"id": key.id, "name": key.name, "suffix": key.key_suffix})

    if not failed_keys:
        return {
            "status": "ok",
            "message": f"All {total_keys} provider keys can be decrypted",
            "total_keys": total_keys,
            "decryptable_keys": decryptable,
        }

    if decryptable > 0:
        # Some keys work, some don't
        return {
            "status": "warning",
            "message": f"{len(failed_keys)} of {total_keys} keys cannot be decrypted",
            "total_keys": total_keys,
            "decryptable_keys": decryptable,
            "failed_keys": failed_keys,
        }

    return {
        "status": "error",
        "error": "ENCRYPTION_KEY mismatch - cannot decrypt any provider keys",
        "total_keys": total_keys,
        "decryptable_keys": 0,
        "failed_keys": failed_keys,
    }
