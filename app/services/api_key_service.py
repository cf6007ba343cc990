"""Delegate API key service"""

import asyncio
import weakref
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import config, logger
from app.core.errors import StoreUnavailableError
from app.models.delegate_api_key import DelegateApiKey, as_utc
from app.utils.crypto import constant_time_compare, generate_api_key, hash_api_key

KEY_PREFIX_DISPLAY_LENGTH = 12


class DelegateApiKeyService:
    """Service for the delegate API key lifecycle: issue, list, revoke, authenticate"""

    def __init__(self, key_prefix: str = "dak_"):
        self.key_prefix = key_prefix
        # Serializes conflicting mutations of one user's keys
        self._user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    async def create_key(
        self,
        db: AsyncSession,
        user_id: str,
        name: str,
        expires_at: datetime | None = None,
    ) -> tuple[DelegateApiKey, str]:
        """
        Create a new delegate API key

        Args:
            db: Database session
            user_id: Owner of the key
            name: Display name
            expires_at: Optional expiry; naive values are treated as UTC

        Returns:
            Tuple of (key record, raw secret). The raw secret is not stored
            and cannot be recovered later.

        Raises:
            StoreUnavailableError: If the database fails
        """
        raw_key = generate_api_key(self.key_prefix)
        record = DelegateApiKey(
            user_id=user_id,
            name=name,
            secret_hash=hash_api_key(raw_key),
            key_prefix=raw_key[:KEY_PREFIX_DISPLAY_LENGTH],
            created_at=datetime.now(timezone.utc),
            expires_at=as_utc(expires_at),
            revoked=False,
        )

        async with self._lock_for(user_id):
            try:
                db.add(record)
                await db.commit()
                await db.refresh(record)
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to create API key for user {user_id}: {e}")
                raise StoreUnavailableError(operation="create", reason=str(e)) from e

        logger.info(f"Delegate API key created: id={record.id}, prefix={record.key_prefix}, user={user_id}")

        return record, raw_key

    async def list_keys(
        self,
        db: AsyncSession,
        user_id: str,
    ) -> list[DelegateApiKey]:
        """
        List a user's API keys, newest first

        Args:
            db: Database session
            user_id: Owner of the keys

        Returns:
            Key records (callers must not expose secret_hash)
        """
        try:
            result = await db.execute(
                select(DelegateApiKey)
                .where(DelegateApiKey.user_id == user_id)
                .order_by(DelegateApiKey.created_at.desc())
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to list API keys for user {user_id}: {e}")
            raise StoreUnavailableError(operation="list", reason=str(e)) from e
        return list(result.scalars().all())

    async def revoke_key(
        self,
        db: AsyncSession,
        user_id: str,
        key_id: str,
    ) -> bool:
        """
        Revoke an API key

        Revoking an already revoked key is a no-op success.

        Args:
            db: Database session
            user_id: Owner of the key
            key_id: Key ID

        Returns:
            True if revoked (or already revoked), False if the key does not
            exist for this user
        """
        async with self._lock_for(user_id):
            try:
                result = await db.execute(
                    select(DelegateApiKey).where(
                        DelegateApiKey.id == key_id,
                        DelegateApiKey.user_id == user_id,
                    )
                )
                record = result.scalar_one_or_none()
                if not record:
                    return False

                if record.revoked:
                    logger.debug(f"API key already revoked: {key_id}")
                    return True

                record.revoked = True
                record.revoked_at = datetime.now(timezone.utc)
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Failed to revoke API key {key_id}: {e}")
                raise StoreUnavailableError(operation="revoke", reason=str(e)) from e

        logger.info(f"Delegate API key revoked: id={key_id}, user={user_id}")

        return True

    async def authenticate(
        self,
        db: AsyncSession,
        raw_key: str,
    ) -> str | None:
        """
        Validate a raw API key presented by a connecting delegate

        Expiry is checked against the current time on every call.

        Args:
            db: Database session
            raw_key: Raw API key

        Returns:
            Owning user_id if valid, None otherwise
        """
        if not raw_key:
            return None

        secret_hash = hash_api_key(raw_key)
        try:
            result = await db.execute(
                select(DelegateApiKey).where(DelegateApiKey.secret_hash == secret_hash)
            )
            record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to look up API key: {e}")
            raise StoreUnavailableError(operation="authenticate", reason=str(e)) from e

        if not record or not constant_time_compare(secret_hash, record.secret_hash):
            logger.warning("API key authentication failed: unknown key")
            return None

        now = datetime.now(timezone.utc)
        if not record.is_valid(now):
            reason = "revoked" if record.revoked else "expired"
            logger.warning(f"API key authentication failed: {reason} ({record.key_prefix})")
            return None

        user_id = record.user_id
        key_prefix = record.key_prefix
        try:
            record.last_used_at = now
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning(f"Failed to update last_used_at for {key_prefix}: {e}")

        logger.debug(f"API key authenticated: {key_prefix} (user: {user_id})")
        return user_id


# Global instance
api_key_service = DelegateApiKeyService(key_prefix=config.api_key_prefix)
