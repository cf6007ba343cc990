"""
Tests for DelegateApiKeyService against an in-memory database.
"""

import asyncio
import gc
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.core.errors import StoreUnavailableError
from app.models.delegate_api_key import DelegateApiKey
from app.utils.crypto import hash_api_key


@pytest.mark.asyncio
async def test_create_returns_raw_secret_once(key_service, db_session):
    record, raw_key = await key_service.create_key(db_session, "user-1", "Laptop")

    assert raw_key.startswith("dak_")
    assert record.user_id == "user-1"
    assert record.name == "Laptop"
    assert record.key_prefix == raw_key[:12]
    assert record.revoked is False
    assert record.expires_at is None

    # Only the hash is stored
    stored = (await db_session.execute(select(DelegateApiKey))).scalar_one()
    assert stored.secret_hash == hash_api_key(raw_key)
    assert raw_key not in (stored.secret_hash, stored.key_prefix)


@pytest.mark.asyncio
async def test_keys_are_unique(key_service, db_session):
    _, first = await key_service.create_key(db_session, "user-1", "A")
    _, second = await key_service.create_key(db_session, "user-1", "B")

    assert first != second


@pytest.mark.asyncio
async def test_authenticate_repeatedly(key_service, db_session):
    """Creation is not single-use; only the display of the secret is."""
    _, raw_key = await key_service.create_key(db_session, "user-1", "Laptop")

    assert await key_service.authenticate(db_session, raw_key) == "user-1"
    assert await key_service.authenticate(db_session, raw_key) == "user-1"


@pytest.mark.asyncio
async def test_authenticate_updates_last_used(key_service, db_session):
    record, raw_key = await key_service.create_key(db_session, "user-1", "Laptop")
    assert record.last_used_at is None

    await key_service.authenticate(db_session, raw_key)

    keys = await key_service.list_keys(db_session, "user-1")
    assert keys[0].last_used_at is not None


@pytest.mark.asyncio
async def test_authenticate_rejects_unknown_and_empty(key_service, db_session):
    await key_service.create_key(db_session, "user-1", "Laptop")

    assert await key_service.authenticate(db_session, "dak_not-a-real-key") is None
    assert await key_service.authenticate(db_session, "") is None


@pytest.mark.asyncio
async def test_revoked_key_never_authenticates(key_service, db_session):
    record, raw_key = await key_service.create_key(db_session, "user-1", "Laptop")

    assert await key_service.revoke_key(db_session, "user-1", record.id) is True

    assert await key_service.authenticate(db_session, raw_key) is None
    keys = await key_service.list_keys(db_session, "user-1")
    assert keys[0].revoked is True
    assert keys[0].revoked_at is not None


@pytest.mark.asyncio
async def test_expired_key_never_authenticates(key_service, db_session):
    past = datetime.now(timezone.utc) - timedelta(minutes=1)
    _, raw_key = await key_service.create_key(db_session, "user-1", "Old", expires_at=past)

    assert await key_service.authenticate(db_session, raw_key) is None


@pytest.mark.asyncio
async def test_expiry_checked_at_call_time(key_service, db_session):
    soon = datetime.now(timezone.utc) + timedelta(milliseconds=300)
    _, raw_key = await key_service.create_key(db_session, "user-1", "Short", expires_at=soon)

    assert await key_service.authenticate(db_session, raw_key) == "user-1"
    await asyncio.sleep(0.4)
    assert await key_service.authenticate(db_session, raw_key) is None


@pytest.mark.asyncio
async def test_naive_expiry_treated_as_utc(key_service, db_session):
    future = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(hours=1)
    record, raw_key = await key_service.create_key(db_session, "user-1", "Naive", expires_at=future)

    assert await key_service.authenticate(db_session, raw_key) == "user-1"


@pytest.mark.asyncio
async def test_revoke_twice_is_noop_success(key_service, db_session):
    record, _ = await key_service.create_key(db_session, "user-1", "Laptop")

    assert await key_service.revoke_key(db_session, "user-1", record.id) is True
    first_revoked_at = (await key_service.list_keys(db_session, "user-1"))[0].revoked_at

    assert await key_service.revoke_key(db_session, "user-1", record.id) is True
    assert (await key_service.list_keys(db_session, "user-1"))[0].revoked_at == first_revoked_at


@pytest.mark.asyncio
async def test_revoke_unknown_or_foreign_key(key_service, db_session):
    record, raw_key = await key_service.create_key(db_session, "user-1", "Laptop")

    assert await key_service.revoke_key(db_session, "user-1", "no-such-key") is False
    assert await key_service.revoke_key(db_session, "user-2", record.id) is False
    assert await key_service.authenticate(db_session, raw_key) == "user-1"


@pytest.mark.asyncio
async def test_concurrent_revokes_apply_once(key_service, session_factory):
    async with session_factory() as db:
        record, _ = await key_service.create_key(db, "user-1", "Laptop")

    async def revoke():
        async with session_factory() as db:
            return await key_service.revoke_key(db, "user-1", record.id)

    results = await asyncio.gather(revoke(), revoke(), revoke())

    assert results == [True, True, True]


@pytest.mark.asyncio
async def test_list_keys_newest_first_and_scoped(key_service, db_session):
    await key_service.create_key(db_session, "user-1", "first")
    await asyncio.sleep(0.01)
    await key_service.create_key(db_session, "user-1", "second")
    await key_service.create_key(db_session, "user-2", "foreign")

    keys = await key_service.list_keys(db_session, "user-1")

    assert [k.name for k in keys] == ["second", "first"]


@pytest.mark.asyncio
async def test_store_failure_raises_store_unavailable(key_service):
    db = MagicMock()
    db.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("database is locked")))
    db.rollback = AsyncMock()

    with pytest.raises(StoreUnavailableError) as exc_info:
        await key_service.list_keys(db, "user-1")

    assert exc_info.value.error_code == "STORE_UNAVAILABLE"

    with pytest.raises(StoreUnavailableError):
        await key_service.authenticate(db, "dak_whatever")

    with pytest.raises(StoreUnavailableError):
        await key_service.revoke_key(db, "user-1", "key-id")


def test_model_validity_checks():
    now = datetime.now(timezone.utc)
    key = DelegateApiKey(
        user_id="user-1",
        name="k",
        secret_hash="x" * 64,
        key_prefix="dak_x",
        revoked=False,
        expires_at=(now + timedelta(hours=1)).replace(tzinfo=None),
    )

    assert key.is_valid(now) is True
    assert key.is_expired(now + timedelta(hours=2)) is True
    assert key.is_valid(now + timedelta(hours=2)) is False

    key.revoked = True
    assert key.is_valid(now) is False


@pytest.mark.asyncio
async def test_user_locks_released_when_idle(key_service, db_session):
    record, _ = await key_service.create_key(db_session, "user-1", "Laptop")
    await key_service.revoke_key(db_session, "user-1", record.id)
    gc.collect()

    assert "user-1" not in key_service._user_locks
