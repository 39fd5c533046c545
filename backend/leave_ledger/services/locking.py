"""Per-employee serialization of ledger read-decide-write sequences.

Balance-affecting operations (apply, approve, cancel, adjustments and batch
accrual) run inside ``employee_ledger_lock``. Within one process a keyed
``asyncio.Lock`` serializes callers; on PostgreSQL a transaction-scoped
advisory lock on the same key extends that across processes and is released
when the caller's transaction ends.
"""

from __future__ import annotations

import asyncio
import hashlib
import uuid
import weakref
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text

from leave_ledger.config import get_settings
from leave_ledger.exceptions import LedgerBusyError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession

_locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = weakref.WeakValueDictionary()


def _get_lock(employee_id: uuid.UUID) -> asyncio.Lock:
    lock = _locks.get(employee_id)
    if lock is None:
        lock = asyncio.Lock()
        _locks[employee_id] = lock
    return lock


def advisory_key(employee_id: uuid.UUID) -> int:
    """Map an employee id onto a signed 64-bit advisory lock key."""
    digest = hashlib.blake2b(b"leave-ledger:" + employee_id.bytes, digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


@asynccontextmanager
async def employee_ledger_lock(
    session: AsyncSession,
    employee_id: uuid.UUID,
    *,
    timeout: float | None = None,
) -> AsyncIterator[None]:
    """Hold the ledger lock of one employee for the duration of the block.

    Raises LedgerBusyError (retryable) if the lock cannot be acquired within
    ``timeout`` seconds (``lock_timeout_seconds`` by default).
    """
    if timeout is None:
        timeout = get_settings().lock_timeout_seconds

    lock = _get_lock(employee_id)
    try:
        async with asyncio.timeout(timeout):
            await lock.acquire()
    except TimeoutError as exc:
        raise LedgerBusyError from exc

    try:
        if session.get_bind().dialect.name == "postgresql":
            try:
                async with asyncio.timeout(timeout):
                    await session.execute(
                        text("SELECT pg_advisory_xact_lock(:key)"),
                        {"key": advisory_key(employee_id)},
                    )
            except TimeoutError as exc:
                raise LedgerBusyError from exc
        yield
    finally:
        lock.release()
