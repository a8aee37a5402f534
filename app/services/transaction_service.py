"""
Transaction ledger.

Newest-first list of TransactionLogEntry dicts under the store key
"transactionHistory", capped at PAYONE_TRANSACTION_HISTORY_LIMIT entries.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.store import KeyValueStore
from app.schemas.payone import TransactionHistoryFilters, TransactionLogEntry

logger = logging.getLogger(__name__)

HISTORY_KEY = "transactionHistory"


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        return _as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except (TypeError, ValueError):
        return None


class TransactionService:
    def __init__(self, store: KeyValueStore, limit: Optional[int] = None):
        self.store = store
        self.limit = limit or settings.PAYONE_TRANSACTION_HISTORY_LIMIT
        # Read-modify-write of the history must not interleave
        self._lock = asyncio.Lock()
        self._sequence = itertools.count()

    def _next_id(self) -> str:
        # Millisecond clock plus a 3-digit sequence, unique within one millisecond
        return f"{int(time.time() * 1000)}{next(self._sequence) % 1000:03d}"

    async def _load(self) -> List[Dict[str, Any]]:
        return await self.store.get(HISTORY_KEY) or []

    async def log_transaction(
        self,
        *,
        request_type: Optional[str],
        status: Optional[str],
        txid: Optional[str] = None,
        reference: Optional[str] = None,
        amount: Any = None,
        currency: Optional[str] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        customer_message: Optional[str] = None,
        raw_request: Optional[Dict[str, Any]] = None,
        raw_response: Optional[Dict[str, Any]] = None,
    ) -> TransactionLogEntry:
        now = _iso_now()
        entry = TransactionLogEntry(
            id=self._next_id(),
            timestamp=now,
            txid=txid,
            reference=reference,
            request_type=request_type or "unknown",
            amount=amount,
            currency=currency or "EUR",
            status=status or "unknown",
            error_code=error_code,
            error_message=error_message,
            customer_message=customer_message,
            raw_request=raw_request,
            raw_response=raw_response,
            created_at=now,
            updated_at=now,
        )

        async with self._lock:
            history = await self._load()
            history.insert(0, entry.model_dump())
            if len(history) > self.limit:
                history = history[: self.limit]
            await self.store.set(HISTORY_KEY, history)

        logger.info(
            f"[payone] transaction logged — type={entry.request_type}, "
            f"status={entry.status}, txid={entry.txid}, reference={entry.reference}"
        )
        return entry

    async def get_transaction_history(
        self,
        filters: Optional[TransactionHistoryFilters] = None,
    ) -> List[TransactionLogEntry]:
        """Entries matching ALL given filters, newest first."""
        filters = filters or TransactionHistoryFilters()
        entries = [TransactionLogEntry.model_validate(e) for e in await self._load()]

        exact = {
            "status": filters.status,
            "request_type": filters.request_type,
            "txid": filters.txid,
            "reference": filters.reference,
        }
        for field, expected in exact.items():
            if expected:
                entries = [e for e in entries if getattr(e, field) == expected]

        if filters.date_from or filters.date_to:
            date_from = _as_utc(filters.date_from) if filters.date_from else None
            date_to = _as_utc(filters.date_to) if filters.date_to else None
            entries = [
                e for e in entries
                if _in_range(_parse_timestamp(e.timestamp), date_from, date_to)
            ]

        return entries


def _in_range(
    ts: Optional[datetime],
    date_from: Optional[datetime],
    date_to: Optional[datetime],
) -> bool:
    if ts is None:
        return False
    if date_from and ts < date_from:
        return False
    if date_to and ts > date_to:
        return False
    return True
