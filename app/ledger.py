# app/ledger.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, List

from sqlalchemy import func, desc
from sqlalchemy.orm import Session

from app import models
from app.errors import InvalidAmount

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def append(
    db: Session,
    *,
    user_id: int,
    amount: int,
    entry_type: models.EntryType | str,
    actor_id: str,
    ref_type: Optional[models.RefType | str] = None,
    ref_id: Optional[int] = None,
    note: Optional[str] = None,
    commit: bool = True,
) -> models.LedgerEntry:
    """Insert one immutable entry.

    Authorization is the caller's job. With commit=False the row is only
    flushed, so it lands or vanishes together with the caller's transaction.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount("amount must be an integer number of minor units")
    if amount == 0:
        raise InvalidAmount("amount must be non-zero")
    if abs(amount) > models.MAX_BIGINT:
        raise InvalidAmount("amount is too large")

    row = models.LedgerEntry(
        user_id=user_id,
        amount=amount,
        type=models.EntryType(entry_type).value,
        ref_type=(models.RefType(ref_type).value if ref_type else None),
        ref_id=ref_id,
        note=note,
        created_by=str(actor_id),
        created_at=_utcnow(),
    )
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    else:
        db.flush()

    logger.info(
        "Ledger append: entry=%s user=%s amount=%s type=%s ref=%s#%s by=%s",
        row.id, user_id, amount, row.type, row.ref_type, ref_id, actor_id,
    )
    return row


def balance(db: Session, *, user_id: int) -> int:
    total = (
        db.query(func.coalesce(func.sum(models.LedgerEntry.amount), 0))
        .filter(models.LedgerEntry.user_id == user_id)
        .scalar()
    )
    return int(total)


def recent_entries(db: Session, *, user_id: int, limit: int = 5) -> List[models.LedgerEntry]:
    return (
        db.query(models.LedgerEntry)
        .filter(models.LedgerEntry.user_id == user_id)
        .order_by(desc(models.LedgerEntry.id))
        .limit(limit)
        .all()
    )


def entries_for_ref(db: Session, *, ref_type: models.RefType | str, ref_id: int) -> List[models.LedgerEntry]:
    return (
        db.query(models.LedgerEntry)
        .filter(
            models.LedgerEntry.ref_type == models.RefType(ref_type).value,
            models.LedgerEntry.ref_id == ref_id,
        )
        .order_by(models.LedgerEntry.id)
        .all()
    )
