# app/tickets.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, List

from sqlalchemy import update, desc
from sqlalchemy.orm import Session

from app import models, ledger
from app.accounts import get_user
from app.errors import AlreadyDecided, NoActiveTicket, NotFound
from app.money import ensure_positive_int

logger = logging.getLogger(__name__)

PENDING = models.TicketStatus.PENDING.value
APPROVED = models.TicketStatus.APPROVED.value
REJECTED = models.TicketStatus.REJECTED.value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_id(ticket_id: int) -> None:
    # ids past the column range cannot exist and would overflow the driver
    if not 0 < ticket_id <= models.MAX_BIGINT:
        raise NotFound(f"ticket #{ticket_id} not found")


def get_ticket(db: Session, ticket_id: int) -> models.TopupTicket:
    _check_id(ticket_id)
    ticket = db.get(models.TopupTicket, ticket_id)
    if ticket is None:
        raise NotFound(f"ticket #{ticket_id} not found")
    return ticket


def active_ticket(db: Session, user_id: int) -> Optional[models.TopupTicket]:
    """Most recent PENDING ticket of the user, the one proof attaches to."""
    return (
        db.query(models.TopupTicket)
        .filter(
            models.TopupTicket.user_id == user_id,
            models.TopupTicket.status == PENDING,
        )
        .order_by(desc(models.TopupTicket.id))
        .first()
    )


def list_pending(db: Session, *, limit: int = 20) -> List[models.TopupTicket]:
    return (
        db.query(models.TopupTicket)
        .filter(models.TopupTicket.status == PENDING)
        .order_by(models.TopupTicket.id)
        .limit(limit)
        .all()
    )


def create(db: Session, *, user_id: int, declared_amount: int) -> models.TopupTicket:
    # older PENDING tickets are left as they are
    ensure_positive_int(declared_amount, what="declared_amount")
    get_user(db, user_id)

    ticket = models.TopupTicket(
        user_id=user_id,
        declared_amount=declared_amount,
        status=PENDING,
        created_at=_utcnow(),
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    logger.info("Ticket #%s created: user=%s declared=%s", ticket.id, user_id, declared_amount)
    return ticket


def attach_proof(
    db: Session,
    *,
    user_id: int,
    proof_ref: str,
    proof_kind: models.ProofKind | str | None = None,
) -> models.TopupTicket:
    ticket = active_ticket(db, user_id)
    if ticket is None:
        raise NoActiveTicket(f"user {user_id} has no pending ticket")

    ticket.proof_ref = proof_ref
    ticket.proof_kind = models.ProofKind(proof_kind).value if proof_kind else None
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    logger.info("Proof attached to ticket #%s (user=%s)", ticket.id, user_id)
    return ticket


def decide(
    db: Session,
    *,
    ticket_id: int,
    decision: models.Decision | str,
    actor_id: str,
    audited_amount: Optional[int] = None,
) -> models.TopupTicket:
    """Move a PENDING ticket to APPROVED or REJECTED.

    The status check and the status write are one UPDATE ... WHERE
    status = 'PENDING'; whoever gets rowcount 1 owns the transition. On
    approval the ledger entry is written in the same transaction, so either
    both land or neither does.

    No authorization happens here: callers go through TopupService, which
    checks the audit gate first.
    """
    decision = models.Decision(decision)
    _check_id(ticket_id)
    if audited_amount is not None:
        ensure_positive_int(audited_amount, what="audited_amount")

    T = models.TopupTicket
    values = {
        "audited_by": str(actor_id),
        "audited_at": _utcnow(),
    }
    if decision is models.Decision.APPROVE:
        values["status"] = APPROVED
        # no override: copy declared_amount inside the same statement
        values["audited_amount"] = audited_amount if audited_amount is not None else T.declared_amount
    else:
        values["status"] = REJECTED

    stmt = (
        update(T)
        .where(T.id == ticket_id, T.status == PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )

    try:
        result = db.execute(stmt)
        if result.rowcount != 1:
            db.rollback()
            existing = db.get(T, ticket_id)
            if existing is None:
                raise NotFound(f"ticket #{ticket_id} not found")
            logger.warning(
                "Decision %s on ticket #%s refused: already %s (by=%s)",
                decision.value, ticket_id, existing.status, actor_id,
            )
            raise AlreadyDecided(ticket_id, existing.status)

        ticket = db.get(T, ticket_id, populate_existing=True)

        if decision is models.Decision.APPROVE:
            if db.get(models.User, ticket.user_id) is None:
                raise RuntimeError(
                    f"ticket #{ticket_id} approved for missing user {ticket.user_id}"
                )
            ledger.append(
                db,
                user_id=ticket.user_id,
                amount=int(ticket.audited_amount),
                entry_type=models.EntryType.TOPUP,
                ref_type=models.RefType.TICKET,
                ref_id=ticket.id,
                note=f"Topup ticket #{ticket.id}",
                actor_id=actor_id,
                commit=False,
            )

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(ticket)
    logger.info(
        "Ticket #%s %s by %s (declared=%s audited=%s)",
        ticket.id, ticket.status, actor_id, ticket.declared_amount, ticket.audited_amount,
    )
    return ticket
