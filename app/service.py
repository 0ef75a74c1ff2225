# app/service.py
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from app import accounts, ledger, tickets
from app.audit import ActorContext, AuditPolicy
from app.database import db_session
from app.errors import Unauthorized
from app.notifier import Notifier, Outcome, OutcomeKind
from app.schemas import (
    Actor,
    AttachProof,
    CreateTicket,
    Decide,
    InboundEvent,
    LedgerEntryOut,
    Statement,
    TicketOut,
    UserOut,
    parse_event,
)

logger = logging.getLogger(__name__)


class TopupService:
    """Entry point for inbound events.

    Each call is one unit of work on a fresh session. Notifications go out
    only after the unit of work has committed.
    """

    def __init__(
        self,
        *,
        gate: AuditPolicy,
        notifier: Notifier,
        admin_chat_id: Optional[str],
        session_factory: Callable[[], Session] | None = None,
        statement_limit: int = 5,
    ):
        self.gate = gate
        self.notifier = notifier
        self.admin_chat_id = admin_chat_id
        self.session_factory = session_factory
        self.statement_limit = statement_limit

    # --------- events ---------

    async def handle(self, event: InboundEvent | dict) -> TicketOut:
        if not isinstance(event, InboundEvent):
            event = parse_event(event)

        payload = event.payload
        if isinstance(payload, CreateTicket):
            return await self._create(event.actor, payload)
        if isinstance(payload, AttachProof):
            return await self._attach(event.actor, payload)
        if isinstance(payload, Decide):
            return await self._decide(event.actor, payload)
        raise TypeError(f"unhandled payload {type(payload).__name__}")

    async def _create(self, actor: Actor, payload: CreateTicket) -> TicketOut:
        with db_session(self.session_factory) as db:
            user = self._upsert(db, actor)
            ticket = tickets.create(db, user_id=user.id, declared_amount=payload.declared_amount)
            view = TicketOut.model_validate(ticket)

        await self._notify(
            self._reply_to(actor),
            Outcome(OutcomeKind.TICKET_CREATED, view.id, view.declared_amount),
        )
        return view

    async def _attach(self, actor: Actor, payload: AttachProof) -> TicketOut:
        with db_session(self.session_factory) as db:
            user = self._upsert(db, actor)
            ticket = tickets.attach_proof(
                db, user_id=user.id, proof_ref=payload.proof_ref, proof_kind=payload.proof_kind,
            )
            view = TicketOut.model_validate(ticket)
            requester = _label(user)

        if self.admin_chat_id:
            await self._notify(
                self.admin_chat_id,
                Outcome(
                    OutcomeKind.PROOF_SUBMITTED,
                    view.id,
                    view.declared_amount,
                    requester=requester,
                    proof_ref=view.proof_ref,
                    proof_kind=view.proof_kind,
                ),
            )
        await self._notify(
            self._reply_to(actor),
            Outcome(OutcomeKind.PROOF_RECEIVED, view.id, view.declared_amount),
        )
        return view

    async def _decide(self, actor: Actor, payload: Decide) -> TicketOut:
        self._authorize(actor, f"decide ticket #{payload.ticket_id}")

        with db_session(self.session_factory) as db:
            self._upsert(db, actor)
            ticket = tickets.decide(
                db,
                ticket_id=payload.ticket_id,
                decision=payload.decision,
                actor_id=actor.external_id,
                audited_amount=payload.audited_amount,
            )
            view = TicketOut.model_validate(ticket)
            owner = accounts.get_user(db, ticket.user_id)
            owner_external_id = owner.external_id
            requester = _label(owner)

        if view.status == tickets.APPROVED:
            outcome = Outcome(OutcomeKind.TICKET_APPROVED, view.id, view.audited_amount, requester=requester)
        else:
            outcome = Outcome(OutcomeKind.TICKET_REJECTED, view.id, view.declared_amount, requester=requester)

        await self._notify(owner_external_id, outcome)
        if self.admin_chat_id:
            await self._notify(self.admin_chat_id, outcome)
        return view

    # --------- queries ---------

    def register(self, actor: Actor) -> UserOut:
        with db_session(self.session_factory) as db:
            return UserOut.model_validate(self._upsert(db, actor))

    def is_auditor(self, actor: Actor) -> bool:
        return self.gate.authorize(ActorContext(actor_id=actor.external_id, channel_id=actor.chat_id))

    def balance(self, actor: Actor) -> int:
        with db_session(self.session_factory) as db:
            user = self._upsert(db, actor)
            return ledger.balance(db, user_id=user.id)

    def statement(self, actor: Actor, *, limit: Optional[int] = None) -> Statement:
        with db_session(self.session_factory) as db:
            user = self._upsert(db, actor)
            entries = ledger.recent_entries(db, user_id=user.id, limit=limit or self.statement_limit)
            return Statement(
                user=UserOut.model_validate(user),
                balance=ledger.balance(db, user_id=user.id),
                entries=[LedgerEntryOut.model_validate(e) for e in entries],
            )

    def pending(self, actor: Actor, *, limit: int = 20) -> List[TicketOut]:
        self._authorize(actor, "list pending tickets")
        with db_session(self.session_factory) as db:
            return [TicketOut.model_validate(x) for x in tickets.list_pending(db, limit=limit)]

    # --------- helpers ---------

    def _authorize(self, actor: Actor, what: str) -> None:
        if not self.is_auditor(actor):
            logger.warning("Unauthorized: %s tried to %s (chat=%s)", actor.external_id, what, actor.chat_id)
            raise Unauthorized(f"{actor.external_id} may not {what}")

    @staticmethod
    def _upsert(db: Session, actor: Actor):
        return accounts.upsert_user(
            db, actor.external_id, display_name=actor.display_name, username=actor.username,
        )

    @staticmethod
    def _reply_to(actor: Actor) -> str:
        return actor.chat_id or actor.external_id

    async def _notify(self, recipient: str, outcome: Outcome) -> None:
        await self.notifier.notify(str(recipient), outcome)


def _label(user) -> str:
    if user.username:
        return f"@{user.username}"
    return user.display_name or user.external_id
