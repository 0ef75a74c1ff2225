"""End-to-end tests through TopupService with a recording notifier."""

import pytest

from app import ledger, models
from app.errors import AlreadyDecided, InvalidAmount, NoActiveTicket, NotFound, Unauthorized
from app.schemas import Actor

ADMIN_CHAT_ID = "-100500"

USER = {"external_id": "1001", "display_name": "Alice Doe", "username": "alice", "chat_id": "1001"}
ADMIN = {"external_id": "42", "display_name": "Admin", "chat_id": ADMIN_CHAT_ID}
INTRUDER = {"external_id": "666", "display_name": "Mallory", "chat_id": "666"}


def _create(amount):
    return {"actor": USER, "intent": "create-ticket", "declared_amount": amount}


def _proof(ref="file-1", kind="photo"):
    return {"actor": USER, "intent": "attach-proof", "proof_ref": ref, "proof_kind": kind}


def _decide(ticket_id, decision="APPROVE", actor=ADMIN, amount=None):
    return {"actor": actor, "intent": "decide", "ticket_id": ticket_id, "decision": decision, "audited_amount": amount}


def _balance(service):
    return service.balance(Actor(**USER))


@pytest.mark.asyncio
async def test_scenario_a_create_attach_approve(service, notifier):
    """Create 100.00, attach proof, approve without override: balance +10000."""
    assert _balance(service) == 0

    ticket = await service.handle(_create(10000))
    await service.handle(_proof())
    decided = await service.handle(_decide(ticket.id))

    assert decided.status == "APPROVED"
    assert decided.audited_amount == 10000
    assert _balance(service) == 10000
    assert notifier.kinds() == [
        "TICKET_CREATED",
        "PROOF_SUBMITTED",
        "PROOF_RECEIVED",
        "TICKET_APPROVED",
        "TICKET_APPROVED",
    ]


@pytest.mark.asyncio
async def test_scenario_b_proof_lands_on_latest_ticket(service, session_factory):
    t1 = await service.handle(_create(100))
    t2 = await service.handle(_create(250))

    attached = await service.handle(_proof())
    assert attached.id == t2.id

    await service.handle(_decide(t2.id))

    db = session_factory()
    try:
        assert db.get(models.TopupTicket, t1.id).status == "PENDING"
        assert db.get(models.TopupTicket, t1.id).proof_ref is None
    finally:
        db.close()
    assert _balance(service) == 250


@pytest.mark.asyncio
async def test_scenario_c_unauthorized_decide(service, notifier, session_factory):
    ticket = await service.handle(_create(10000))
    await service.handle(_proof())
    sent_before = len(notifier.sent)

    with pytest.raises(Unauthorized):
        await service.handle(_decide(ticket.id, actor=INTRUDER))

    db = session_factory()
    try:
        assert db.get(models.TopupTicket, ticket.id).status == "PENDING"
        assert db.query(models.LedgerEntry).count() == 0
    finally:
        db.close()
    assert len(notifier.sent) == sent_before


@pytest.mark.asyncio
async def test_admin_private_chat_is_not_the_admin_channel(service):
    ticket = await service.handle(_create(100))
    admin_in_private = {**ADMIN, "chat_id": "42"}

    with pytest.raises(Unauthorized):
        await service.handle(_decide(ticket.id, actor=admin_in_private))


@pytest.mark.asyncio
async def test_override_amount_is_credited(service):
    ticket = await service.handle(_create(10000))

    decided = await service.handle(_decide(ticket.id, amount=9000))

    assert decided.declared_amount == 10000
    assert decided.audited_amount == 9000
    assert _balance(service) == 9000


@pytest.mark.asyncio
async def test_reject_notifies_and_never_credits(service, notifier):
    ticket = await service.handle(_create(10000))

    decided = await service.handle(_decide(ticket.id, decision="REJECT"))

    assert decided.status == "REJECTED"
    assert _balance(service) == 0
    recipients = [r for r, o in notifier.sent if o.kind.value == "TICKET_REJECTED"]
    assert recipients == ["1001", ADMIN_CHAT_ID]


@pytest.mark.asyncio
async def test_second_approval_reports_already_decided(service, notifier):
    ticket = await service.handle(_create(10000))
    await service.handle(_decide(ticket.id))
    sent_before = len(notifier.sent)

    with pytest.raises(AlreadyDecided):
        await service.handle(_decide(ticket.id))

    assert _balance(service) == 10000
    # no second "approved" message
    assert len(notifier.sent) == sent_before


@pytest.mark.asyncio
async def test_proof_without_ticket(service, notifier):
    with pytest.raises(NoActiveTicket):
        await service.handle(_proof())
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_bad_amount_rejected(service):
    with pytest.raises(InvalidAmount):
        await service.handle(_create(0))
    with pytest.raises(InvalidAmount):
        await service.handle(_create(10.5))


@pytest.mark.asyncio
async def test_decide_unknown_ticket(service):
    with pytest.raises(NotFound):
        await service.handle(_decide(987))


@pytest.mark.asyncio
async def test_proof_submission_carries_evidence_to_admin(service, notifier):
    ticket = await service.handle(_create(4200))
    await service.handle(_proof(ref="doc-7", kind="document"))

    recipient, outcome = notifier.sent[1]
    assert recipient == ADMIN_CHAT_ID
    assert outcome.ticket_id == ticket.id
    assert outcome.proof_ref == "doc-7"
    assert outcome.proof_kind == "document"
    assert outcome.requester == "@alice"
    assert outcome.amount == 4200


@pytest.mark.asyncio
async def test_statement(service, session_factory):
    for amount in (100, 200, 300):
        t = await service.handle(_create(amount))
        await service.handle(_decide(t.id))

    st = service.statement(Actor(**USER), limit=2)

    assert st.user.external_id == "1001"
    assert st.balance == 600
    assert [e.amount for e in st.entries] == [300, 200]

    db = session_factory()
    try:
        user_id = st.user.id
        assert ledger.balance(db, user_id=user_id) == st.balance
    finally:
        db.close()


@pytest.mark.asyncio
async def test_pending_listing_requires_auditor(service):
    t1 = await service.handle(_create(100))
    await service.handle(_create(200))

    rows = service.pending(Actor(**ADMIN))
    assert [r.id for r in rows][0] == t1.id
    assert len(rows) == 2

    with pytest.raises(Unauthorized):
        service.pending(Actor(**INTRUDER))


def test_register_refreshes_display_name(service):
    service.register(Actor(**USER))
    user = service.register(Actor(**{**USER, "display_name": "Alice D."}))

    assert user.display_name == "Alice D."
    assert user.external_id == "1001"


@pytest.mark.asyncio
async def test_oversized_amounts_are_invalid(service, notifier):
    with pytest.raises(InvalidAmount):
        await service.handle(_create(2**63))

    ticket = await service.handle(_create(100))
    with pytest.raises(InvalidAmount):
        await service.handle(_decide(ticket.id, amount=2**63))

    assert _balance(service) == 0
    assert notifier.kinds() == ["TICKET_CREATED"]
