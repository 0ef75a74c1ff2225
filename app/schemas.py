# app/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

from app.errors import InvalidAmount, InvalidEvent
from app.models import Decision, ProofKind

_AMOUNT_FIELDS = ("declared_amount", "audited_amount")


# -------- Inbound events --------

class Actor(BaseModel):
    # telegram hands out numeric ids
    model_config = ConfigDict(coerce_numbers_to_str=True)

    external_id: str
    display_name: Optional[str] = None
    username: Optional[str] = None
    chat_id: Optional[str] = None


class CreateTicket(BaseModel):
    intent: Literal["create-ticket"] = "create-ticket"
    # positivity is the workflow's check (InvalidAmount), not a parse error
    declared_amount: StrictInt


class AttachProof(BaseModel):
    intent: Literal["attach-proof"] = "attach-proof"
    proof_ref: str = Field(min_length=1)
    proof_kind: ProofKind = ProofKind.PHOTO


class Decide(BaseModel):
    intent: Literal["decide"] = "decide"
    ticket_id: StrictInt
    decision: Decision
    audited_amount: Optional[StrictInt] = None


Payload = Annotated[Union[CreateTicket, AttachProof, Decide], Field(discriminator="intent")]


class InboundEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    actor: Actor
    payload: Payload


def parse_event(raw: dict) -> InboundEvent:
    """Validate a loosely-typed event dict once, at the boundary.

    Accepts either {"actor": ..., "payload": {...}} or the flat form with
    "intent" next to "actor".
    """
    data = dict(raw or {})
    if "payload" not in data and "intent" in data:
        actor = data.pop("actor", None)
        data = {"actor": actor, "payload": data}
    try:
        return InboundEvent.model_validate(data)
    except ValidationError as e:
        errors = e.errors()
        if errors and all(err["loc"] and err["loc"][-1] in _AMOUNT_FIELDS for err in errors):
            raise InvalidAmount(str(e)) from e
        raise InvalidEvent(str(e)) from e


# -------- Views --------

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    external_id: str
    display_name: Optional[str] = None
    username: Optional[str] = None
    created_at: Optional[datetime] = None


class LedgerEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: int
    type: str
    ref_type: Optional[str] = None
    ref_id: Optional[int] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    declared_amount: int
    proof_ref: Optional[str] = None
    proof_kind: Optional[str] = None
    status: str
    audited_amount: Optional[int] = None
    audited_by: Optional[str] = None
    audited_at: Optional[datetime] = None


class Statement(BaseModel):
    user: UserOut
    balance: int
    entries: List[LedgerEntryOut]
