# app/models.py
from __future__ import annotations

import enum

from sqlalchemy import (
    Column,
    BigInteger,
    String,
    DateTime,
    Integer,
    Text,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

# largest value a BigInteger column (and SQLite INTEGER) can hold
MAX_BIGINT = 2**63 - 1


class EntryType(str, enum.Enum):
    TOPUP = "TOPUP"
    ADJUSTMENT = "ADJUSTMENT"


class RefType(str, enum.Enum):
    TICKET = "TICKET"


class TicketStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Decision(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class ProofKind(str, enum.Enum):
    PHOTO = "photo"
    DOCUMENT = "document"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # platform identity (telegram user id); never changes once written
    external_id = Column(String(64), nullable=False, unique=True, index=True)
    display_name = Column(String(256), nullable=True)
    username = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)


class LedgerEntry(Base):
    """One signed movement of credit, in minor units.

    Rows are only ever inserted. Balance is SUM(amount) per user.
    """

    __tablename__ = "credit_ledger"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    amount = Column(BigInteger, nullable=False)
    type = Column(String(16), nullable=False)  # TOPUP / ADJUSTMENT
    ref_type = Column(String(16), nullable=True)  # TICKET
    ref_id = Column(Integer, nullable=True)
    note = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)

    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_credit_ledger_amount_nonzero"),
        Index("ix_credit_ledger_user_id", "user_id"),
        Index("ix_credit_ledger_ref", "ref_type", "ref_id"),
    )


class TopupTicket(Base):
    __tablename__ = "topup_tickets"

    id = Column(Integer, primary_key=True, autoincrement=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    declared_amount = Column(BigInteger, nullable=False)

    # opaque handle (telegram file_id); bytes live elsewhere
    proof_ref = Column(String(256), nullable=True)
    proof_kind = Column(String(16), nullable=True)  # photo / document

    status = Column(String(16), nullable=False, default=TicketStatus.PENDING.value)

    audited_amount = Column(BigInteger, nullable=True)
    audited_by = Column(String(64), nullable=True)
    audited_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING','APPROVED','REJECTED')",
            name="ck_topup_tickets_status",
        ),
        CheckConstraint("declared_amount > 0", name="ck_topup_tickets_declared_positive"),
        Index("ix_topup_tickets_user_status", "user_id", "status"),
    )
