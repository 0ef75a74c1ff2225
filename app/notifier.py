# app/notifier.py
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.constants import ParseMode
from telegram.error import TelegramError

from app.i18n import t
from app.money import format_amount

logger = logging.getLogger(__name__)


class OutcomeKind(str, enum.Enum):
    TICKET_CREATED = "TICKET_CREATED"
    PROOF_RECEIVED = "PROOF_RECEIVED"
    PROOF_SUBMITTED = "PROOF_SUBMITTED"
    TICKET_APPROVED = "TICKET_APPROVED"
    TICKET_REJECTED = "TICKET_REJECTED"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    ticket_id: int
    amount: int
    requester: Optional[str] = None
    proof_ref: Optional[str] = None
    proof_kind: Optional[str] = None


class Notifier(Protocol):
    async def notify(self, recipient: str, outcome: Outcome) -> None: ...


def decision_markup(ticket_id: int, lang: str = "en") -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton(t(lang, "BUTTON_APPROVE"), callback_data=f"approve:{ticket_id}"),
                InlineKeyboardButton(t(lang, "BUTTON_REJECT"), callback_data=f"reject:{ticket_id}"),
            ]
        ]
    )


def render(outcome: Outcome, lang: str = "en") -> str:
    return t(lang, f"OUTCOME_{outcome.kind.value}").format(
        ticket_id=outcome.ticket_id,
        amount=format_amount(outcome.amount),
        requester=outcome.requester or "?",
    )


class TelegramNotifier:
    """Delivers outcomes as Telegram messages.

    Proof submissions go to the admin chat with the evidence itself and the
    approve/reject buttons attached.
    """

    def __init__(self, bot: Bot, *, admin_chat_id: Optional[str], lang: str = "en"):
        self.bot = bot
        self.admin_chat_id = admin_chat_id
        self.lang = lang

    async def notify(self, recipient: str, outcome: Outcome) -> None:
        text = render(outcome, self.lang)
        try:
            if outcome.kind is OutcomeKind.PROOF_SUBMITTED and outcome.proof_ref:
                markup = decision_markup(outcome.ticket_id, self.lang)
                if outcome.proof_kind == "document":
                    await self.bot.send_document(
                        recipient, outcome.proof_ref, caption=text,
                        parse_mode=ParseMode.HTML, reply_markup=markup,
                    )
                else:
                    await self.bot.send_photo(
                        recipient, outcome.proof_ref, caption=text,
                        parse_mode=ParseMode.HTML, reply_markup=markup,
                    )
                return
            await self.bot.send_message(recipient, text, parse_mode=ParseMode.HTML)
        except TelegramError:
            # the money side is already committed; delivery is best-effort
            logger.exception("Notify %s for ticket #%s to %s failed", outcome.kind.value, outcome.ticket_id, recipient)
