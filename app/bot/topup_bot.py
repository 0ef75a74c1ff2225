# app/bot/topup_bot.py
from __future__ import annotations

import logging
from typing import Optional

from telegram import Update
from telegram.constants import ChatType, ParseMode
from telegram.ext import (
    Application,
    CommandHandler,
    MessageHandler,
    CallbackQueryHandler,
    ContextTypes,
    filters,
)

from app.audit import gate_from_settings
from app.core.config import settings
from app.errors import (
    AlreadyDecided,
    InvalidAmount,
    NoActiveTicket,
    NotFound,
    StorageFailure,
    Unauthorized,
)
from app.i18n import t
from app.money import format_amount, parse_amount
from app.notifier import TelegramNotifier
from app.schemas import Actor
from app.service import TopupService

logger = logging.getLogger(__name__)


def actor_from_update(update: Update) -> Actor:
    tg = update.effective_user
    chat = update.effective_chat
    full_name = " ".join(x for x in (tg.first_name, tg.last_name) if x) or None
    return Actor(
        external_id=str(tg.id),
        display_name=full_name,
        username=tg.username,
        chat_id=(str(chat.id) if chat else None),
    )


def _is_private(update: Update) -> bool:
    chat = update.effective_chat
    return bool(chat) and chat.type == ChatType.PRIVATE


def _lang(update: Update) -> str:
    tg = update.effective_user
    return (tg.language_code if tg else None) or settings.DEFAULT_LANGUAGE


def render_entries(entries, lang: str) -> str:
    if not entries:
        return t(lang, "ME_NONE")
    lines = []
    for e in entries:
        sign = "+" if e.amount >= 0 else "–"
        ref = f" ({e.ref_type} #{e.ref_id})" if e.ref_type and e.ref_id else ""
        note = f", {e.note}" if e.note else ""
        lines.append(f"{e.created_at}｜{e.type}{ref}｜{sign}{format_amount(abs(e.amount))}{note}")
    return "\n".join(lines)


class TopupBot:
    def __init__(self):
        self.application: Application | None = None
        self.service: TopupService | None = None

    async def initialize(self):
        if not settings.BOT_TOKEN:
            logger.warning("BOT_TOKEN missing, bot disabled")
            return
        if not settings.ADMIN_CHAT_ID:
            logger.warning("ADMIN_CHAT_ID missing, nobody can approve tickets")

        self.application = Application.builder().token(settings.BOT_TOKEN).build()

        self.service = TopupService(
            gate=gate_from_settings(settings),
            notifier=TelegramNotifier(
                self.application.bot,
                admin_chat_id=settings.ADMIN_CHAT_ID,
                lang=settings.DEFAULT_LANGUAGE,
            ),
            admin_chat_id=settings.ADMIN_CHAT_ID,
            statement_limit=settings.STATEMENT_LIMIT,
        )

        # Commands
        self.application.add_handler(CommandHandler("start", self.cmd_start))
        self.application.add_handler(CommandHandler("help", self.cmd_help))
        self.application.add_handler(CommandHandler("id", self.cmd_id))
        self.application.add_handler(CommandHandler("balance", self.cmd_balance))
        self.application.add_handler(CommandHandler("me", self.cmd_me))
        self.application.add_handler(CommandHandler("topup", self.cmd_topup))

        # Admin commands
        self.application.add_handler(CommandHandler("pending", self.cmd_pending))
        self.application.add_handler(CommandHandler("approve", self.cmd_approve))
        self.application.add_handler(CommandHandler("reject", self.cmd_reject))

        # Decision buttons
        self.application.add_handler(CallbackQueryHandler(self.cb_decision, pattern=r"^(approve|reject):"))

        # Proof upload
        self.application.add_handler(MessageHandler(filters.PHOTO | filters.Document.ALL, self.handle_proof))

        # Anything else
        self.application.add_handler(MessageHandler(filters.TEXT, self.handle_unknown))

        # Error handler
        self.application.add_error_handler(self.on_error)

        await self.application.initialize()

        # Webhook
        if settings.WEBHOOK_URL:
            url = f"{settings.WEBHOOK_URL.rstrip('/')}/webhook/telegram"
            await self.application.bot.set_webhook(url, secret_token=settings.WEBHOOK_SECRET)
            logger.info(f"Webhook set: {url}")

        logger.info("TopupBot initialized")

    async def on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        logger.exception("Unhandled bot error", exc_info=context.error)
        if isinstance(update, Update) and update.effective_message:
            await update.effective_message.reply_text(t(settings.DEFAULT_LANGUAGE, "TEMPORARY_ERROR"))

    async def _reply(self, update: Update, text: str):
        await update.effective_message.reply_text(text, parse_mode=ParseMode.HTML)

    # --------- Commands ---------

    async def cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        self.service.register(actor_from_update(update))
        await self._reply(update, t(_lang(update), "START").format(limit=settings.STATEMENT_LIMIT))

    async def cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        lang = _lang(update)
        text = t(lang, "HELP").format(limit=settings.STATEMENT_LIMIT)
        if self.service.is_auditor(actor_from_update(update)):
            text += t(lang, "HELP_ADMIN")
        await self._reply(update, text)

    async def cmd_id(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._reply(update, t(_lang(update), "CHAT_ID").format(chat_id=update.effective_chat.id))

    async def cmd_balance(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        bal = self.service.balance(actor_from_update(update))
        await self._reply(update, t(_lang(update), "BALANCE").format(balance=format_amount(bal)))

    async def cmd_me(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        lang = _lang(update)
        st = self.service.statement(actor_from_update(update))
        await self._reply(
            update,
            t(lang, "ME").format(
                external_id=st.user.external_id,
                username=(f"@{st.user.username}" if st.user.username else t(lang, "ME_NONE")),
                display_name=st.user.display_name or t(lang, "ME_NONE"),
                created_at=st.user.created_at or t(lang, "ME_UNKNOWN"),
                balance=format_amount(st.balance),
                limit=settings.STATEMENT_LIMIT,
                entries=render_entries(st.entries, lang),
            ),
        )

    async def cmd_topup(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        lang = _lang(update)
        if not _is_private(update):
            await self._reply(update, t(lang, "TOPUP_PRIVATE_ONLY"))
            return
        try:
            cents = parse_amount(context.args[0] if context.args else "")
        except InvalidAmount:
            await self._reply(update, t(lang, "TOPUP_USAGE"))
            return

        await self.service.handle(
            {"actor": actor_from_update(update).model_dump(), "intent": "create-ticket", "declared_amount": cents}
        )

    async def handle_proof(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        lang = _lang(update)
        if not _is_private(update):
            await self._reply(update, t(lang, "PROOF_PRIVATE_ONLY"))
            return

        msg = update.effective_message
        if msg.photo:
            # largest size comes last
            file_id, kind = msg.photo[-1].file_id, "photo"
        else:
            file_id, kind = msg.document.file_id, "document"

        try:
            await self.service.handle(
                {
                    "actor": actor_from_update(update).model_dump(),
                    "intent": "attach-proof",
                    "proof_ref": file_id,
                    "proof_kind": kind,
                }
            )
        except NoActiveTicket:
            await self._reply(update, t(lang, "NO_ACTIVE_TICKET"))

    async def handle_unknown(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self._reply(update, t(_lang(update), "GENERIC_UNKNOWN_COMMAND"))

    # --------- Admin ---------

    async def cmd_pending(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        lang = _lang(update)
        try:
            rows = self.service.pending(actor_from_update(update))
        except Unauthorized:
            await self._reply(update, t(lang, "NOT_ALLOWED"))
            return
        if not rows:
            await self._reply(update, t(lang, "PENDING_NONE"))
            return
        lines = [t(lang, "PENDING_TITLE")]
        for r in rows:
            lines.append(
                t(lang, "PENDING_ROW").format(
                    ticket_id=r.id,
                    user_id=r.user_id,
                    amount=format_amount(r.declared_amount),
                    proof=("✅" if r.proof_ref else "—"),
                )
            )
        await self._reply(update, "\n".join(lines))

    async def cmd_approve(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        lang = _lang(update)
        args = context.args or []
        try:
            ticket_id = int(args[0])
            amount = parse_amount(args[1]) if len(args) > 1 else None
        except (IndexError, ValueError, InvalidAmount):
            await self._reply(update, t(lang, "APPROVE_USAGE"))
            return
        await self._decide(update, lang, ticket_id, "APPROVE", amount)

    async def cmd_reject(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        lang = _lang(update)
        try:
            ticket_id = int((context.args or [])[0])
        except (IndexError, ValueError):
            await self._reply(update, t(lang, "REJECT_USAGE"))
            return
        await self._decide(update, lang, ticket_id, "REJECT", None)

    async def _decide(self, update: Update, lang: str, ticket_id: int, decision: str, amount: Optional[int]):
        try:
            await self.service.handle(
                {
                    "actor": actor_from_update(update).model_dump(),
                    "intent": "decide",
                    "ticket_id": ticket_id,
                    "decision": decision,
                    "audited_amount": amount,
                }
            )
        except Unauthorized:
            await self._reply(update, t(lang, "NOT_ALLOWED"))
        except AlreadyDecided as e:
            await self._reply(update, t(lang, "ALREADY_DECIDED").format(ticket_id=e.ticket_id, status=e.status))
        except NotFound:
            await self._reply(update, t(lang, "TICKET_NOT_FOUND"))

    # --------- Callback buttons ---------

    async def cb_decision(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        q = update.callback_query
        action, _, id_str = (q.data or "").partition(":")
        lang = _lang(update)
        try:
            ticket_id = int(id_str)
        except ValueError:
            logger.warning("Ignoring malformed decision callback %r", q.data)
            await q.answer()
            return

        try:
            await self.service.handle(
                {
                    "actor": actor_from_update(update).model_dump(),
                    "intent": "decide",
                    "ticket_id": ticket_id,
                    "decision": action.upper(),
                }
            )
        except Unauthorized:
            # clicks outside the admin chat are ignored
            await q.answer()
            return
        except AlreadyDecided as e:
            await q.answer(t(lang, "ALREADY_DECIDED").format(ticket_id=e.ticket_id, status=e.status))
            return
        except (NotFound, StorageFailure):
            await q.answer(t(lang, "TEMPORARY_ERROR"))
            raise

        await q.answer()


# --------- bootstrap ---------

_bot = TopupBot()


async def initialize_bot():
    await _bot.initialize()


async def process_webhook(update_dict: dict):
    if not _bot.application:
        return
    update = Update.de_json(update_dict, _bot.application.bot)
    await _bot.application.process_update(update)


async def shutdown_bot():
    if _bot.application:
        await _bot.application.shutdown()
