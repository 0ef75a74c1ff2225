# app/i18n.py
from __future__ import annotations

from typing import Dict


def normalize_lang(code: str | None) -> str:
    """
    Normalizes a language code (zh-CN, en-US, ...) to a short value: en / zh
    """
    if not code:
        return "en"

    code = code.lower()

    if code.startswith("zh"):
        return "zh"

    return "en"


LANG_DATA: Dict[str, Dict[str, str]] = {
    "en": {
        # ----- /start -----
        "START": (
            "Hi! I'm the topup and credit assistant 🤖\n"
            "Commands:\n"
            "• <b>/topup amount</b> (e.g. <code>/topup 100.00</code>), then send the transfer screenshot\n"
            "• <b>/balance</b> current credit\n"
            "• <b>/me</b> my profile and last {limit} entries\n"
            "• <b>/help</b> help\n\n"
            "You will get a private message once your topup is approved."
        ),

        # ----- /help -----
        "HELP": (
            "Available commands:\n"
            "• <b>/topup amount</b> (e.g. <code>/topup 100.00</code>), then send the transfer screenshot\n"
            "• <b>/balance</b> current credit\n"
            "• <b>/me</b> my profile + last {limit} entries\n"
            "Amounts are shown in units; the system stores minor units (cents)."
        ),
        "HELP_ADMIN": (
            "\n\nAdmin:\n"
            "• <b>/pending</b> pending tickets\n"
            "• <b>/approve id [amount]</b> approve, optionally with a different amount\n"
            "• <b>/reject id</b> reject"
        ),

        "CHAT_ID": "chat_id: <code>{chat_id}</code>",
        "BALANCE": "Your current credit: <b>{balance}</b>",

        # ----- /me -----
        "ME": (
            "👤 <b>My profile</b>\n"
            "ID: <code>{external_id}</code>\n"
            "Username: {username}\n"
            "Name: {display_name}\n"
            "Registered: {created_at}\n"
            "Current credit: <b>{balance}</b>\n\n"
            "📒 <b>Last {limit} entries</b>\n"
            "{entries}"
        ),
        "ME_NONE": "(none)",
        "ME_UNKNOWN": "(unknown)",

        # ----- /topup -----
        "TOPUP_PRIVATE_ONLY": "For privacy, send <code>/topup amount</code> and the screenshot in a <b>private chat</b>.",
        "TOPUP_USAGE": "Usage: <code>/topup 100.00</code>\nThen send the transfer screenshot to open a ticket.",
        "PROOF_PRIVATE_ONLY": "For privacy, upload the transfer screenshot in a <b>private chat</b>.",
        "NO_ACTIVE_TICKET": "No pending ticket found, send <code>/topup amount</code> first.",

        # ----- admin -----
        "NOT_ALLOWED": "Not allowed.",
        "ALREADY_DECIDED": "Ticket #{ticket_id} is already {status}.",
        "TICKET_NOT_FOUND": "Ticket not found.",
        "APPROVE_USAGE": "Usage: /approve <ticket_id> [amount]",
        "REJECT_USAGE": "Usage: /reject <ticket_id>",
        "PENDING_NONE": "No pending tickets.",
        "PENDING_TITLE": "📥 Pending tickets:",
        "PENDING_ROW": "- #{ticket_id} user={user_id} declared={amount} proof={proof}",
        "BUTTON_APPROVE": "✅ Approve (same amount)",
        "BUTTON_REJECT": "❌ Reject",

        # ----- outcomes -----
        "OUTCOME_TICKET_CREATED": "Topup ticket <b>#{ticket_id}</b> created (declared {amount})\nPlease send the transfer screenshot now.",
        "OUTCOME_PROOF_RECEIVED": "Screenshot received ✅ ticket <b>#{ticket_id}</b> is waiting for review.",
        "OUTCOME_PROOF_SUBMITTED": "💳 Topup ticket #{ticket_id}\nFrom: {requester}\nDeclared: {amount}\nProof: ✅ uploaded",
        "OUTCOME_TICKET_APPROVED": "✅ Ticket #{ticket_id} approved, <b>{amount}</b> credited",
        "OUTCOME_TICKET_REJECTED": "❌ Ticket #{ticket_id} rejected",

        # ----- generic errors -----
        "INVALID_AMOUNT": "Invalid amount.",
        "TEMPORARY_ERROR": "⚠️ Temporary error, please try again.",
        "GENERIC_UNKNOWN_COMMAND": "Unknown command, try <b>/topup</b>, <b>/balance</b>, <b>/me</b>",
    },
    "zh": {
        "START": (
            "你好～我是充值与点数助手 🤖\n"
            "指令：\n"
            "• <b>/topup 金额</b>（例如 <code>/topup 100.00</code>），随后发送转账截图\n"
            "• <b>/balance</b> 查询当前点数\n"
            "• <b>/me</b> 我的资料与近 {limit} 笔流水\n"
            "• <b>/help</b> 查看帮助\n\n"
            "审核通过后会私信通知你入账金额。"
        ),
        "HELP": (
            "可用指令：\n"
            "• <b>/topup 金额</b>（如 <code>/topup 100.00</code>），随后发送转账截图\n"
            "• <b>/balance</b> 查询当前点数\n"
            "• <b>/me</b> 我的资料 + 最近 {limit} 笔流水\n"
            "说明：金额展示单位为“元”，系统内部以“分”存储。"
        ),
        "BALANCE": "你当前点数：<b>{balance}</b>",
        "ME": (
            "👤 <b>我的资料</b>\n"
            "ID：<code>{external_id}</code>\n"
            "用户名：{username}\n"
            "昵称：{display_name}\n"
            "注册时间：{created_at}\n"
            "当前点数：<b>{balance}</b>\n\n"
            "📒 <b>最近 {limit} 笔流水</b>\n"
            "{entries}"
        ),
        "ME_NONE": "（无）",
        "ME_UNKNOWN": "（未知）",
        "TOPUP_PRIVATE_ONLY": "为保护隐私，请在<b>私聊</b>里发送 <code>/topup 金额</code> 并上传截图。",
        "TOPUP_USAGE": "用法示例：<code>/topup 100.00</code>\n然后发送转账截图即可创建工单。",
        "PROOF_PRIVATE_ONLY": "为保护隐私，请在<b>私聊</b>里上传转账截图。",
        "NO_ACTIVE_TICKET": "没有找到待审核工单，请先发送 <code>/topup 金额</code>。",
        "BUTTON_APPROVE": "✅ 通过（同额）",
        "BUTTON_REJECT": "❌ 拒绝",
        "OUTCOME_TICKET_CREATED": "已创建充值工单 <b>#{ticket_id}</b>（申报 {amount}）\n请现在发送转账截图～",
        "OUTCOME_PROOF_RECEIVED": "收到截图 ✅ 工单 <b>#{ticket_id}</b> 已提交审核，请稍候～",
        "OUTCOME_PROOF_SUBMITTED": "💳 充值工单 #{ticket_id}\n来自：{requester}\n申报金额：{amount}\n凭证：✅ 已上传",
        "OUTCOME_TICKET_APPROVED": "✅ 已核实 #{ticket_id}，已入账 <b>{amount}</b> 点数",
        "OUTCOME_TICKET_REJECTED": "❌ 已拒绝 #{ticket_id}",
        "GENERIC_UNKNOWN_COMMAND": "不认识的指令～请试：<b>/topup</b>、<b>/balance</b>、<b>/me</b>",
    },
}


def t(lang: str, key: str) -> str:
    """
    Simple lookup:
    1. try lang
    2. if missing, fall back to en
    3. if still missing, return the key itself
    """
    lang = normalize_lang(lang)
    data = LANG_DATA.get(lang, {})
    if key in data:
        return data[key]
    data_en = LANG_DATA.get("en", {})
    if key in data_en:
        return data_en[key]
    return key
