# app/main.py
from __future__ import annotations

import hmac
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.bot.topup_bot import initialize_bot, process_webhook, shutdown_bot
from app.core.config import settings
from app.database import init_db
from app.monitoring import run_selftest

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


@asynccontextmanager
async def lifespan(_: FastAPI):
    # schema has to exist before the bot can take updates
    try:
        init_db()
        logger.info("Schema ready")
    except Exception:
        logger.exception("Schema setup failed, /ready will report degraded")

    try:
        await initialize_bot()
    except Exception:
        logger.exception("Bot startup failed, webhook updates will be dropped")

    yield

    await shutdown_bot()


app = FastAPI(title="Topup Desk", lifespan=lifespan)


def _ok(body: dict) -> JSONResponse:
    return JSONResponse(body, status_code=status.HTTP_200_OK)


@app.get("/")
async def root():
    return {"service": "topup-desk"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/ready")
async def ready():
    result = run_selftest()
    code = status.HTTP_200_OK if result["status"] == "ok" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(result, status_code=code)


@app.get("/selftest")
async def selftest():
    return run_selftest()


@app.post("/webhook/telegram")
async def telegram_webhook(request: Request):
    """
    Always answers 200 so Telegram does not redeliver the same update.
    Failures are logged and reported in the body only.
    """
    if settings.WEBHOOK_SECRET:
        sent = request.headers.get(SECRET_HEADER, "")
        if not hmac.compare_digest(sent, settings.WEBHOOK_SECRET):
            logger.warning("Webhook call with a bad secret token from %s", request.client.host if request.client else "?")
            return _ok({"ok": False, "error": "forbidden"})

    try:
        update_dict = await request.json()
    except ValueError:
        logger.warning("Webhook body is not JSON")
        return _ok({"ok": False, "error": "invalid_json"})

    try:
        await process_webhook(update_dict)
    except Exception:
        logger.exception("Webhook update %s failed", update_dict.get("update_id") if isinstance(update_dict, dict) else "?")
        return _ok({"ok": False})
    return _ok({"ok": True})
