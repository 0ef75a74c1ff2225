# app/monitoring.py
from __future__ import annotations

import time
from typing import Any, Dict, List

from sqlalchemy import func, inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.database import get_engine, ping
from app.models import Base, TopupTicket
from app.tickets import PENDING


def _check(name: str, ok: bool, detail: str = "", extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
    row: Dict[str, Any] = {"name": name, "ok": bool(ok)}
    if detail:
        row["detail"] = detail
    if extra:
        row["extra"] = extra
    return row


def _env_checks(cfg) -> List[Dict[str, Any]]:
    return [
        _check("env:DATABASE_URL", bool(cfg.DATABASE_URL)),
        _check("env:ADMIN_CHAT_ID", bool(cfg.ADMIN_CHAT_ID), detail="nobody can approve tickets without it"),
        _check("env:BOT_TOKEN", bool(cfg.BOT_TOKEN), detail="optional (bot disabled if missing)"),
        _check("env:WEBHOOK_URL", bool(cfg.WEBHOOK_URL), detail="optional (webhook auto-set if provided)"),
    ]


def _db_checks(engine: Engine) -> List[Dict[str, Any]]:
    checks: List[Dict[str, Any]] = []

    t0 = time.time()
    try:
        ping(engine)
    except SQLAlchemyError as e:
        # nothing else can be checked without a connection
        return [_check("db:select1", False, detail=repr(e))]
    checks.append(_check("db:select1", True, extra={"ms": int((time.time() - t0) * 1000)}))

    existing = set(inspect(engine).get_table_names())
    missing = sorted(set(Base.metadata.tables) - existing)
    checks.append(_check("db:schema", not missing, detail=f"missing: {', '.join(missing)}" if missing else ""))
    if missing:
        return checks

    with engine.connect() as conn:
        count, oldest = conn.execute(
            select(func.count(TopupTicket.id), func.min(TopupTicket.created_at)).where(TopupTicket.status == PENDING)
        ).one()
    # informational, a long queue is not an outage
    checks.append(
        _check("queue:pending", True, extra={"count": int(count), "oldest": oldest.isoformat() if oldest else None})
    )
    return checks


def run_selftest(engine: Engine | None = None, cfg=None) -> dict:
    cfg = cfg or settings
    checks = _env_checks(cfg)

    try:
        engine = engine or get_engine()
    except RuntimeError as e:
        checks.append(_check("db:select1", False, detail=str(e)))
    else:
        checks.extend(_db_checks(engine))

    required = ("env:DATABASE_URL", "env:ADMIN_CHAT_ID", "db:select1", "db:schema")
    status = "ok" if all(c["ok"] for c in checks if c["name"] in required) else "degraded"
    return {"status": status, "checks": checks}
