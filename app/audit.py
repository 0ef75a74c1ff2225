# app/audit.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol


@dataclass(frozen=True)
class ActorContext:
    """Who is pressing the button, and where."""

    actor_id: str
    channel_id: Optional[str] = None


class AuditPolicy(Protocol):
    def authorize(self, ctx: ActorContext) -> bool: ...


class AllowListGate:
    """Authorize when the caller's channel (or, outside any channel, the
    caller itself) is on a fixed allow-list."""

    def __init__(self, principals: Iterable[str]):
        self.principals = frozenset(str(p) for p in principals if p is not None and str(p) != "")

    def authorize(self, ctx: ActorContext) -> bool:
        if not self.principals:
            return False
        subject = ctx.channel_id if ctx.channel_id is not None else ctx.actor_id
        return str(subject) in self.principals


class SinglePrincipalGate(AllowListGate):
    def __init__(self, principal: Optional[str]):
        super().__init__([principal] if principal is not None else [])


def gate_from_settings(settings) -> SinglePrincipalGate:
    return SinglePrincipalGate(settings.ADMIN_CHAT_ID)
