# app/errors.py
from __future__ import annotations


class TopupError(Exception):
    pass


class InvalidAmount(TopupError):
    pass


class InvalidEvent(TopupError):
    pass


class NoActiveTicket(TopupError):
    pass


class AlreadyDecided(TopupError):
    def __init__(self, ticket_id: int, status: str | None = None):
        self.ticket_id = ticket_id
        self.status = status
        super().__init__(f"ticket #{ticket_id} is already {status or 'decided'}")


class Unauthorized(TopupError):
    pass


class NotFound(TopupError):
    pass


class StorageFailure(TopupError):
    """Durable store operation failed; the transaction was rolled back."""
