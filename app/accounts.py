# app/accounts.py
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import models
from app.errors import NotFound

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if user is None:
        raise NotFound(f"user {user_id} not found")
    return user


def find_user(db: Session, external_id: str) -> models.User | None:
    return db.query(models.User).filter(models.User.external_id == str(external_id)).first()


def get_user_by_external_id(db: Session, external_id: str) -> models.User:
    user = find_user(db, external_id)
    if user is None:
        raise NotFound(f"no user for external id {external_id}")
    return user


def upsert_user(
    db: Session,
    external_id: str,
    display_name: str | None = None,
    username: str | None = None,
) -> models.User:
    """Create the user on first contact, otherwise refresh the presence fields.

    external_id is never rewritten.
    """
    external_id = str(external_id)
    user = find_user(db, external_id)
    if user:
        changed = False
        if display_name is not None and user.display_name != display_name:
            user.display_name = display_name
            changed = True
        if username is not None and user.username != username:
            user.username = username
            changed = True
        if changed:
            db.add(user)
            db.commit()
            db.refresh(user)
        return user

    user = models.User(external_id=external_id, display_name=display_name, username=username)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # first contact raced with another event from the same person
        db.rollback()
        logger.info("User %s created concurrently, reusing row", external_id)
        return get_user_by_external_id(db, external_id)
    db.refresh(user)
    logger.info("User created: id=%s external_id=%s", user.id, external_id)
    return user
