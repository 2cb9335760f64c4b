"""User lookup, revocation checks and the admin CRUD operations."""

from __future__ import annotations

import logging
import re
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from wildtrack.core.config import settings
from wildtrack.core.errors import BadRequest, NotFound, ServiceUnavailable
from wildtrack.models import USER_STATUSES, UserAccount
from wildtrack.models.observation import utcnow

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def email_user_key(email: str) -> str:
    """Document id used for passcode-registered users."""

    return "email_" + _NON_ALNUM.sub("_", email.strip().lower())


def _matches(user: UserAccount, identifier: str) -> bool:
    if identifier in (user.email, user.uid, user.name):
        return True
    if user.name and user.name in identifier:
        return True
    if user.email:
        local_part = user.email.split("@")[0]
        if local_part and local_part in identifier:
            return True
    return False


def find_user(session: Session, identifier: str) -> UserAccount | None:
    """Resolve an opaque submitter identifier to a user record.

    Tries the exact document id, then the ``email_`` key for email-looking
    identifiers, then a linear scan over every user.
    """

    user = session.get(UserAccount, identifier)
    if user is None and "@" in identifier:
        user = session.get(UserAccount, email_user_key(identifier))
    if user is None:
        for candidate in session.exec(select(UserAccount)).all():
            if _matches(candidate, identifier):
                logger.debug("Matched submitter %s to user %s by scan", identifier, candidate.id)
                return candidate
    return user


def is_user_revoked(session: Session, identifier: str | None) -> bool:
    if not identifier:
        return False
    try:
        user = find_user(session, identifier)
    except SQLAlchemyError:
        if settings.revocation_fail_open:
            logger.warning("User status lookup failed for %s; allowing submission", identifier, exc_info=True)
            return False
        raise ServiceUnavailable("User status could not be verified")
    if user is None:
        logger.info("No user record for %s; treating as new user", identifier)
        return False
    return user.is_revoked


def list_users(session: Session) -> dict[str, Any]:
    users = session.exec(select(UserAccount).order_by(UserAccount.registered_at.desc())).all()
    summaries = [user.to_summary() for user in users]
    stats = {
        "total": len(summaries),
        "active": sum(1 for u in summaries if u["status"] == "active"),
        "revoked": sum(1 for u in summaries if u["status"] == "revoked"),
    }
    return {"users": summaries, "stats": stats}


def get_user(session: Session, user_id: str) -> UserAccount:
    user = session.get(UserAccount, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def create_user(
    session: Session,
    *,
    name: str,
    email: str | None = None,
    uid: str | None = None,
    phone: str | None = None,
    role: str = "user",
) -> UserAccount:
    if not email and not uid:
        raise BadRequest("Either email or uid is required")
    user_id = uid or email_user_key(email or "")
    if session.get(UserAccount, user_id):
        raise BadRequest(f"User {user_id} already exists")
    user = UserAccount(
        id=user_id,
        uid=uid or user_id,
        name=name.strip(),
        email=email.lower() if email else None,
        phone=phone,
        role=role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Created user %s", user.id)
    return user


def update_user(session: Session, user_id: str, changes: dict[str, Any], updated_by: str) -> UserAccount:
    user = get_user(session, user_id)
    for field in ("name", "phone", "role"):
        if changes.get(field) is not None:
            setattr(user, field, changes[field])
    user.updated_at = utcnow()
    user.updated_by = updated_by
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def set_user_status(session: Session, user_id: str, status: str, updated_by: str) -> UserAccount:
    if status not in USER_STATUSES:
        raise BadRequest('Invalid status. Must be "active" or "revoked"')
    user = get_user(session, user_id)
    user.status = status
    user.updated_at = utcnow()
    user.updated_by = updated_by
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("User %s status set to %s by %s", user_id, status, updated_by)
    return user


def delete_user(session: Session, user_id: str) -> None:
    user = get_user(session, user_id)
    session.delete(user)
    session.commit()
    logger.info("Deleted user %s", user_id)


def record_login(session: Session, email: str, name: str) -> UserAccount:
    """Upsert the passcode user and stamp ``last_login``."""

    user_id = email_user_key(email)
    user = session.get(UserAccount, user_id)
    now = utcnow()
    if user is None:
        user = UserAccount(id=user_id, uid=user_id, name=name, email=email.lower(), registered_at=now)
    user.last_login = now
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


__all__ = [
    "email_user_key",
    "find_user",
    "is_user_revoked",
    "list_users",
    "get_user",
    "create_user",
    "update_user",
    "set_user_status",
    "delete_user",
    "record_login",
]
