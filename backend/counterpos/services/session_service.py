# Overview: Staff session tokens: issue, validate, revoke.

"""
Staff Session Token Management

Each successful register sign-in creates a StaffSession row. The client
gets a random opaque token (16 bytes, hex encoded); the database keeps
only its SHA-256 so a leaked table cannot be replayed.

Sessions end when:
- the staff member logs out (one session or all of them)
- the session is idle longer than SESSION_IDLE_MINUTES
- the staff member is no longer "active"

The Staff row's is_logged_in / login_session_id fields are kept in step by
sync_login_flags(); callers commit.
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..models import Staff, StaffSession
from ..time_utils import utcnow

TOKEN_BYTES = 16
DEFAULT_IDLE_MINUTES = 12 * 60


def generate_token() -> str:
    """Cryptographically secure random token (32 hex characters)."""
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    """
    SHA-256 of the token for storage.

    Tokens are already high entropy, so a fast hash is sufficient here
    (unlike PINs, which go through bcrypt).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _idle_timeout() -> timedelta:
    minutes = DEFAULT_IDLE_MINUTES
    if has_app_context():
        minutes = int(current_app.config.get("SESSION_IDLE_MINUTES", DEFAULT_IDLE_MINUTES))
    return timedelta(minutes=minutes)


def open_sessions_query(staff_id: int):
    return db.session.query(StaffSession).filter(
        StaffSession.staff_id == staff_id,
        StaffSession.revoked_at.is_(None),
    )


def sync_login_flags(staff: Staff) -> None:
    """
    Point login_session_id at the newest open session, or clear both flags.
    """
    latest = open_sessions_query(staff.id).order_by(StaffSession.created_at.desc(), StaffSession.id.desc()).first()
    if latest is None:
        staff.is_logged_in = False
        staff.login_session_id = None
    else:
        staff.is_logged_in = True
        staff.login_session_id = latest.token_hash


def create_session(
    staff: Staff,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[StaffSession, str]:
    """
    Create a session for ``staff`` and return (session_record, plaintext_token).

    Flushes but does not commit.
    """
    token = generate_token()
    now = utcnow()
    session = StaffSession(
        staff_id=staff.id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        user_agent=(user_agent or None) and user_agent[:255],
        ip_address=ip_address,
    )
    db.session.add(session)
    db.session.flush()
    return session, token


def _revoke(session: StaffSession, reason: str) -> None:
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def find_session(token: str) -> StaffSession | None:
    if not token:
        return None
    return db.session.query(StaffSession).filter_by(token_hash=hash_token(token)).first()


def validate_session(token: str) -> StaffSession | None:
    """
    Return the open session for ``token`` or None.

    Touches last_used_at on success. Idle sessions and sessions of staff
    who are no longer active are revoked on the spot.
    """
    session = find_session(token)
    if session is None or not session.is_open:
        return None

    now = utcnow()
    staff = session.staff

    if staff is None or staff.status != "active":
        _revoke(session, "Staff not active")
        if staff is not None:
            sync_login_flags(staff)
        db.session.commit()
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        sync_login_flags(staff)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return session


def revoke_session(token: str, reason: str = "Logout") -> StaffSession | None:
    """Revoke one session. Returns the session, or None if unknown/already closed."""
    session = find_session(token)
    if session is None or not session.is_open:
        return None
    _revoke(session, reason)
    sync_login_flags(session.staff)
    return session


def revoke_all_staff_sessions(staff_id: int, reason: str = "Logout") -> int:
    """Revoke every open session for a staff member. Returns the count."""
    sessions = open_sessions_query(staff_id).all()
    for session in sessions:
        _revoke(session, reason)
    return len(sessions)
