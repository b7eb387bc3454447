# Overview: Staff records and the register sign-in lifecycle.

"""
Staff Session Manager

States per staff member: LoggedOut -> LoggedIn -> LoggedOut.

- login(email, pin): active staff only; failures are indistinguishable
  ("Invalid email or PIN") whether the email, the PIN or the status was wrong
- logout(staff_id): ends every open session; idempotent
- change_pin(staff_id, old, new): old PIN must verify; new PIN 4-6 digits
  and different from the old one

Every state change is committed before returning; the database is the
only session store.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Staff, STAFF_ROLES, STAFF_STATUSES
from ..money import round2, to_decimal
from ..time_utils import to_utc_z, utcnow
from ..validation import ModelValidationPolicy, parse_id, validate_payload
from . import session_service
from .credentials import hash_pin, validate_pin_format, verify_pin, verify_unknown

GENERIC_LOGIN_ERROR = "Invalid email or PIN"

STAFF_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "role": "role",
        "email": "email",
        "phone": "phone",
        "notes": "notes",
        "status": "status",
    },
    required_on_create=frozenset({"name", "role"}),
)


def _normalize_email(email) -> str | None:
    if email is None:
        return None
    if not isinstance(email, str):
        raise ValidationError("Email must be a string")
    email = email.strip()
    return email or None


def _check_enums(patch: dict) -> None:
    if "role" in patch and patch["role"] not in STAFF_ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(STAFF_ROLES)}")
    if "status" in patch and patch["status"] not in STAFF_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(STAFF_STATUSES)}")


def _email_taken(email: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Staff.id).filter(Staff.email == email)
    if exclude_id is not None:
        query = query.filter(Staff.id != exclude_id)
    return query.first() is not None


def get_staff(staff_id) -> Staff:
    staff = db.session.get(Staff, parse_id(staff_id, "Staff ID")) if staff_id is not None else None
    if staff is None:
        raise NotFoundError("Staff not found")
    return staff


def list_staff() -> list[Staff]:
    return db.session.query(Staff).order_by(Staff.name.asc(), Staff.id.asc()).all()


def create_staff(data: dict) -> Staff:
    """
    Create a staff member. PIN is required and stored hashed.

    Raises ValidationError for missing/invalid fields and ConflictError
    when the email already belongs to someone else.
    """
    patch = validate_payload(model=Staff, payload=data, policy=STAFF_POLICY, partial=False)
    _check_enums(patch)

    pin = (data or {}).get("pin")
    if not pin:
        raise ValidationError("Name, role, and PIN are required")
    pin_hash = hash_pin(validate_pin_format(pin))

    email = _normalize_email(patch.get("email"))
    if email and _email_taken(email):
        raise ConflictError("Email already exists")

    staff = Staff(
        name=patch["name"],
        role=patch["role"],
        pin_hash=pin_hash,
        email=email,
        phone=patch.get("phone"),
        notes=patch.get("notes") or "",
        status="active",
    )
    db.session.add(staff)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email already exists")
    return staff


def update_staff(staff_id, data: dict) -> Staff:
    """
    Update profile fields. PIN changes go through change_pin().

    Moving a staff member out of "active" ends their open sessions.
    """
    staff = get_staff(staff_id)
    patch = validate_payload(model=Staff, payload=data, policy=STAFF_POLICY, partial=True)
    _check_enums(patch)

    if "email" in patch:
        patch["email"] = _normalize_email(patch["email"])
        if patch["email"] and _email_taken(patch["email"], exclude_id=staff.id):
            raise ConflictError("Email already exists")

    for key, value in patch.items():
        setattr(staff, key, value)

    if staff.status != "active" and staff.is_logged_in:
        session_service.revoke_all_staff_sessions(staff.id, reason=f"Staff {staff.status}")
        session_service.sync_login_flags(staff)
        staff.last_logout = utcnow()

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email already exists")
    return staff


def delete_staff(staff_id) -> None:
    staff = get_staff(staff_id)
    db.session.delete(staff)
    db.session.commit()


def login(email, pin, user_agent: str | None = None, ip_address: str | None = None) -> dict:
    """
    Sign a staff member in with email + PIN.

    Returns {_id, name, role, sessionId, loginTime}. The sessionId is the
    only copy of the plaintext token.
    """
    email = _normalize_email(email) if isinstance(email, str) else None
    if not email:
        raise ValidationError("Email is required")
    if not pin:
        raise ValidationError("PIN is required")

    staff = db.session.query(Staff).filter_by(email=email, status="active").first()

    # Unknown emails still pay for one bcrypt check
    if staff is None:
        verify_unknown(pin)
        raise AuthenticationError(GENERIC_LOGIN_ERROR)
    if not verify_pin(pin, staff.pin_hash):
        raise AuthenticationError(GENERIC_LOGIN_ERROR)

    session, token = session_service.create_session(staff, user_agent=user_agent, ip_address=ip_address)
    staff.is_logged_in = True
    staff.login_session_id = session.token_hash
    staff.last_login = session.created_at
    db.session.commit()

    return {
        "_id": staff.id,
        "name": staff.name,
        "role": staff.role,
        "sessionId": token,
        "loginTime": to_utc_z(session.created_at),
    }


def logout(staff_id) -> Staff:
    """
    End every open session for a staff member.

    Idempotent: logging out a logged-out staff member succeeds and leaves
    is_logged_in False / login_session_id None.
    """
    staff = get_staff(staff_id)
    session_service.revoke_all_staff_sessions(staff.id, reason="Logout")
    staff.is_logged_in = False
    staff.login_session_id = None
    staff.last_logout = utcnow()
    db.session.commit()
    return staff


def logout_session(token: str) -> Staff | None:
    """
    End the single session behind ``token``.

    The staff flags clear only once no other device is still signed in.
    Returns None when the token is unknown or already closed.
    """
    session = session_service.revoke_session(token, reason="Logout")
    if session is None:
        return None
    staff = session.staff
    if not staff.is_logged_in:
        staff.last_logout = utcnow()
    db.session.commit()
    return staff


def current_staff(token: str) -> Staff:
    session = session_service.validate_session(token)
    if session is None:
        raise AuthenticationError("Invalid or expired session")
    return session.staff


def change_pin(staff_id, old_pin, new_pin) -> None:
    """
    Replace a staff member's PIN after verifying the old one.

    Open sessions are left alone; the PIN only gates new sign-ins.
    """
    if not staff_id or not old_pin or not new_pin:
        raise ValidationError("Staff ID, old PIN, and new PIN are required")

    validate_pin_format(new_pin, field="New PIN")
    if new_pin == old_pin:
        raise ValidationError("New PIN must be different from the old PIN")

    staff = get_staff(staff_id)
    if not verify_pin(old_pin, staff.pin_hash):
        raise AuthenticationError("Old PIN is incorrect")

    staff.pin_hash = hash_pin(new_pin)
    db.session.commit()


def record_sale(staff: Staff, amount: float) -> None:
    """Add a completed order to the staff aggregates. Caller commits."""
    staff.total_sales = round2(to_decimal(staff.total_sales or 0) + to_decimal(amount))
    staff.total_transactions = (staff.total_transactions or 0) + 1
