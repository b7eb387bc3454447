from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

STAFF_ROLES = ("Cashier", "Manager", "Supervisor", "Admin")
STAFF_STATUSES = ("active", "inactive", "suspended")


class Staff(db.Model):
    """
    Register staff who sign in with email + PIN.

    The session fields (is_logged_in, login_session_id, last_login,
    last_logout) summarise the StaffSession rows below:
    login_session_id is non-null iff is_logged_in is true, and holds the
    hash of the most recent open session, never a usable token.
    """
    __tablename__ = "staff"
    __table_args__ = (
        db.Index("ix_staff_status", "status"),
        db.Index("ix_staff_is_logged_in", "is_logged_in"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="Cashier")

    # bcrypt hash of the 4-6 digit PIN
    pin_hash = db.Column(db.String(255), nullable=False)

    # Unique when present (NULLs do not collide)
    email = db.Column(db.String(255), nullable=True, unique=True)
    phone = db.Column(db.String(32), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")

    is_logged_in = db.Column(db.Boolean, nullable=False, default=False)
    login_session_id = db.Column(db.String(64), nullable=True)
    last_login = db.Column(db.DateTime(timezone=True), nullable=True)
    last_logout = db.Column(db.DateTime(timezone=True), nullable=True)

    total_sales = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    total_transactions = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=False, default="")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "email": self.email,
            "phone": self.phone,
            "status": self.status,
            "is_logged_in": self.is_logged_in,
            "last_login": to_utc_z(self.last_login),
            "last_logout": to_utc_z(self.last_logout),
            "total_sales": float(self.total_sales or 0),
            "total_transactions": self.total_transactions,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StaffSession(db.Model):
    """
    One row per register sign-in.

    Only the SHA-256 of the token is stored; the plaintext goes to the
    client once at login. A staff member may hold several open sessions
    (one per device) and each can be revoked on its own.
    """
    __tablename__ = "staff_sessions"
    __table_args__ = (
        db.Index("ix_staff_sessions_staff_open", "staff_id", "revoked_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)

    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(64), nullable=True)

    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    staff = db.relationship(
        "Staff",
        backref=db.backref("sessions", lazy=True, cascade="all, delete-orphan"),
    )

    @property
    def is_open(self) -> bool:
        return self.revoked_at is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "revoked_at": to_utc_z(self.revoked_at),
            "revoked_reason": self.revoked_reason,
        }
