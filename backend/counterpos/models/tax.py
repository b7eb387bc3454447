from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class TaxRate(db.Model):
    """
    Named tax rate, stored as a decimal fraction (0.1 == 10%).

    Exactly one row carries is_default whenever the table is non-empty;
    tax_rate_service keeps that true on every write.
    """
    __tablename__ = "tax_rates"
    __table_args__ = (
        db.Index("ix_tax_rates_is_default", "is_default"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    rate = db.Column(db.Numeric(6, 4, asdecimal=False), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "rate": float(self.rate),
            "description": self.description,
            "isDefault": self.is_default,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
