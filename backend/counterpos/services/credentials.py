# Overview: PIN hashing and verification for staff sign-in.

"""
Staff credentials.

PINs are short, so they are stored only as bcrypt hashes and compared with
bcrypt.checkpw (constant time). Callers depend on the CredentialVerifier
protocol so the scheme can be swapped without touching staff_service.
"""

from __future__ import annotations

from typing import Protocol

import bcrypt
from flask import current_app, has_app_context

from ..errors import ValidationError

PIN_MIN_LENGTH = 4
PIN_MAX_LENGTH = 6
DEFAULT_ROUNDS = 12


class CredentialVerifier(Protocol):
    def hash(self, secret: str) -> str: ...

    def verify(self, secret: str, stored: str) -> bool: ...


class BcryptCredentialVerifier:
    def __init__(self, rounds: int | None = None):
        self._rounds = rounds

    @property
    def rounds(self) -> int:
        if self._rounds is not None:
            return self._rounds
        if has_app_context():
            return int(current_app.config.get("PIN_HASH_ROUNDS", DEFAULT_ROUNDS))
        return DEFAULT_ROUNDS

    def hash(self, secret: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")

    def verify(self, secret: str, stored: str) -> bool:
        if not secret or not stored:
            return False
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), stored.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False


_verifier: CredentialVerifier = BcryptCredentialVerifier()


def get_verifier() -> CredentialVerifier:
    return _verifier


def validate_pin_format(pin, field: str = "PIN") -> str:
    """Return the PIN if it is 4-6 ASCII digits, else raise ValidationError."""
    if not isinstance(pin, str):
        raise ValidationError(f"{field} must be {PIN_MIN_LENGTH}-{PIN_MAX_LENGTH} digits")
    if not (PIN_MIN_LENGTH <= len(pin) <= PIN_MAX_LENGTH) or not (pin.isascii() and pin.isdigit()):
        raise ValidationError(f"{field} must be {PIN_MIN_LENGTH}-{PIN_MAX_LENGTH} digits")
    return pin


def hash_pin(pin: str) -> str:
    validate_pin_format(pin)
    return get_verifier().hash(pin)


def verify_pin(pin: str, pin_hash: str) -> bool:
    if not isinstance(pin, str):
        return False
    return get_verifier().verify(pin, pin_hash)


_dummy_hashes: dict[int, str] = {}


def verify_unknown(pin) -> bool:
    """
    Run one bcrypt check against a throwaway hash and return False.

    Sign-in calls this when no staff row matches the email so that an
    unknown email costs the same time as a wrong PIN.
    """
    rounds = getattr(get_verifier(), "rounds", DEFAULT_ROUNDS)
    if rounds not in _dummy_hashes:
        _dummy_hashes[rounds] = get_verifier().hash("000000")
    verify_pin(pin if isinstance(pin, str) and pin else "0", _dummy_hashes[rounds])
    return False
