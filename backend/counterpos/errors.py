# Overview: Error taxonomy shared by services and routes.

"""
Service-layer exceptions.

Services raise these; routes translate them into JSON responses using
``http_status``. Anything that is not a PosError is an unexpected failure
and becomes a logged 500.
"""


class PosError(Exception):
    """Base class for expected, request-scoped failures."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PosError):
    """Malformed or out-of-range input."""
    http_status = 400


class AuthenticationError(PosError):
    """Credential mismatch. Messages stay generic on purpose."""
    http_status = 401


class NotFoundError(PosError):
    """Referenced record does not exist."""
    http_status = 404


class ConflictError(PosError):
    """Uniqueness violation (duplicate email, duplicate tax rate name)."""
    http_status = 400
