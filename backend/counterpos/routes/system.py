# Overview: Liveness endpoints with a database round trip.

"""
System health endpoints.

/health reports each dependency separately; /api/ping is the register's
lightweight connectivity probe and shares the same checks.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Staff, StaffSession, TaxRate
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Count a few core tables to prove the database answers."""
    start_time = time.time()
    try:
        staff_count = db.session.query(Staff).count()
        tax_rate_count = db.session.query(TaxRate).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "staff": staff_count,
                "tax_rates": tax_rate_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_session_health() -> dict:
    start_time = time.time()
    try:
        open_sessions = db.session.query(StaffSession).filter(StaffSession.revoked_at.is_(None)).count()
        default_rates = db.session.query(TaxRate).filter(TaxRate.is_default.is_(True)).count()
        elapsed_ms = (time.time() - start_time) * 1000

        details = {"open_sessions": open_sessions, "default_tax_rates": default_rates}
        if default_rates > 1:
            return {
                "status": "degraded",
                "latency_ms": round(elapsed_ms, 2),
                "warning": "More than one default tax rate",
                "details": details,
            }
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Session health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Session store error"
        }


def _health_response():
    start_time = time.time()

    database_health = check_database_health()
    session_health = check_session_health()

    all_checks = [database_health, session_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        # Degraded is still operational
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    total_elapsed_ms = (time.time() - start_time) * 1000
    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "sessions": session_health,
        }
    }
    return response, http_status


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: the database is unreachable
    """
    return _health_response()


@system_bp.get("/api/ping")
def ping():
    response, http_status = _health_response()
    response["message"] = "pong" if http_status == 200 else "database unavailable"
    return response, http_status
