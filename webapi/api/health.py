"""Health check endpoints."""
import logging

from flask import Blueprint, current_app

bp = Blueprint("health", __name__)

logger = logging.getLogger(__name__)

REPOSITORY_CONFIG_KEY = "USER_REPOSITORY"


@bp.route("/health")
def health_check():
    """Liveness: the process is up and serving."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Readiness: the user repository answers a count query."""
    repository = current_app.config.get(REPOSITORY_CONFIG_KEY)
    if repository is None:
        return ("repository not configured", 503, {"Content-Type": "text/plain"})
    try:
        repository.count()
    except Exception as exc:
        logger.warning(f"Readiness check failed: {exc}")
        return ("repository unavailable", 503, {"Content-Type": "text/plain"})
    return ("ready", 200, {"Content-Type": "text/plain"})
