"""Audit logging utilities for user mutations (create/replace/patch/delete)."""

from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import logging
import os
from pathlib import Path
from typing import Any, Literal, Optional

logger = logging.getLogger(__name__)

AUDIT_LOG_FILENAME = "user-events.jsonl"

_env_dir = os.environ.get("AUDIT_LOG_DIR", "").strip()
AUDIT_LOG_DIR: Optional[Path] = Path(_env_dir) if _env_dir else None
AUDIT_LOG_FILE: Optional[Path] = AUDIT_LOG_DIR / AUDIT_LOG_FILENAME if AUDIT_LOG_DIR else None

# Set by configure(); takes precedence over the environment
_configured_signing_key: Optional[str] = None

EventType = Literal[
    "user_created", "user_upserted", "user_replaced", "user_patched", "user_deleted",
]


def configure(audit_dir: Optional[str], signing_key: Optional[str] = None) -> None:
    """Point the trail at ``audit_dir``; an empty value disables auditing.

    Args:
        audit_dir: Directory holding user-events.jsonl
        signing_key: HMAC key; when empty, AUDIT_LOG_SIGNING_KEY is read at write time
    """
    global AUDIT_LOG_DIR, AUDIT_LOG_FILE, _configured_signing_key
    _configured_signing_key = signing_key or None
    if audit_dir:
        AUDIT_LOG_DIR = Path(audit_dir)
        AUDIT_LOG_FILE = AUDIT_LOG_DIR / AUDIT_LOG_FILENAME
    else:
        AUDIT_LOG_DIR = None
        AUDIT_LOG_FILE = None


def is_enabled() -> bool:
    return AUDIT_LOG_FILE is not None


def _get_signing_key() -> bytes:
    """Get the configured audit signing key, falling back to the environment."""
    key = (_configured_signing_key or os.environ.get("AUDIT_LOG_SIGNING_KEY", "")).strip()
    return key.encode("utf-8")


def _ensure_audit_dir() -> None:
    """Create audit directory with restricted permissions."""
    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    AUDIT_LOG_DIR.chmod(0o700)


def _sign_event(event: dict[str, Any]) -> str:
    """Generate HMAC-SHA256 signature for audit event."""
    signing_key = _get_signing_key()
    if not signing_key:
        return ""
    # Canonical JSON representation for signing
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


def log_user_event(
    event_type: EventType,
    user_id: str,
    *,
    login: Optional[str] = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Append a user event to the audit trail with timestamp and signature.

    Args:
        event_type: Kind of mutation
        user_id: Identity of the affected user
        login: Login after the mutation, when known
        details: Additional context (correlation id, patched paths, ...)
        success: Whether the operation succeeded
    """
    if not is_enabled():
        return

    _ensure_audit_dir()

    event = {
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "event_type": event_type,
        "user_id": user_id,
        "login": login,
        "success": success,
        "details": details or {},
    }

    signature = _sign_event(event)
    if signature:
        event["signature"] = signature

    # One JSON object per line
    with AUDIT_LOG_FILE.open("a", encoding="utf-8") as f:
        f.write(json.dumps(event, ensure_ascii=False) + "\n")

    AUDIT_LOG_FILE.chmod(0o600)


def safe_log_user_event(
    event_type: EventType,
    user_id: str,
    *,
    login: Optional[str] = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> bool:
    """Log a user event, reporting failures to the logger instead of raising.

    An audit write failure must not turn a completed mutation into a 500.

    Returns:
        True if the event was written (or auditing is disabled), False otherwise
    """
    try:
        log_user_event(event_type, user_id, login=login, details=details, success=success)
        return True
    except OSError as e:
        logger.warning(f"Failed to log {event_type} event for {user_id}: {e}")
        return False


def verify_audit_log() -> tuple[int, int]:
    """Verify all signatures in the audit log.

    Returns:
        Tuple of (total_events, valid_signatures)
    """
    if not is_enabled() or not AUDIT_LOG_FILE.exists():
        return 0, 0

    total = 0
    valid = 0

    with AUDIT_LOG_FILE.open("r", encoding="utf-8") as f:
        for line in f:
            if not line.strip():
                continue
            total += 1
            try:
                event = json.loads(line)
                stored_sig = event.pop("signature", "")
                if not stored_sig:
                    continue
                computed_sig = _sign_event(event)
                if hmac.compare_digest(stored_sig, computed_sig):
                    valid += 1
            except (json.JSONDecodeError, KeyError):
                continue

    return total, valid


if __name__ == "__main__":
    import sys
    total, valid = verify_audit_log()
    print(f"Audit log: {valid}/{total} events with valid signatures")
    sys.exit(0 if total == valid else 1)
