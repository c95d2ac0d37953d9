"""Settings loader with environment variable and Docker secrets integration."""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

# Hard upper bound for pageSize, whatever MAX_PAGE_SIZE says
PAGE_SIZE_CEILING = 20


def _load_secret_from_file(secret_name: str, env_var: str | None = None) -> str | None:
    """
    Load secret from /run/secrets (Docker secrets pattern).

    Priority:
    1. /run/secrets/{secret_name} (Docker secrets mount)
    2. Environment variable (fallback)

    Args:
        secret_name: Name of the secret file in /run/secrets
        env_var: Optional environment variable name to check as fallback

    Returns:
        Secret value or None if not found
    """
    secret_file = Path("/run/secrets") / secret_name

    # Priority 1: Read from /run/secrets
    if secret_file.exists() and secret_file.is_file():
        try:
            secret_value = secret_file.read_text().strip()
            if secret_value:
                print(f"[settings] ✓ Loaded {secret_name} from /run/secrets")
                return secret_value
        except OSError as e:
            print(f"[settings] ✗ Failed to read /run/secrets/{secret_name}: {e}")

    # Priority 2: Fallback to environment variable
    if env_var:
        secret_value = os.getenv(env_var)
        if secret_value:
            return secret_value

    return None


def _get_int(var_name: str, default: int) -> int:
    """Read an integer environment variable, failing loudly on garbage."""
    raw = os.environ.get(var_name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable {var_name} must be an integer, got {raw!r}.")


def _get_bool(var_name: str, default: bool = False) -> bool:
    return os.environ.get(var_name, str(default)).strip().lower() == "true"


@dataclass
class AppConfig:
    """Application configuration container."""
    # Resource
    users_api_prefix: str = "/api/users"
    default_page_size: int = 10
    max_page_size: int = PAGE_SIZE_CEILING
    max_content_length: int = 65536  # 64 KB

    # Serving
    trusted_proxy_ips: str = "127.0.0.1/32,::1/128"
    log_level: str = "INFO"
    preferred_url_scheme: str = "http"

    # Audit
    audit_log_dir: str = ""
    audit_log_signing_key: str = ""

    # Demo data
    seed_demo_users: bool = False

    @property
    def audit_enabled(self) -> bool:
        return bool(self.audit_log_dir)


def load_settings() -> AppConfig:
    """Load application settings from environment and /run/secrets."""
    prefix = "/" + os.environ.get("USERS_API_PREFIX", "/api/users").strip().strip("/")

    max_page_size = _get_int("MAX_PAGE_SIZE", PAGE_SIZE_CEILING)
    if not 1 <= max_page_size <= PAGE_SIZE_CEILING:
        print(f"[settings] WARNING: MAX_PAGE_SIZE={max_page_size} out of range, using {PAGE_SIZE_CEILING}")
        max_page_size = PAGE_SIZE_CEILING

    default_page_size = _get_int("DEFAULT_PAGE_SIZE", 10)
    default_page_size = min(max(1, default_page_size), max_page_size)

    # Audit signing key is a secret; handed to audit.configure() by create_app()
    audit_log_signing_key = _load_secret_from_file("audit_log_signing_key", "AUDIT_LOG_SIGNING_KEY") or ""

    log_level = os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    preferred_url_scheme = os.environ.get("PREFERRED_URL_SCHEME", "http").strip().lower() or "http"

    config = AppConfig(
        users_api_prefix=prefix,
        default_page_size=default_page_size,
        max_page_size=max_page_size,
        max_content_length=_get_int("MAX_CONTENT_LENGTH", 65536),
        trusted_proxy_ips=os.environ.get("TRUSTED_PROXY_IPS", "127.0.0.1/32,::1/128"),
        log_level=log_level,
        preferred_url_scheme=preferred_url_scheme,
        audit_log_dir=os.environ.get("AUDIT_LOG_DIR", "").strip(),
        audit_log_signing_key=audit_log_signing_key,
        seed_demo_users=_get_bool("SEED_DEMO_USERS"),
    )

    print(f"[settings] prefix={config.users_api_prefix}; page_size={config.default_page_size}/{config.max_page_size}; "
          f"audit={'on' if config.audit_enabled else 'off'}")
    return config
