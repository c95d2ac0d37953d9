"""Flask application factory and bootstrap.

This module provides the create_app() factory function for initializing
the Flask application with its collaborators, blueprints and error handlers.
"""
from __future__ import annotations
import ipaddress
import logging
from typing import Optional

from flask import Flask, abort, request
from werkzeug.middleware.proxy_fix import ProxyFix

from webapi.config import AppConfig, load_settings
from webapi.core import audit
from webapi.core.models import UserEntity
from webapi.core.repository import InMemoryUserRepository, UserRepository
from webapi.core.users_controller import UsersController

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

DEMO_USERS = (
    UserEntity(login="alice", first_name="Alice", last_name="Smith", games_played=3),
    UserEntity(login="bob1", first_name="Bob", last_name="Jones"),
    UserEntity(login="carol", first_name="Carol", last_name="White", games_played=12),
)


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[AppConfig] = None, repository: Optional[UserRepository] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Settings; loaded from the environment when omitted
        repository: User storage; a fresh InMemoryUserRepository when omitted

    Returns:
        Configured Flask app
    """
    cfg = cfg or load_settings()
    _configure_logging(cfg.log_level)

    app = Flask(__name__)

    # Store config for easy access in routes
    app.config["APP_CONFIG"] = cfg
    app.config["MAX_CONTENT_LENGTH"] = cfg.max_content_length
    app.config["PREFERRED_URL_SCHEME"] = cfg.preferred_url_scheme

    # Trust X-Forwarded-* headers from proxy (nginx) so absolute links are right
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)  # type: ignore

    trusted_proxy_networks = _parse_trusted_networks(cfg.trusted_proxy_ips)
    app.config["TRUSTED_PROXY_NETWORKS"] = trusted_proxy_networks

    # Collaborators are wired once here and never reassigned
    from webapi.api import errors, health, users

    repository = repository if repository is not None else InMemoryUserRepository()
    if cfg.seed_demo_users:
        _seed_demo_users(repository)

    app.config[health.REPOSITORY_CONFIG_KEY] = repository
    app.config[users.CONTROLLER_CONFIG_KEY] = UsersController(
        repository,
        users.build_link,
        default_page_size=cfg.default_page_size,
        max_page_size=cfg.max_page_size,
    )

    audit.configure(cfg.audit_log_dir, cfg.audit_log_signing_key)

    # Register blueprints
    app.register_blueprint(health.bp)
    app.register_blueprint(users.bp, url_prefix=cfg.users_api_prefix)

    # Register error handlers
    errors.register_error_handlers(app)

    _register_middleware(app, trusted_proxy_networks)

    print(f"[flask_app] Users API registered at {cfg.users_api_prefix}")
    if cfg.seed_demo_users:
        print(f"[flask_app] Seeded {len(DEMO_USERS)} demo users")

    return app


def _register_middleware(app: Flask, trusted_proxy_networks: list):
    """Register before_request middleware."""

    @app.before_request
    def enforce_proxy_headers() -> None:
        """Accept forwarded headers from trusted proxies only."""
        forwarded = any(name in request.environ for name in ("HTTP_X_FORWARDED_FOR", "HTTP_X_FORWARDED_HOST"))
        original_remote = request.environ.get("werkzeug.proxy_fix.orig", {}).get("REMOTE_ADDR")
        if forwarded and original_remote:
            try:
                address = ipaddress.ip_address(original_remote)
                if not any(address in network for network in trusted_proxy_networks):
                    abort(400, description="Untrusted proxy")
            except ValueError:
                abort(400, description="Invalid proxy address")

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for and "," in forwarded_for:
            abort(400, description="Multiple forwarded clients not permitted")


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions
# ─────────────────────────────────────────────────────────────────────────────
def _configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("webapi").setLevel(level)


def _parse_trusted_networks(raw: str) -> list:
    """Parse a comma-separated list of CIDRs, skipping invalid entries."""
    networks = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            print(f"[flask_app] WARNING: ignoring invalid TRUSTED_PROXY_IPS entry {entry!r}")
            continue
    return networks


def _seed_demo_users(repository: UserRepository) -> None:
    for user in DEMO_USERS:
        repository.insert(user)


# ─────────────────────────────────────────────────────────────────────────────
# Application Instance (for Gunicorn)
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
