"""
HTTP server — Flask app factory.

Creates the Flask application exposing the upgrade service as a small
JSON API. One service instance is shared by every request, so
concurrent upgrade requests for the same module queue on its lock.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Flask

from upgrader.core.config.loader import load_fleet
from upgrader.core.services.upgrade_service import UpgradeService

logger = logging.getLogger(__name__)


def create_app(
    config_path: Path | None = None,
    service: UpgradeService | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        config_path: Path to modules.yml (default: auto-detect).
        service: Pre-built service, used instead of loading config.

    Returns:
        Configured Flask application.

    Raises:
        ConfigError: If no service is given and modules.yml is invalid.
    """
    if service is None:
        service = UpgradeService.from_config(load_fleet(config_path))

    app = Flask(__name__)
    app.config["CONFIG_PATH"] = str(config_path) if config_path else None
    app.extensions["upgrade_service"] = service

    from upgrader.ui.web.routes_upgrade import upgrade_bp

    app.register_blueprint(upgrade_bp, url_prefix="/api/upgrade")

    logger.info("Upgrade API created (%d modules)", len(service.fleet.modules))
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8000,
    debug: bool = False,
) -> None:
    """Run the Flask development server."""
    logger.info("Starting upgrade API on %s:%d", host, port)
    app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
