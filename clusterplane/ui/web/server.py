"""
Admission webhook server — Flask app factory.

Creates the Flask application that serves the validating and mutating
admission webhooks for ClusterDeployments, plus health and metrics.
"""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Flask

from clusterplane.core.context import Workspace, open_workspace

logger = logging.getLogger(__name__)


def create_app(
    workspace: Workspace | None = None,
    config_path: Path | None = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        workspace: Store, settings and catalog to serve.  Opened from
            ``config_path`` (or the auto-detected config) when omitted.
        config_path: Path to clusterplane.yml.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)

    if workspace is None:
        workspace = open_workspace(config_path)
    app.config["WORKSPACE"] = workspace
    app.config["MAX_CONTENT_LENGTH"] = 4 * 1024 * 1024  # admission payloads are small

    from clusterplane.ui.web.routes_admission import admission_bp
    from clusterplane.ui.web.routes_metrics import metrics_bp

    app.register_blueprint(admission_bp)
    app.register_blueprint(metrics_bp)

    logger.info("Admission webhook app created (state=%s)", workspace.state_dir)
    return app


def run_server(
    app: Flask,
    host: str = "127.0.0.1",
    port: int = 8443,
    debug: bool = False,
    ssl_context: tuple[str, str] | None = None,
) -> None:
    """Run the Flask server (threaded, one request per thread)."""
    logger.info("Starting admission webhook on %s:%d", host, port)
    app.run(
        host=host,
        port=port,
        debug=debug,
        use_reloader=False,
        threaded=True,
        ssl_context=ssl_context,
    )
