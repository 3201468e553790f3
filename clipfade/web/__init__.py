"""Flask application factory for the ClipFade web API."""

import tempfile
from pathlib import Path

from flask import Flask, jsonify

from clipfade.manifest import EngineConfig


def create_app(
    work_dir: Path | None = None,
    engine: EngineConfig | None = None,
    progress_timeout: float = 120.0,
) -> Flask:
    """Build the merge-job API.

    Each job gets its own directory under ``work_dir``; every merge started
    by this app runs with ``engine`` (defaults to the environment's config).
    """
    app = Flask(__name__)
    app.config["WORK_DIR"] = work_dir or Path(tempfile.mkdtemp(prefix="clipfade_jobs_"))
    app.config["ENGINE"] = engine or EngineConfig.from_env()
    app.config["PROGRESS_TIMEOUT"] = progress_timeout
    app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024 * 1024  # 10 GB

    from clipfade.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def clip_too_large(error):
        return jsonify({"error": "Clip exceeds the upload limit"}), 413

    return app
