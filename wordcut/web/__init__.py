"""Flask application factory for the WordCut web API."""

import tempfile
from pathlib import Path

from flask import Flask, jsonify

from wordcut.manifest import ToolConfig, TranscriptionConfig


def create_app(
    work_dir: Path | None = None,
    transcription: TranscriptionConfig | None = None,
    tools: ToolConfig | None = None,
) -> Flask:
    app = Flask(__name__)
    app.config["WORK_DIR"] = work_dir or Path(tempfile.mkdtemp(prefix="wordcut_"))
    app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024 * 1024  # 10 GB
    app.config["TRANSCRIPTION"] = transcription or TranscriptionConfig()
    app.config["TOOLS"] = tools or ToolConfig()

    from wordcut.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({"error": "File too large"}), 413

    return app
