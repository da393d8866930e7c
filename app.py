#!/usr/bin/env python3
"""
IPTV Provider Sync - pulls categories and channels from Xtream Codes providers
and validates channel streams

Application entry point with blueprint registration:
  - routes/providers.py - Provider CRUD, credential check, sync
  - routes/validation.py - Stream validation and channel counts
"""

import logging
import os

from flask import Flask
from flask_cors import CORS

from error_handling import register_error_handlers
from models import db

# Initialize Flask app
app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL", "sqlite:////app/data/iptv_sync.db")
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")

# Upstream timeouts
app.config["PROVIDER_REQUEST_TIMEOUT"] = int(os.getenv("PROVIDER_REQUEST_TIMEOUT", "30"))
app.config["STREAM_PROBE_TIMEOUT_MS"] = int(os.getenv("STREAM_PROBE_TIMEOUT_MS", "5000"))

# SQLite configuration for syncs running alongside API requests
# - timeout: Wait up to 30 seconds for locks (default is 5)
# - check_same_thread: Allow use across threads
app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
    "connect_args": {
        "timeout": 30,
        "check_same_thread": False,
    },
    "pool_pre_ping": True,
}

# Initialize extensions
CORS(app)
db.init_app(app)

# Register error handlers
register_error_handlers(app)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ============================================================================
# Register Blueprints
# ============================================================================

from routes.providers import providers_bp
from routes.validation import validation_bp

app.register_blueprint(providers_bp)
app.register_blueprint(validation_bp)


# ============================================================================
# CLI Commands
# ============================================================================


@app.cli.command("init-db")
def init_db():
    """Initialize the database"""
    db.create_all()
    print("Database initialized!")


# ============================================================================
# Application Entry Point
# ============================================================================


if __name__ == "__main__":
    with app.app_context():
        db.create_all()

    port = int(os.getenv("PORT", 8000))
    debug = os.getenv("DEBUG", "False").lower() == "true"

    logger.info(f"Starting IPTV Provider Sync on port {port}")
    app.run(host="0.0.0.0", port=port, debug=debug)
