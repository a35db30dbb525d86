"""
=============================================================================
LEARNING STATE TUTOR - APPLICATION ENTRY POINT (app.py)
=============================================================================

WHAT THIS FILE DOES (in plain language):
----------------------------------------
This is the "front door" of the server. When you run "python app.py", the computer
starts a web server that the tutor frontend talks to. The server:

  1. Listens for requests from the browser (e.g. "start learning state
     detection", "here is a webcam frame", "send this question to the tutor").
  2. Runs our own code to read the student's face and decide whether they look
     focused, confused, bored or tired.
  3. Talks to Azure AI Foundry for the tutor's replies, adapted to that state.

The actual "rooms" (URL handlers) are defined in routes.py.

HOW TO RUN:
-----------
  - From project root:  python app.py
  - By default the app is at:  http://localhost:5000

CONFIGURATION:
--------------
  - Settings (API keys, ports, thresholds) come from the .env file and config.py.
  - Never put real API keys in the code; use environment variables.
=============================================================================
"""

# ---------------------------------------------------------------------------
# Step 1: Load environment variables from .env (before anything else)
# ---------------------------------------------------------------------------
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env")

# ---------------------------------------------------------------------------
# Step 2: Import the web framework and our own modules
# ---------------------------------------------------------------------------
import logging

from flask import Flask
from flask_cors import CORS
from flask_compress import Compress

from routes import register_routes
import config

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging() -> None:
    """Configure the root logger from LOG_LEVEL (once; later calls are no-ops)."""
    level = getattr(logging, config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)


# ---------------------------------------------------------------------------
# Step 3: Logging, then warn the user if important settings are missing
# ---------------------------------------------------------------------------
configure_logging()
config.warn_missing_config()


def create_app() -> Flask:
    """
    Create and configure the Flask application (the web server).

    What it does:
      - Creates a new Flask "app" object.
      - Enables CORS so the tutor frontend can call our API from another origin.
      - Enables compression for larger responses (e.g. /learning/state history).
      - Registers all URL routes from routes.py.

    Returns:
        The configured Flask application.
    """
    app = Flask(__name__)

    # In production you would restrict this to specific domains.
    CORS(app, resources={r"/*": {"origins": "*"}})
    Compress(app)
    register_routes(app)

    return app


# ---------------------------------------------------------------------------
# Create the one global Flask application
# ---------------------------------------------------------------------------
app = create_app()


if __name__ == "__main__":
    # FLASK_DEBUG=true: Flask's development server (auto-reload, debugger).
    # Otherwise: Waitress with several threads; browser frame pushes and chat
    # requests can then arrive concurrently.
    if config.FLASK_DEBUG:
        app.run(
            host=config.FLASK_HOST,
            port=config.FLASK_PORT,
            debug=True
        )
    else:
        import waitress
        waitress.serve(app, host=config.FLASK_HOST, port=config.FLASK_PORT, threads=6)
