"""Local development entry point.

Usage:
    python run.py

Listens on $PORT (default 8000). Production should run the app under a
WSGI server with FLASK_ENV=production instead.
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before create_app reads the environment

from app import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=app.debug, host="0.0.0.0", port=app.config["PORT"])
