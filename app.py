"""Development entry point: ``python app.py`` (APP_ENV selects the settings)."""

from src.presence.presence.main import create_app

app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=app.config["DEBUG"])
