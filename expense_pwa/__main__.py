import os

from .app import create_app

if __name__ == "__main__":
    app = create_app()
    app.run(debug=app.config["APP_ENV"] == "development", host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
