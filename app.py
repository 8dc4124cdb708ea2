import os
import importlib
import logging
import pkgutil

from flask import Blueprint, Flask

from config import settings
from config.database import bootstrap_indexes


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, settings.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)


def create_app() -> Flask:
    """Flask application factory."""
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev")
    # Let oversized uploads fail in the request parser before reaching the view
    app.config["MAX_CONTENT_LENGTH"] = settings.UPLOAD_MAX_BYTES + 1024 * 1024

    _configure_logging(app)

    from middleware.handlers import register_error_handlers
    register_error_handlers(app)

    # Allow test suites to bypass authentication without modifying middleware.
    if os.getenv("PYTEST_CURRENT_TEST"):
        app.config.setdefault("LOGIN_DISABLED", True)

    # Auto-register all blueprints defined in routes/*.py
    from routes import __path__ as routes_path

    for _, module_name, _ in pkgutil.iter_modules(routes_path):
        module = importlib.import_module(f"routes.{module_name}")
        for attr_name in dir(module):
            obj = getattr(module, attr_name)
            if isinstance(obj, Blueprint):
                app.register_blueprint(obj)

    bootstrap_indexes()
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        debug=os.getenv("FLASK_DEBUG", "0") == "1",
        use_reloader=False,
    )
