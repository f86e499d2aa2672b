from flask import Flask, jsonify
from flask_cors import CORS
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException
from class_defs.upstream_def import ErrorCode
from infrastructure.logger import setup_logger, get_logger
from infrastructure.relay_errors import error_body
from routes.health import health_bp
from routes.predictions import predictions_bp
from services.prediction_service import UPSTREAM_URL_KEYS

logger = get_logger(__name__)


def check_upstream_urls(config):
    missing = [key for key in UPSTREAM_URL_KEYS.values() if not config.get(key)]
    if missing:
        raise RuntimeError(f"Upstream URL not configured: {', '.join(missing)}")


def create_app(config_object="config.Config"):
    app = Flask(__name__)

    load_dotenv()

    app.config.from_object(config_object)
    check_upstream_urls(app.config)

    CORS(
        app,
        origins=app.config.get("CORS_ALLOWED_ORIGINS", []),
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        supports_credentials=True,
    )

    app.register_blueprint(health_bp)
    app.register_blueprint(predictions_bp)

    @app.errorhandler(HTTPException)
    def http_error(e):
        # werkzeug refuses oversized bodies itself, before the route can
        code = ErrorCode.INVALID_INPUT if e.code == 413 else None
        return jsonify(error_body(e.name, e.description, code)), e.code

    @app.errorhandler(Exception)
    def unhandled_error(e):
        logger.error("Unhandled exception: %s", e, exc_info=True)
        return jsonify(error_body("Internal server error", "An internal server error occurred")), 500

    level = app.config.get("LOGGER_LEVEL", "INFO")
    setup_logger(
        name="agrivision",
        level=level,
        toFile=app.config.get("LOG_TO_FILE", False),
        fileName=app.config.get("LOG_FILE", "agrivision.log"),
    )
    logger.info("Allowed CORS origins: %s", app.config.get("CORS_ALLOWED_ORIGINS"))

    return app

if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=5000)
