"""Application factory for the API key service."""

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException

from .app_logging import setup_logger
from .routes import blueprint
from .services import applications


def create_web_app() -> Flask:
    """Initialize and configure the API key application."""
    app = Flask('apikeys')
    app.config.from_pyfile('config.py')

    setup_logger(app.config.get('LOGLEVEL', 'INFO'),
                 json=app.config.get('LOG_JSON', True))

    applications.init_app(app)
    app.register_blueprint(blueprint)

    register_error_handlers(app)
    return app


def register_error_handlers(app: Flask) -> None:
    """Register error handlers for the Flask app."""
    app.errorhandler(HTTPException)(jsonify_exception)


def jsonify_exception(error: HTTPException) -> Response:
    """Render exceptions as JSON."""
    exc_resp = error.get_response()
    response: Response = jsonify(reason=error.description)
    response.status_code = exc_resp.status_code
    return response
