"""Flask web app for the Yorkie Storybook."""

# Load environment variables from .env file before other imports
from dotenv import load_dotenv  # type: ignore[import-untyped]

load_dotenv()  # noqa: E402

import os  # noqa: E402
import time  # noqa: E402
import logging  # noqa: E402
from typing import Any, Dict, Optional  # noqa: E402
from flask import Flask, g, request  # noqa: E402
from flask_cors import CORS  # type: ignore[import-untyped]  # noqa: E402
from flask_limiter import Limiter  # type: ignore[import-untyped]  # noqa: E402
from flask_limiter.util import get_remote_address  # type: ignore[import-untyped]  # noqa: E402
from src.yorkiebook.api import register_routes  # noqa: E402
from src.yorkiebook.api.helpers import LIMITER_EXTENSION, SERVICES_EXTENSION  # noqa: E402
from src.yorkiebook.config import load_config  # noqa: E402
from src.yorkiebook.services import Services, build_services  # noqa: E402
from src.yorkiebook.utils.errors import register_error_handlers  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO if os.getenv('FLASK_ENV') != 'development' else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def register_request_logging(flask_app: Flask) -> None:
    """Log method, path, status and duration for every /api request."""

    @flask_app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @flask_app.after_request
    def log_request(response):
        if request.path.startswith('/api'):
            started = g.get('request_started')
            elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0.0
            logger.info(f"{request.method} {request.path} {response.status_code} in {elapsed_ms:.0f}ms")
        return response


def log_provider_setup(services: Services) -> None:
    """Report which providers the generation service will use."""
    generation = services.generation
    logger.info(f"Text provider ready: model '{generation.text_provider.model_name}'")
    logger.info(f"Image provider ready: {type(generation.image_provider).__name__}")
    logger.info(
        f"Repositories initialized with {services.stories.count()} stories "
        f"and {services.images.count()} images"
    )


def create_app(config: Optional[Dict[str, Any]] = None, services: Optional[Services] = None) -> Flask:
    """
    Application factory.

    Args:
        config: Overrides applied on top of the environment configuration
        services: Prebuilt service container (tests inject fakes here)

    Returns:
        Configured Flask application
    """
    flask_app = Flask(__name__)
    flask_app.config.update(load_config())
    if config:
        flask_app.config.update(config)

    CORS(flask_app)

    limiter = Limiter(
        key_func=get_remote_address,
        app=flask_app,
        default_limits=flask_app.config["DEFAULT_RATE_LIMITS"],
        storage_uri=flask_app.config["RATELIMIT_STORAGE_URI"],
        headers_enabled=True,
    )
    # Route decorators only hold a weak proxy to the limiter
    flask_app.extensions[LIMITER_EXTENSION] = limiter

    if services is None:
        services = build_services(flask_app.config)
    flask_app.extensions[SERVICES_EXTENSION] = services

    register_error_handlers(flask_app, debug=flask_app.config.get("DEBUG_ERRORS", False))
    register_request_logging(flask_app)
    register_routes(flask_app, limiter)

    log_provider_setup(services)
    return flask_app


if __name__ == '__main__':
    port = int(os.getenv('PORT', '5000'))
    create_app().run(host='0.0.0.0', port=port, debug=os.getenv('FLASK_ENV') == 'development')
