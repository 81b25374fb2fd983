from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .deps import EXTENSION_KEY, AuthComponents
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from services.github import GitHubOAuthClient
from utils.security import PasswordHasher
from utils.settings import load_auth_settings
from utils.tokens import TokenCodec, utc_now

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Tsumi Auth API",
        "version": "1.0.0",
        "description": "Signup, signin, GitHub OAuth and access/refresh token sessions.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def create_app(config_name: str | None = None, overrides: dict | None = None,
               components: AuthComponents | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.

    Auth settings are validated here (ConfigError lists every problem) so a
    misconfigured process never starts serving. Tests may pass config
    overrides or pre-built AuthComponents (fixed clock, fake GitHub client).
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    if components is None:
        settings = load_auth_settings(app.config)
        github = None
        if settings.github_enabled:
            github = GitHubOAuthClient(settings.github_client_id, settings.github_client_secret)
        components = AuthComponents(
            settings=settings,
            codec=TokenCodec(settings),
            hasher=PasswordHasher(),
            clock=utc_now,
            github=github,
        )
    app.extensions[EXTENSION_KEY] = components

    storage.configure(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))
    storage.reload()

    # Cross-Origin Resource Sharing; credentials are needed for the refresh cookie
    CORS(
        app,
        resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        supports_credentials=app.config.get("CORS_ORIGINS", "*") != "*",
    )

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), returning the connection to the pool
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Tsumi auth service",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
