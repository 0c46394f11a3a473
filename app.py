from flask import Flask
from flask_migrate import Migrate

from config import Config
from models import db
from routes import auth_bp, credentials_bp, health_bp
from security.csrf import enforce_csrf
from utils.auth_context import load_current_session
from utils.emailer import dispatch_credentials
from utils.logging import configure_logging

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none';",
    # Responses may carry tokens or freshly issued secrets
    "Cache-Control": "no-store",
}


def _engine_options(app):
    options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
    uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if uri.startswith("sqlite"):
        # busy timeout on a locked database file
        connect_args = dict(options.get("connect_args") or {})
        connect_args.setdefault("timeout", app.config.get("LEDGER_TIMEOUT_SECONDS", 5))
        options["connect_args"] = connect_args
        if ":memory:" in uri or uri in ("sqlite://", "sqlite:///"):
            options.pop("pool_timeout", None)
    return options


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _engine_options(app)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"), app.config.get("LOG_JSON", True))

    db.init_app(app)
    Migrate(app, db)

    for blueprint in (health_bp, auth_bp, credentials_bp):
        app.register_blueprint(blueprint)

    # Outbound delivery of provisioned secrets; replaceable per app
    app.extensions.setdefault("credential_dispatcher", dispatch_credentials)

    # Order matters: CSRF needs to know whether the session came from a cookie
    app.before_request(load_current_session)
    app.before_request(enforce_csrf)

    @app.after_request
    def add_security_headers(resp):
        resp.headers.update(SECURITY_HEADERS)
        return resp

    return app


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
