"""Flask application factory for the quote engine."""
import os

from flask import Flask, jsonify, request
from flask_wtf.csrf import CSRFError, CSRFProtect, generate_csrf
from werkzeug.exceptions import HTTPException

from ricequote.database import init_db


def _init_sentry(app):
    """Error tracking, production only."""
    dsn = app.config.get('SENTRY_DSN')
    if not dsn or app.config.get('ENV') != 'production':
        return
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=0.1,
        environment=app.config.get('ENV'),
        release=os.getenv('GIT_COMMIT', 'unknown')
    )
    app.logger.info("[APP] Sentry enabled")


def _register_error_handlers(app):
    from ricequote.exceptions import QuoteEngineError

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"[APP] CSRF rejected on {request.path}: {e.description}")
        return jsonify({'status': 'error', 'message': 'Session expired. Reload the page.'}), 400

    @app.errorhandler(QuoteEngineError)
    def handle_engine_error(error):
        log = app.logger.error if error.status_code >= 500 else app.logger.warning
        reason = getattr(error, 'reason', None)
        detail = f"{error.message} ({reason})" if reason else error.message
        log(f"[APP] {type(error).__name__} [{error.status_code}] {request.path}: {detail}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        if isinstance(error, HTTPException) and error.code and error.code < 500:
            return jsonify({'status': 'error', 'message': error.description}), error.code
        app.logger.exception(f"[APP] Unhandled error on {request.path}: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    CSRFProtect(app)

    # JSON clients fetch a token here and send it back as X-CSRFToken
    @app.route('/csrf-token')
    def csrf_token():
        return jsonify({'status': 'ok', 'csrf_token': generate_csrf()})

    _init_sentry(app)

    from ricequote.services.cache_service import init_cache
    from ricequote.blueprints.metrics import setup_metrics_instrumentation
    init_cache(app)
    setup_metrics_instrumentation(app)

    # Behind the nginx reverse proxy in production
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Store first, then the services that sit on it
    init_db(app)
    from ricequote.services.document_store import init_store
    from ricequote.services.registry import init_services
    init_store(app)
    init_services(app)

    from ricequote.middleware import load_actor_context
    app.before_request(load_actor_context)

    _register_error_handlers(app)

    from ricequote.blueprints.quotes import quotes_bp
    from ricequote.blueprints.cart import cart_bp
    from ricequote.blueprints.admin import admin_bp
    from ricequote.blueprints.metrics import metrics_bp

    app.register_blueprint(quotes_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(metrics_bp)

    app.logger.info(f"[APP] Ready, base currency {app.config.get('BASE_CURRENCY')}")
    return app
