"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect
from livenzo.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize CSRF protection
    csrf = CSRFProtect(app)

    from flask_wtf.csrf import CSRFError

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'Your session has expired. Reload and try again.'}), 400

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            profiles_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Flask-Mail for rent notifications
    from livenzo.services.notification_service import init_mail
    init_mail(app)

    # Key-value store for flags and payment flows
    from livenzo.services.kv_store import init_kv_store
    init_kv_store(app)

    # Prometheus metrics instrumentation
    from livenzo.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production' or app.config.get('FLASK_ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=1,
            x_proto=1,
            x_host=1,
            x_port=1,
            x_prefix=0
        )

    # Initialize database
    init_db(app)

    from livenzo.middleware import load_user

    @app.before_request
    def before_request_handler():
        """Load the current user for each request."""
        load_user()

    # Error Handlers
    from livenzo.exceptions import LivenzoError

    @app.errorhandler(LivenzoError)
    def handle_livenzo_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"LivenzoError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"LivenzoError [{error.status_code}]: {error.message}")
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
        import traceback
        app.logger.error(f"Unhandled Exception on {request.path}: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from livenzo.blueprints.main import main_bp
    from livenzo.blueprints.rent import rent_bp
    from livenzo.blueprints.payments import payments_bp
    from livenzo.blueprints.metrics import metrics_bp
    from livenzo.blueprints.webhooks import webhooks_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(rent_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(metrics_bp)

    # Webhooks must be exempt from CSRF
    csrf.exempt(webhooks_bp)
    app.register_blueprint(webhooks_bp)

    from livenzo.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
