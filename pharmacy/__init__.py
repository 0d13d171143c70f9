"""Flask application factory."""
import os
import traceback

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from pharmacy.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize Sentry for error tracking in production
    sentry_dsn = app.config.get('SENTRY_DSN')
    if sentry_dsn and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            profiles_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache for summary endpoints
    from pharmacy.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from pharmacy.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=1,
            x_proto=1,
            x_host=1,
            x_port=1,
            x_prefix=0
        )

    init_db(app)

    from pharmacy.middleware import load_current_user

    @app.before_request
    def before_request_handler():
        """Load the authenticated staff member for each request."""
        load_current_user()

    # Error Handlers
    from pharmacy.exceptions import PharmacyError

    @app.errorhandler(PharmacyError)
    def handle_pharmacy_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"PharmacyError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"PharmacyError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        if isinstance(error, HTTPException):
            return jsonify({'status': 'error', 'message': error.description}), error.code

        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from pharmacy.blueprints.main import main_bp
    from pharmacy.blueprints.auth import auth_bp
    from pharmacy.blueprints.medicines import medicines_bp
    from pharmacy.blueprints.customers import customers_bp
    from pharmacy.blueprints.prescriptions import prescriptions_bp
    from pharmacy.blueprints.sales import sales_bp
    from pharmacy.blueprints.alerts import alerts_bp
    from pharmacy.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(medicines_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(prescriptions_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(alerts_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from pharmacy.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
