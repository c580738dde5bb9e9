"""Flask application factory."""
import os
import traceback

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from daycare.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    is_production = app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'

    # Error tracking in production
    if app.config.get('SENTRY_DSN') and is_production:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            profiles_sample_rate=0.1,
            environment=app.config.get('ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Flask-Mail for verification, invitation and welcome emails
    from daycare.services.email_service import init_mail
    init_mail(app)

    # Prometheus request metrics
    from daycare.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Behind Nginx in production
    if is_production:
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    # Bearer JWT -> g.user / g.tenant_id
    from daycare.middleware import load_user_and_tenant

    @app.before_request
    def before_request_handler():
        load_user_and_tenant()

    # Error Handlers
    from daycare.exceptions import DaycareError

    @app.errorhandler(DaycareError)
    def handle_daycare_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"DaycareError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"DaycareError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.name}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from daycare.blueprints.auth import auth_bp
    from daycare.blueprints.staff import staff_bp
    from daycare.blueprints.parent_relationships import parent_relationships_bp
    from daycare.blueprints.children import children_bp
    from daycare.blueprints.business import business_bp
    from daycare.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(staff_bp)
    app.register_blueprint(parent_relationships_bp)
    app.register_blueprint(children_bp)
    app.register_blueprint(business_bp)
    app.register_blueprint(metrics_bp)

    from daycare.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
