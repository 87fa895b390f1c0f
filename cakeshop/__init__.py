"""Flask application factory."""
from flask import Flask, jsonify
from cakeshop.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.sort_keys = app.config.get('JSON_SORT_KEYS', False)

    # Initialize Sentry for error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Setup Prometheus metrics instrumentation
    from cakeshop.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust X-Forwarded-* from the reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    from cakeshop.middleware import load_caller

    @app.before_request
    def before_request_handler():
        """Resolve the bearer token of each request into g.caller."""
        load_caller()

    # Error Handlers
    from cakeshop.exceptions import ShopError

    @app.errorhandler(ShopError)
    def handle_shop_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"{error.kind} [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"{error.kind} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'kind': 'NotFound', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'kind': 'MethodNotAllowed', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        import traceback
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'kind': 'InternalError', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from cakeshop.blueprints.menu import menu_bp
    from cakeshop.blueprints.cart import cart_bp
    from cakeshop.blueprints.orders import orders_bp
    from cakeshop.blueprints.custom_cakes import custom_cakes_bp
    from cakeshop.blueprints.metrics import metrics_bp

    app.register_blueprint(menu_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(custom_cakes_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from cakeshop.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
