"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
from flask import Flask, jsonify


def create_app():
    """Create and configure the Flask application."""
    from leadgen.config import SECRET_KEY
    from leadgen.logging_config import configure_logging
    from leadgen.errors import LeadNotFound, IllegalTransition

    app = Flask(__name__)

    configure_logging(app)

    app.secret_key = SECRET_KEY

    # Register blueprints
    from leadgen.routes.health import bp as health_bp
    from leadgen.routes.leads import bp as leads_bp
    from leadgen.routes.scrape import bp as scrape_bp
    from leadgen.routes.analyze import bp as analyze_bp
    from leadgen.routes.outreach import bp as outreach_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(scrape_bp)
    app.register_blueprint(analyze_bp)
    app.register_blueprint(outreach_bp)

    @app.errorhandler(LeadNotFound)
    def lead_not_found(e):
        return jsonify({'success': False, 'error': str(e)}), 404

    @app.errorhandler(IllegalTransition)
    def illegal_transition(e):
        return jsonify({'success': False, 'error': str(e)}), 409

    # Initialize circuit breakers for external API services
    from leadgen.extensions import redis_client
    from leadgen.services.circuit_breaker import init_breakers
    init_breakers(redis_client)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic — no init_db() call.
    import importlib
    importlib.import_module('leadgen.models.lead')
    importlib.import_module('leadgen.models.pipeline_run')

    return app
