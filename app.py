import os # Standard library for operating system interactions (e.g., creating directories).
import stripe # Stripe Python library for payment processing.
from flask import Flask, jsonify # The main Flask class.
from config import Config # Import the application's configuration class.
from extensions import db, login_manager, migrate # Import initialized extensions.
from models.user import User # Import User model, primarily for the user_loader.
from services.reach_aggregator import ReachAggregator
from services.snapshot_store import SqlSnapshotStore


# Application Factory Function
def create_app(config_class=Config):
    """
    Application factory for creating and configuring the Flask app.

    Args:
        config_class (type, optional): Configuration object to load. Tests pass a
                                       subclass pointing at an in-memory database.

    Returns:
        Flask: The configured application.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)

    # --- Logging ---
    # Everything logs through app.logger (current_app.logger inside requests).
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # --- Initialize Stripe ---
    stripe.api_key = app.config['STRIPE_SECRET_KEY']

    # --- Initialize Flask Extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # JSON API: unauthenticated requests get a 401 instead of a redirect to a login page.
    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Unauthorized"}), 401

    # --- Reach aggregation ---
    # One aggregator per app, sharing the SQLAlchemy engine's connection pool.
    # Worker threads have no app context, so they log through app.logger directly.
    with app.app_context():
        app.extensions['reach_aggregator'] = ReachAggregator(
            SqlSnapshotStore(db.engine),
            logger=app.logger,
            max_workers=app.config.get('REACH_MAX_WORKERS', 4),
        )

    try:
        os.makedirs(app.instance_path)
    except OSError:
        pass # Folder already exists.

    # --- Import and Register Blueprints ---
    from routes.auth import auth_bp
    from routes.billing import billing_bp
    from routes.ads import ads_bp
    from routes.analysis import analysis_bp
    from routes.main import main_bp

    app.register_blueprint(auth_bp, url_prefix='/auth') # /auth/register, /auth/login, ...
    app.register_blueprint(billing_bp)   # /stripe-webhook
    app.register_blueprint(ads_bp)       # /api/ads/...
    app.register_blueprint(analysis_bp)  # /api/analyze, /api/analysis/<id>, /api/history
    app.register_blueprint(main_bp)      # /api/health

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Unhandled server error: {error}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500

    # --- Flask-Login User Loader ---
    @login_manager.user_loader
    def load_user(user_id):
        """Loads a user from the database given their ID."""
        return db.session.get(User, int(user_id))

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
