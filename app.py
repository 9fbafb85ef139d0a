import logging

from flask import Flask, jsonify
from postgrest.exceptions import APIError
from pydantic import ValidationError

from config import Config
from store import RecordNotFound
from utils import utcnow
from routes.adminauth import adminauth_bp
from routes.dashboard import dashboard_bp
from routes.member import member_bp
from routes.memberauth import memberauth_bp
from routes.members import members_bp
from routes.schemes import schemes_bp
from routes.transactions import transactions_bp

logger = logging.getLogger(__name__)


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Configure logging
    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Register blueprints
    app.register_blueprint(adminauth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(members_bp)
    app.register_blueprint(schemes_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(memberauth_bp)
    app.register_blueprint(member_bp)

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        """Convert pydantic validation errors into JSON responses"""
        return jsonify({
            'success': False,
            'message': 'Invalid request',
            'detail': exc.errors(include_url=False, include_context=False, include_input=False),
        }), 400

    @app.errorhandler(RecordNotFound)
    def handle_not_found(exc):
        return jsonify({'success': False, 'message': str(exc)}), 404

    @app.errorhandler(APIError)
    def handle_storage_error(exc):
        logger.error("Supabase request failed: %s", exc)
        return jsonify({'success': False, 'message': 'Storage error, please try again'}), 502

    @app.route('/')
    def home():
        return jsonify({'service': 'Adashi savings groups', 'time': utcnow().isoformat()})

    return app


app = create_app()

if __name__ == '__main__':
    from waitress import serve

    logger.info("Starting Adashi on port %s", app.config['PORT'])
    serve(app, host="0.0.0.0", port=app.config['PORT'])
