import os

from flask import Flask, jsonify

from .config import load_config
from .extensions import init_extensions
from .logging_config import configure_logging


def create_app(config=None, init_services=True):
    """App factory entrypoint.

    Tests pass `init_services=False` and patch `eduvox.runtime` themselves.
    """
    config = config or load_config()
    configure_logging(config.log_level)

    app = Flask(__name__)
    app.secret_key = config.flask_secret_key or os.urandom(32).hex()
    app.config['EDUVOX_CONFIG'] = config

    if init_services:
        init_extensions(app, config)
    else:
        from . import runtime

        runtime.config = config

    from .blueprints import admin_bp, pathways_bp, profile_bp, session_bp, subscription_bp

    app.register_blueprint(subscription_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(pathways_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(session_bp)

    @app.route('/healthz')
    def healthz():
        return jsonify({'status': 'ok'}), 200

    return app
