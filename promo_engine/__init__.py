import logging
from flask import Flask, jsonify
from .extensions import db, cors, migrate
from .config import Config

def create_app(overrides: dict | None = None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    Config.init_app(app)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Init extensions
    db.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": "*"}})
    migrate.init_app(app, db)

    from .errors import register_error_handlers; register_error_handlers(app)
    from .discount import bp as discount_bp; app.register_blueprint(discount_bp)
    from .cli import register_cli; register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="discount engine running")

    with app.app_context():
        from . import model  # noqa: F401  register tables
        db.create_all()

    app.logger.info("discount engine ready, blueprints: %s", sorted(app.blueprints.keys()))
    return app
