# dailyhistory/__init__.py
import os

from flask import Flask, jsonify

from config import config
from dailyhistory.extensions import cors, db, login_manager


def create_app(config_name=None):
    app = Flask(__name__)
    config_name = config_name or os.getenv("FLASK_CONFIG", "default")
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)

    # ---- Bind extensions FIRST ----
    db.init_app(app)
    login_manager.init_app(app)
    login_manager.unauthorized_handler(lambda: (jsonify({"ok": False, "error": {"code": "unauthorized", "message": "Authentication required"}}), 401))
    cors.init_app(app, supports_credentials=True)

    # ---- Models + tables ----
    with app.app_context():
        from dailyhistory import models  # noqa: F401
        db.create_all()

    # ---- Blueprints ----
    from dailyhistory.puzzles import puzzles_bp
    app.register_blueprint(puzzles_bp)

    @app.get("/healthz")
    def healthz():
        return jsonify({"ok": True})

    # ---- Daily generation ----
    if app.config.get("SCHEDULER_ENABLED"):
        from dailyhistory.puzzles.scheduler import schedule_daily_puzzles
        app.scheduler = schedule_daily_puzzles(app)

    return app
