from flask import Blueprint

puzzles_bp = Blueprint("puzzles", __name__, url_prefix="/api")

from . import routes  # noqa: E402,F401
