# dailyhistory/puzzles/routes.py
from __future__ import annotations

import hmac
from datetime import date

from flask import abort, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import select

from dailyhistory.engine.hints import NoHintAvailable, hint_to_dict, serialize_hint
from dailyhistory.errors import DateOutOfWindow, PuzzleError, RecordNotFound, ValidationFailed
from dailyhistory.extensions import db
from dailyhistory.models import OrderPuzzle, Puzzle
from dailyhistory.puzzles.generation import (
    ensure_classic_puzzle,
    ensure_order_puzzle,
    ensure_puzzles_for_date,
    local_today,
)
from dailyhistory.puzzles.plays import request_order_hint, submit_range_guess, validate_and_record_order_play

from . import puzzles_bp


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _error(code: str, message: str, status: int):
    return jsonify({"ok": False, "error": {"code": code, "message": message}}), status


@puzzles_bp.errorhandler(ValidationFailed)
def _validation_failed(exc: ValidationFailed):
    current_app.logger.warning("[puzzles] submission rejected (%s): %s", exc.step, exc.message)
    return _error(exc.step, exc.message, exc.status_code)


@puzzles_bp.errorhandler(RecordNotFound)
def _not_found(exc: RecordNotFound):
    return _error("not_found", str(exc), 404)


def _authenticated_id():
    return current_user.get_id() if getattr(current_user, "is_authenticated", False) else None


def _today_or_generate(model, ensure):
    """Serve today's puzzle, generating it on first request if the cron hasn't."""
    today = local_today()
    puzzle = db.session.execute(select(model).where(model.date == today)).scalar_one_or_none()
    if puzzle:
        return puzzle
    try:
        return ensure(today).puzzle
    except PuzzleError as exc:
        current_app.logger.exception("[puzzles] on-demand generation failed for %s: %s", today, exc)
        abort(503, description="Today's puzzle is not available yet.")


def _released_by_number(model, number: int):
    puzzle = db.session.execute(select(model).where(model.puzzle_number == number)).scalar_one_or_none()
    if not puzzle or puzzle.date > local_today():
        abort(404, description="No such puzzle.")
    return puzzle


def _released_by_id(model, puzzle_id: int):
    puzzle = db.session.get(model, puzzle_id)
    if not puzzle or puzzle.date > local_today():
        abort(404, description="No such puzzle.")
    return puzzle


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description="Expected a JSON object.")
    return payload


# -----------------------------------------------------------------------------
# Range mode
# -----------------------------------------------------------------------------
@puzzles_bp.get("/puzzle/today")
def classic_today():
    return jsonify({"ok": True, "puzzle": _today_or_generate(Puzzle, ensure_classic_puzzle).public_payload()})


@puzzles_bp.get("/puzzle/<int:number>")
def classic_by_number(number: int):
    return jsonify({"ok": True, "puzzle": _released_by_number(Puzzle, number).public_payload()})


@puzzles_bp.post("/puzzle/<int:puzzle_id>/guess")
@login_required
def classic_guess(puzzle_id: int):
    _released_by_id(Puzzle, puzzle_id)
    payload = _json_body()
    recorded = submit_range_guess(payload.get("userId"), _authenticated_id(), puzzle_id, payload)
    return jsonify({"ok": True, **recorded.to_dict()})


# -----------------------------------------------------------------------------
# Order mode
# -----------------------------------------------------------------------------
@puzzles_bp.get("/order/today")
def order_today():
    return jsonify({"ok": True, "puzzle": _today_or_generate(OrderPuzzle, ensure_order_puzzle).public_payload()})


@puzzles_bp.get("/order/<int:number>")
def order_by_number(number: int):
    return jsonify({"ok": True, "puzzle": _released_by_number(OrderPuzzle, number).public_payload()})


@puzzles_bp.post("/order/<int:puzzle_id>/submit")
@login_required
def order_submit(puzzle_id: int):
    _released_by_id(OrderPuzzle, puzzle_id)
    payload = _json_body()
    recorded = validate_and_record_order_play(payload.get("userId"), _authenticated_id(), puzzle_id, payload)
    return jsonify({"ok": True, **recorded.to_dict()})


@puzzles_bp.post("/order/<int:puzzle_id>/hint")
@login_required
def order_hint(puzzle_id: int):
    _released_by_id(OrderPuzzle, puzzle_id)
    payload = _json_body()
    try:
        hint, play = request_order_hint(_authenticated_id(), puzzle_id, payload)
    except NoHintAvailable as exc:
        return _error("no_hint", str(exc), 409)
    except ValueError as exc:
        return _error("bad_input", str(exc), 400)

    return jsonify({
        "ok": True,
        "hint": hint_to_dict(hint),
        "serialized": serialize_hint(hint),
        "hints": list(play.hints),
    })


# -----------------------------------------------------------------------------
# Account + admin
# -----------------------------------------------------------------------------
@puzzles_bp.get("/me/stats")
@login_required
def my_stats():
    return jsonify({"ok": True, "stats": current_user.stats_payload()})


@puzzles_bp.post("/admin/generate")
def admin_generate():
    token = current_app.config.get("ADMIN_GENERATE_TOKEN") or ""
    if not token:
        abort(404)
    supplied = request.headers.get("X-Admin-Token", "")
    if not hmac.compare_digest(supplied, token):
        return _error("forbidden", "Bad admin token", 403)

    payload = request.get_json(silent=True) or {}
    raw_date = payload.get("date")
    try:
        target = date.fromisoformat(raw_date) if raw_date else local_today()
    except (TypeError, ValueError):
        return _error("bad_input", "date must be YYYY-MM-DD", 400)

    try:
        outcome = ensure_puzzles_for_date(target, on_demand=True)
    except DateOutOfWindow as exc:
        return _error("out_of_window", str(exc), 400)
    return jsonify({"ok": True, "date": target.isoformat(), "results": outcome})
