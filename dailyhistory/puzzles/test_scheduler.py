from datetime import timedelta

from dailyhistory.extensions import db
from dailyhistory.models import OrderPuzzle, Puzzle
from dailyhistory.puzzles.generation import local_today
from dailyhistory.puzzles.scheduler import generate_upcoming_puzzles


def test_cron_job_generates_today_and_tomorrow(app, events):
    results = generate_upcoming_puzzles(app)
    today = local_today()
    tomorrow = today + timedelta(days=1)
    assert set(results) == {today.isoformat(), tomorrow.isoformat()}
    assert results[today.isoformat()]["classic"]["status"] == "created"
    assert results[tomorrow.isoformat()]["order"]["status"] == "created"
    assert db.session.query(Puzzle).count() == 2
    assert db.session.query(OrderPuzzle).count() == 2


def test_cron_job_survives_an_empty_pool(app):
    results = generate_upcoming_puzzles(app)
    assert all(r["classic"]["status"] == "failed" for r in results.values())
