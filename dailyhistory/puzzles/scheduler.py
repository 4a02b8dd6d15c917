# dailyhistory/puzzles/scheduler.py
from __future__ import annotations

from datetime import timedelta

import pytz
from apscheduler.schedulers.background import BackgroundScheduler

from dailyhistory.puzzles.generation import ensure_puzzles_for_date, local_today


def generate_upcoming_puzzles(app) -> dict:
    """Make sure today's and tomorrow's puzzles exist in both modes."""
    with app.app_context():
        today = local_today()
        results = {}
        for target in (today, today + timedelta(days=1)):
            try:
                results[target.isoformat()] = ensure_puzzles_for_date(target, on_demand=False)
            except Exception as exc:  # noqa: BLE001
                app.logger.exception("[scheduler] puzzle generation for %s crashed: %s", target, exc)
                results[target.isoformat()] = {"status": "failed", "error": str(exc)}
        app.logger.info("[scheduler] daily puzzle generation: %s", results)
        return results


def schedule_daily_puzzles(app) -> BackgroundScheduler:
    scheduler = BackgroundScheduler(timezone=pytz.timezone(app.config.get("TIME_ZONE", "UTC")))
    scheduler.add_job(
        generate_upcoming_puzzles,
        "cron",
        hour=0,
        minute=5,
        args=[app],
        id="daily_puzzles",
        replace_existing=True,
    )
    # catch up once at boot so a fresh deploy has today's puzzles
    scheduler.add_job(generate_upcoming_puzzles, args=[app], id="daily_puzzles_boot", replace_existing=True)
    scheduler.start()
    return scheduler
