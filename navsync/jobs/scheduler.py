import os

from apscheduler.schedulers.background import BackgroundScheduler

from navsync.errors import SyncError
from navsync.services.sync import build_pipeline


scheduler = BackgroundScheduler()


def run_scheduled_sync(app):
    with app.app_context():
        try:
            result = build_pipeline(app.config).run()
        except SyncError as exc:
            app.logger.warning("Scheduled sync failed: %s", exc)
            return None
        return result


def start_scheduler(app):
    if not app.config.get("SCHEDULER_ENABLED", True):
        return
    if os.environ.get("WERKZEUG_RUN_MAIN") == "false":
        return

    interval_minutes = int(app.config.get("SYNC_INTERVAL_MINUTES") or 0)
    if interval_minutes <= 0:
        return
    if not scheduler.get_jobs():
        scheduler.add_job(
            run_scheduled_sync,
            "interval",
            minutes=interval_minutes,
            kwargs={"app": app},
            id="bookmark_sync",
            replace_existing=True,
        )
        scheduler.start()
