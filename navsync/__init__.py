from flask import Flask

from navsync.api import api_bp
from navsync.config import Config
from navsync.errors import SyncError
from navsync.jobs.scheduler import start_scheduler
from navsync.services.sync import build_pipeline


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    app.register_blueprint(api_bp)

    @app.cli.command("sync")
    def sync_command():
        """Run one bookmark sync against the configured store."""
        try:
            result = build_pipeline(app.config).run()
        except SyncError as exc:
            app.logger.error("Sync failed: %s", exc)
            raise SystemExit(1) from exc
        print(
            f"Synced {result.total_bookmarks} bookmarks: "
            f"{len(result.added)} added, {len(result.reused)} kept, "
            f"{len(result.icons_unresolved)} icons unresolved."
        )

    start_scheduler(app)
    return app
