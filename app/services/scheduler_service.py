"""
MNF Pick'em Automatic Sync Scheduler Service

Background jobs run with APScheduler:
- score sync from the scoreboard feed (every few minutes)
- weekly winner storage once the Monday night game is final
- weekly schedule refresh (Tuesday morning UTC)
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from app import db
from app.models import Game, Season
from app.services.winner_service import check_and_store_winners
from app.utils.cache_utils import invalidate_model_cache
from app.utils.data_sync import DataSync

logger = logging.getLogger(__name__)


class SchedulerService:
    """Manages automatic background scheduling for score syncing"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.sync_stats = self._empty_stats()

        if app:
            self.init_app(app)

    @staticmethod
    def _empty_stats():
        return {
            "last_sync": None,
            "total_syncs": 0,
            "successful_syncs": 0,
            "failed_syncs": 0,
            "last_error": None,
            "games_updated": 0,
            "weeks_stored": [],
        }

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        atexit.register(self.shutdown)

        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        self.scheduler.remove_all_jobs()
        self._add_core_jobs()
        self.scheduler.start()
        self.is_running = True

        logger.info("Scheduler started successfully")

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=False)
        self.is_running = False
        logger.info("Scheduler stopped")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self):
        """Add core scheduled jobs"""
        score_minutes = self.app.config.get("SCORE_SYNC_MINUTES", 5)
        winner_minutes = self.app.config.get("WINNER_CHECK_MINUTES", 10)

        self.scheduler.add_job(
            func=self._sync_scores,
            trigger=IntervalTrigger(minutes=score_minutes),
            id="sync_scores",
            name="Sync Scoreboard",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=60,
        )

        self.scheduler.add_job(
            func=self._check_weekly_winners,
            trigger=IntervalTrigger(minutes=winner_minutes),
            id="check_weekly_winners",
            name="Store Weekly Winners",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        # Tuesday 6 AM UTC, after the Monday night game
        self.scheduler.add_job(
            func=self._weekly_schedule_sync,
            trigger=CronTrigger(day_of_week="tue", hour=6, minute=0),
            id="weekly_schedule_sync",
            name="Weekly Schedule Update",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

        logger.info("Core scheduled jobs added")

    def _sync_scores(self):
        """Pull the current week's scoreboard and push changes to browsers"""
        with self.app.app_context():
            try:
                season = Season.get_or_create_current()
                success, result = DataSync().update_scores(season.year)

                if not success:
                    self._update_stats(False)
                    self.sync_stats["last_error"] = result["message"]
                    logger.warning(f"Score sync issues: {result['message']}")
                    return

                changed_ids = result["updated_game_ids"]
                if changed_ids:
                    db.session.expire_all()
                    invalidate_model_cache("Game")
                    self._emit_score_updates(
                        Game.query.filter(Game.id.in_(changed_ids)).all()
                    )
                    season.update_current_week()

                self._update_stats(True, len(changed_ids))
                logger.info(f"Score sync: {result['message']} ({len(changed_ids)} changed)")

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in score sync: {e}", exc_info=True)

    def _check_weekly_winners(self):
        """Record winners for weeks whose Monday night game has gone final"""
        with self.app.app_context():
            try:
                season = Season.get_current_season()
                if not season:
                    return

                stored_weeks = check_and_store_winners(season.year)
                if stored_weeks:
                    from app.models import WeeklyWinner
                    from app.socketio_handlers import broadcast_winners_stored

                    invalidate_model_cache("WeeklyWinner")
                    for week in stored_weeks:
                        winners = WeeklyWinner.query.filter_by(
                            season=season.year, week=week
                        ).all()
                        broadcast_winners_stored(season.year, week, winners)
                    self.sync_stats["weeks_stored"].extend(stored_weeks)
                    logger.info(f"Stored weekly winners for weeks {stored_weeks}")

            except Exception as e:
                db.session.rollback()
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error checking weekly winners: {e}", exc_info=True)

    def _weekly_schedule_sync(self):
        """Weekly schedule refresh"""
        with self.app.app_context():
            try:
                logger.info("Running weekly schedule sync...")

                season = Season.get_or_create_current()
                success, message = DataSync().sync_schedule(season.year)

                if success:
                    db.session.expire_all()
                    invalidate_model_cache("Game")
                    season.update_current_week()
                    self._update_stats(True)
                    logger.info(f"Weekly schedule sync completed: {message}")
                else:
                    self._update_stats(False)
                    self.sync_stats["last_error"] = message
                    logger.warning(f"Weekly schedule sync issues: {message}")

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in weekly schedule sync: {e}", exc_info=True)

    def _emit_score_updates(self, games):
        """Emit real-time score updates via SocketIO"""
        from app.socketio_handlers import broadcast_score_update

        for game in games:
            broadcast_score_update(game)

    def _update_stats(self, success, games_updated=0):
        """Update sync statistics"""
        self.sync_stats["last_sync"] = datetime.now(timezone.utc)
        self.sync_stats["total_syncs"] += 1

        if success:
            self.sync_stats["successful_syncs"] += 1
            self.sync_stats["games_updated"] += games_updated
            self.sync_stats["last_error"] = None
        else:
            self.sync_stats["failed_syncs"] += 1

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = getattr(job, "next_run_time", None)
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.sync_stats)
        if stats["last_sync"]:
            stats["last_sync"] = stats["last_sync"].isoformat()
        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}

    def force_sync(self, sync_type="scores"):
        """Manually run a job outside its schedule"""
        jobs = {
            "scores": self._sync_scores,
            "winners": self._check_weekly_winners,
            "schedule": self._weekly_schedule_sync,
        }
        if sync_type not in jobs:
            return False, f"Unknown sync type: {sync_type}"
        if self.app is None:
            return False, "Scheduler is not initialized"

        jobs[sync_type]()
        return True, f"Manual {sync_type} sync completed"


# Global scheduler instance
scheduler_service = SchedulerService()
