import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from .config import settings
from .orchestrator import UpdateOrchestrator

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    Recurring trigger for ``on_periodic_sync``, for hosts without a scheduler
    of their own. One job per product, keyed by its sync hook name.
    """

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None, interval_hours: Optional[int] = None):
        self.scheduler = scheduler or BackgroundScheduler()
        self.interval_hours = interval_hours or settings.SYNC_INTERVAL_HOURS

    def schedule(self, orchestrator: UpdateOrchestrator) -> bool:
        """
        Add the license sync job unless one is already scheduled.
        """
        job_id = orchestrator.sync_hook_name

        if self.scheduler.get_job(job_id):
            return False

        self.scheduler.add_job(
            orchestrator.on_periodic_sync,
            'interval',
            hours=self.interval_hours,
            id=job_id,
        )
        logger.info("Scheduled %s every %s hour(s)", job_id, self.interval_hours)
        return True

    def unschedule(self, orchestrator: UpdateOrchestrator) -> bool:
        job_id = orchestrator.sync_hook_name

        if not self.scheduler.get_job(job_id):
            return False

        self.scheduler.remove_job(job_id)
        return True

    def start(self):
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
