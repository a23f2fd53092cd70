import logging
import os
from datetime import datetime, timedelta
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from marketplace.core.config import settings
from marketplace.core.database import SessionLocal
from marketplace.services.enrollment import enrollment_service

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def expire_stale_enrollments(access_days: int = None) -> int:
    access_days = access_days or settings.ENROLLMENT_ACCESS_DAYS
    cutoff = datetime.utcnow() - timedelta(days=access_days)
    db = SessionLocal()
    try:
        expired = enrollment_service.expire_enrollments(db, older_than=cutoff)
        logger.info(f"Enrollment expiration run finished: {expired} enrollments expired")
        return expired
    except Exception as e:
        logger.error(f"Error expiring enrollments: {e}", exc_info=True)
        return 0
    finally:
        db.close()


def start_scheduler():
    if os.getenv("TESTING") == "true":
        logger.info("Scheduler disabled in test environment")
        return

    if not settings.ENROLLMENT_ACCESS_DAYS:
        logger.info("ENROLLMENT_ACCESS_DAYS not set; enrollment expiration job not scheduled")
        return

    if not scheduler.running:
        scheduler.add_job(
            expire_stale_enrollments,
            'cron',
            hour=0,
            minute=0,
            id='expire_stale_enrollments',
            name='Expire Stale Enrollments',
            replace_existing=True
        )
        scheduler.start()
        logger.info("Scheduler started with daily enrollment expiration job")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
