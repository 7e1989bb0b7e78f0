from apscheduler.jobstores.base import ConflictingIdError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

from app.core.security import SecurityService
from app.db.session import AsyncSessionLocal
from app.services.shares.email_verification import EmailVerificationService
from app.services.shares.mailer import get_mailer_service
from app.services.shares.session import SessionService

scheduler = AsyncIOScheduler()


# ================================
# JOB: housekeeping
# ================================
async def cleanup_job(session_factory=AsyncSessionLocal):
    logger.info("🧹 Running session / verification log cleanup...")

    async with session_factory() as db:
        try:
            sessions = await SessionService(db, SecurityService()).purge_stale_async()
            sends = await EmailVerificationService(
                db, SecurityService(), get_mailer_service()
            ).purge_send_log_async()
            logger.success(f"✔ Cleanup removed {sessions} sessions, {sends} send-log rows")
            return {"sessions": sessions, "sends": sends}
        except Exception as e:
            logger.error(f"❌ Cleanup job error: {e}")
            return None


# ================================
# START ALL JOBS
# ================================
def start_scheduler():
    try:
        scheduler.add_job(
            cleanup_job,
            trigger=IntervalTrigger(hours=1),
            id="cleanup_job",
            replace_existing=True,
            max_instances=1,
        )
    except ConflictingIdError:
        logger.warning("⚠ cleanup_job existed")

    scheduler.start()
    logger.info("🔔 Scheduler started (hourly cleanup)")
