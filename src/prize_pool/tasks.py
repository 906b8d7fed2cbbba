import logging

import utils.locking as lock
from hackhub.celery import QUEUE_DISTRIBUTIONS, QUEUE_MONITORING, app
from prize_pool.models import DistributionJob
from prize_pool.services.distribution_scheduler_service import (
    DistributionScheduler,
    JobOutcome,
)
from prize_pool.services.transaction_monitor_service import TransactionMonitor
from utils.sentry import log_error

logger = logging.getLogger(__name__)


@app.task(queue=QUEUE_DISTRIBUTIONS)
def scan_for_completed_hackathons():
    key = lock.name("scan_for_completed_hackathons")
    if not lock.acquire(key):
        logger.warning("Already locked %s, skipping task", key)
        return False

    try:
        jobs = DistributionScheduler().scan_for_completed_hackathons()
        if jobs:
            logger.info("Scheduled %s prize distributions", len(jobs))
        return [job.id for job in jobs]
    except Exception as e:
        log_error(e, message="Failed to scan for completed hackathons")
        return False
    finally:
        lock.release(key)


@app.task(queue=QUEUE_DISTRIBUTIONS)
def run_distribution_scheduler():
    key = lock.name("run_distribution_scheduler")
    if not lock.acquire(key):
        logger.warning("Already locked %s, skipping task", key)
        return False

    try:
        return DistributionScheduler().run_pending_jobs()
    except Exception as e:
        log_error(e, message="Distribution scheduler tick failed")
        return False
    finally:
        lock.release(key)


@app.task(queue=QUEUE_MONITORING)
def monitor_distribution_transactions():
    key = lock.name("monitor_distribution_transactions")
    if not lock.acquire(key):
        logger.warning("Already locked %s, skipping task", key)
        return False

    try:
        report = TransactionMonitor().poll()
        return {
            "checked": report.checked,
            "confirmed": report.confirmed,
            "reverted": report.reverted,
            "stuck": report.stuck,
            "errors": report.errors,
            "late_confirmations": len(report.late_confirmations),
        }
    except Exception as e:
        log_error(e, message="Distribution transaction monitor failed")
        return False
    finally:
        lock.release(key)


@app.task(queue=QUEUE_DISTRIBUTIONS)
def process_distribution_job(hackathon_id):
    """Runs one pass over the hackathon's current distribution job, for
    admin-triggered distributions and retries that should not wait for the
    next scheduler tick.
    """
    job = (
        DistributionJob.objects.for_hackathon(hackathon_id)
        .filter(
            status__in=[
                DistributionJob.Status.SCHEDULED,
                DistributionJob.Status.PROCESSING,
                DistributionJob.Status.FAILED,
            ]
        )
        .select_related("hackathon")
        .order_by("-created_date", "-id")
        .first()
    )
    if job is None:
        logger.info("No distribution job to process for hackathon %s", hackathon_id)
        return JobOutcome.SKIPPED

    try:
        return DistributionScheduler().run_job(job)
    except Exception as e:
        log_error(e, message=f"Distribution job {job.id} errored")
        return JobOutcome.SKIPPED
