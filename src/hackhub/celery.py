import os

from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module for the 'celery' program.
# This must come before instantiating Celery apps.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hackhub.settings")

app = Celery("hackhub")

# Namespace='CELERY' means all celery-related configuration keys
# should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

# Loads tasks in `tasks.py` from installed apps.
app.autodiscover_tasks()

# Queues
QUEUE_DISTRIBUTIONS = "distributions"
QUEUE_MONITORING = "monitoring"


# Scheduled tasks

app.conf.beat_schedule = {
    # Prize pool
    "prize_pool_scan-for-completed-hackathons": {
        "task": "prize_pool.tasks.scan_for_completed_hackathons",
        "schedule": crontab(minute="*/5"),
        "options": {
            "expires": 4 * 60,
            "priority": 2,
            "queue": QUEUE_DISTRIBUTIONS,
        },
    },
    "prize_pool_run-distribution-scheduler": {
        "task": "prize_pool.tasks.run_distribution_scheduler",
        "schedule": crontab(minute="*/1"),
        "options": {
            "expires": 50,
            "priority": 1,
            "queue": QUEUE_DISTRIBUTIONS,
        },
    },
    "prize_pool_monitor-distribution-transactions": {
        "task": "prize_pool.tasks.monitor_distribution_transactions",
        "schedule": crontab(minute="*/1"),
        "options": {
            "expires": 50,
            "priority": 1,
            "queue": QUEUE_MONITORING,
        },
    },
}
