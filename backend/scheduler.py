import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from tasks.reconciliation_tasks import run_reconciliation

RECONCILIATION_CRON_HOUR = int(os.getenv("RECONCILIATION_CRON_HOUR", "2"))

scheduler = BackgroundScheduler()

# Nightly ledger replay in the application timezone
scheduler.add_job(
    run_reconciliation,
    CronTrigger(hour=RECONCILIATION_CRON_HOUR, minute=0, timezone=os.getenv("APP_TIMEZONE", "UTC")),
    id="reconciliation_job",
)
