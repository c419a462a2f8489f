from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from medsupply.models.audit_mixin import APP_TIMEZONE
from medsupply.tasks.daily_tasks import run_daily_tasks

scheduler = BackgroundScheduler(timezone=APP_TIMEZONE)

# Every day at 00:30 in the business timezone, after the date has rolled over
scheduler.add_job(run_daily_tasks, CronTrigger(hour=0, minute=30, timezone=APP_TIMEZONE), id='daily_tasks_job')
