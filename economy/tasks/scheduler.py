"""
Scheduled tasks configuration for Celery Beat
"""

from celery.schedules import crontab
from economy.celery_app import celery

# Configure periodic tasks
celery.conf.beat_schedule = {
    'sweep-fast': {
        'task': 'economy.tasks.sweeps.run_sweep_job',
        'schedule': crontab(minute='*/5'),  # Stale presence every 5 minutes
        'args': ('fast',),
    },
    'sweep-hourly': {
        'task': 'economy.tasks.sweeps.run_sweep_job',
        'schedule': crontab(minute=0),
        'args': ('hourly',),
    },
    'sweep-daily': {
        'task': 'economy.tasks.sweeps.run_sweep_job',
        'schedule': crontab(hour=3, minute=30),  # Bulk cleanup off-peak
        'args': ('daily',),
    },
}
