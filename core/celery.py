"""
Celery configuration for the Farm Analytics & Reporting backend.

Tasks to run in background:
- Scheduled report compilation and email delivery
- Production alert notifications
"""
import os
from celery import Celery
from celery.schedules import crontab

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'core.settings')

# Create Celery app
app = Celery('core')

# Load config from Django settings with CELERY_ prefix
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks in all installed apps
app.autodiscover_tasks()


# =============================================================================
# CELERY BEAT SCHEDULE - Periodic Tasks
# =============================================================================
app.conf.beat_schedule = {
    # Recurring report definitions (every hour, on the hour)
    'process-due-reports': {
        'task': 'dashboards.tasks.process_due_reports',
        'schedule': crontab(minute=0),
    },

    # Production alert notifications for every organization (every 4 hours)
    'send-alert-notifications': {
        'task': 'dashboards.tasks.send_alert_notifications',
        'schedule': crontab(hour='*/4', minute=15),
    },
}

# Celery configuration
app.conf.update(
    # Task result expiry
    result_expires=3600,  # 1 hour

    # Task time limits
    task_time_limit=600,  # 10 minutes hard limit
    task_soft_time_limit=540,

    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Prefetch multiplier (1 = fair distribution)
    worker_prefetch_multiplier=1,

    # Serialization
    task_serializer='json',
    result_serializer='json',
    accept_content=['json'],

    # Timezone
    timezone=os.getenv('TIME_ZONE', 'Africa/Accra'),
    enable_utc=True,
)
