# Import celery app first
from livechat.infra.celery_app import celery_app

# Initialize logging configuration for Celery workers
from livechat.infra.logging_config import LoggingConfig
from livechat.tasks.notification_task import notify_staff_task

LoggingConfig()  # Initialize logging

__all__ = [
    "celery_app",
    "notify_staff_task",
]
