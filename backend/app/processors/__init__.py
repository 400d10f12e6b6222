"""Background processors started from the application lifespan"""

from app.processors.notification_scheduler import start_notification_scheduler

__all__ = ["start_notification_scheduler"]
