from .notification_tasks import send_notifications_task


__all__ = [
    "send_notifications_task",
]
