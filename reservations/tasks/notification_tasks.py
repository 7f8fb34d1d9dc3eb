import logging
from typing import Annotated, Any

from dependency_injector.wiring import Provide, inject

from reservations.services.dataclasses import NotificationMessage
from reservations.services.notification_dispatcher import EmailNotificationDispatcher
from room_reservations_api.celery import app


logger = logging.getLogger(__name__)


@app.task
@inject
def send_notifications_task(
    payloads: list[dict[str, Any]],
    notification_dispatcher: Annotated[
        EmailNotificationDispatcher, Provide["notification_dispatcher"]
    ],
) -> int:
    """
    Celery task sending the notifications collected by a batch scope in one go.
    """
    messages = [NotificationMessage.from_payload(payload) for payload in payloads]
    sent = notification_dispatcher.send(messages)
    logger.info("Notification job delivered %s of %s messages", sent, len(messages))
    return sent
