import logging
from collections.abc import Iterable

from django.conf import settings
from django.core.mail import EmailMessage, get_connection

from reservations.services.batch_scope import NotificationBatchScope
from reservations.services.calendar_payload_builder import sanitize_crlf
from reservations.services.dataclasses import NotificationMessage


logger = logging.getLogger(__name__)


class EmailNotificationDispatcher:
    """
    Sends reservation notifications by email, with the calendar payloads attached.
    """

    def __init__(self, from_email: str | None = None, bcc: Iterable[str] | None = None):
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL
        self.bcc = list(bcc if bcc is not None else getattr(settings, "DEFAULT_BCC_EMAILS", []))

    def build_email(self, message: NotificationMessage) -> EmailMessage:
        email = EmailMessage(
            subject=sanitize_crlf(message.subject),
            body=message.body,
            from_email=self.from_email,
            to=list(dict.fromkeys(message.recipients)),
            bcc=self.bcc,
        )
        for attachment in message.attachments:
            email.attach(attachment.filename, attachment.content, attachment.mimetype)
        return email

    def dispatch(
        self, message: NotificationMessage, batch: NotificationBatchScope | None = None
    ) -> None:
        if batch is not None and batch.is_active:
            batch.add(message)
            return
        self.send([message])

    def send(self, messages: Iterable[NotificationMessage]) -> int:
        emails = []
        for message in messages:
            if not message.recipients:
                logger.debug("Skipping notification '%s' without recipients", message.subject)
                continue
            emails.append(self.build_email(message))
        if not emails:
            return 0

        with get_connection() as connection:
            sent = connection.send_messages(emails) or 0
        logger.info("Sent %s of %s reservation notifications", sent, len(emails))
        return sent
