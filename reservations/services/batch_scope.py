import logging
from collections.abc import Callable
from typing import Any

from django.db import transaction

from reservations.exceptions import BatchScopeError
from reservations.services.dataclasses import NotificationMessage


logger = logging.getLogger(__name__)


def enqueue_notifications(payloads: list[dict[str, Any]]) -> None:
    from reservations.tasks import send_notifications_task

    transaction.on_commit(lambda: send_notifications_task.delay(payloads))


class NotificationBatchScope:
    """
    Collects the notifications of one multi-occurrence operation so they are
    sent by a single deferred job. Passed explicitly down the call chain.

    Usable as a context manager: the batch is flushed when the block succeeds
    and discarded when it raises.
    """

    def __init__(self, enqueue: Callable[[list[dict[str, Any]]], None] | None = None):
        self.enqueue = enqueue or enqueue_notifications
        self._messages: list[NotificationMessage] = []
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def messages(self) -> list[NotificationMessage]:
        return list(self._messages)

    def begin(self) -> "NotificationBatchScope":
        if self._active:
            raise BatchScopeError()
        self._active = True
        self._messages = []
        return self

    def add(self, message: NotificationMessage) -> None:
        if not self._active:
            raise BatchScopeError("No notification batch is active.")
        self._messages.append(message)

    def flush(self) -> int:
        if not self._active:
            raise BatchScopeError("No notification batch is active.")
        messages, self._messages = self._messages, []
        self._active = False
        if not messages:
            return 0

        self.enqueue([message.to_payload() for message in messages])
        logger.info("Enqueued %s notifications in a single job", len(messages))
        return len(messages)

    def discard(self) -> None:
        if self._messages:
            logger.debug("Discarding %s batched notifications", len(self._messages))
        self._messages = []
        self._active = False

    def __enter__(self) -> "NotificationBatchScope":
        return self.begin()

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        if exc_type is None:
            self.flush()
        else:
            self.discard()
