from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from reservations.services.dataclasses import NotificationMessage


if TYPE_CHECKING:
    from reservations.services.batch_scope import NotificationBatchScope


class NotificationDispatcher(Protocol):
    def dispatch(
        self, message: NotificationMessage, batch: "NotificationBatchScope | None" = None
    ) -> None:
        """
        Send the message now, or add it to ``batch`` when a batch is active.
        """
        ...

    def send(self, messages: Iterable[NotificationMessage]) -> int:
        """
        Deliver the messages.
        :return: number of messages delivered.
        """
        ...
