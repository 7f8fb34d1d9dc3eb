from unittest.mock import Mock, patch

import pytest

from reservations.exceptions import BatchScopeError
from reservations.services.batch_scope import NotificationBatchScope
from reservations.services.dataclasses import CalendarAttachment, NotificationMessage
from reservations.tasks import send_notifications_task


def _message(subject="Reservation cancelled"):
    return NotificationMessage(
        subject=subject,
        body="",
        recipients=["alice@example.com"],
        attachments=[CalendarAttachment(filename="reservation-1.ics", content=b"BEGIN:VCALENDAR")],
    )


def test_begin_twice_fails():
    batch = NotificationBatchScope(enqueue=Mock())
    batch.begin()

    with pytest.raises(BatchScopeError):
        batch.begin()


def test_add_and_flush_need_an_active_batch():
    batch = NotificationBatchScope(enqueue=Mock())

    with pytest.raises(BatchScopeError):
        batch.add(_message())
    with pytest.raises(BatchScopeError):
        batch.flush()


def test_flush_enqueues_a_single_job():
    enqueue = Mock()
    batch = NotificationBatchScope(enqueue=enqueue).begin()
    for _ in range(3):
        batch.add(_message())

    assert batch.flush() == 3

    enqueue.assert_called_once()
    (payloads,) = enqueue.call_args.args
    assert len(payloads) == 3
    assert payloads[0]["attachments"][0]["filename"] == "reservation-1.ics"
    assert not batch.is_active
    assert batch.messages == []


def test_flushing_an_empty_batch_enqueues_nothing():
    enqueue = Mock()
    batch = NotificationBatchScope(enqueue=enqueue).begin()

    assert batch.flush() == 0
    enqueue.assert_not_called()


def test_context_manager_discards_on_error():
    enqueue = Mock()
    batch = NotificationBatchScope(enqueue=enqueue)

    with pytest.raises(ValueError):
        with batch:
            batch.add(_message())
            raise ValueError("boom")

    enqueue.assert_not_called()
    assert not batch.is_active
    assert batch.messages == []


def test_payloads_survive_serialization():
    message = _message()

    assert NotificationMessage.from_payload(message.to_payload()) == message


@pytest.mark.django_db
def test_default_enqueue_runs_after_commit(django_capture_on_commit_callbacks):
    with patch.object(send_notifications_task, "delay") as delay:
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            with NotificationBatchScope() as batch:
                batch.add(_message())
                batch.add(_message("Reservation updated"))

        delay.assert_not_called()
        assert len(callbacks) == 1
        callbacks[0]()

    delay.assert_called_once()
    (payloads,) = delay.call_args.args
    assert [payload["subject"] for payload in payloads] == [
        "Reservation cancelled",
        "Reservation updated",
    ]
