import datetime

import pytest

from reservations.constants import CalendarLinkState
from reservations.exceptions import CalendarError, SeriesNotFoundError
from reservations.services.calendar_sync_adapter import (
    SERIES_RECREATED_WARNING,
    SINGLE_MEETING_RECREATED_WARNING,
)
from reservations.services.dataclasses import ExternalAppointmentRef


# Helpers
def _d(year, month, day):
    return datetime.date(year, month, day)


@pytest.fixture
def six_mondays(weekly_pattern):
    return weekly_pattern.with_occurrence_count(6)


@pytest.fixture
def create_series(reconciler, make_occurrence):
    def _create_series(pattern):
        return reconciler.reconcile(make_occurrence(), pattern).saved

    return _create_series


def test_link_state(make_occurrence, sync_adapter):
    assert sync_adapter.link_state(make_occurrence()) == CalendarLinkState.NOT_LINKED
    assert sync_adapter.link_state(make_occurrence(unique_id="uid")) == CalendarLinkState.LINKED


def test_appointment_ref(make_occurrence):
    assert make_occurrence().appointment_ref is None
    assert make_occurrence(unique_id="uid", sequence=2).appointment_ref == ExternalAppointmentRef(
        unique_id="uid", sequence=2
    )

    occurrence = make_occurrence(
        start_date=_d(2024, 1, 16),
        series_id=1,
        occurrence_index=3,
        original_date=_d(2024, 1, 15),
        unique_id="series-uid",
    )
    assert occurrence.appointment_ref.recurrence_id == _d(2024, 1, 15)


def test_new_single_reservation_is_linked(
    repository, make_occurrence, calendar_service, sync_adapter
):
    saved = repository.save(make_occurrence())

    sync_adapter.sync_saved([saved], is_new=True)

    ((_, occurrence, kwargs),) = calendar_service.called("create_appointment")
    assert occurrence.id == saved.id
    assert kwargs["pattern"] is None
    assert repository.get(saved.id).unique_id == "uid-1"


def test_new_series_is_linked_as_one_appointment(
    repository, calendar_service, sync_adapter, create_series, weekly_pattern
):
    saved = create_series(weekly_pattern)

    sync_adapter.sync_saved(saved, pattern=weekly_pattern, is_new=True)

    ((_, _, kwargs),) = calendar_service.called("create_appointment")
    assert kwargs["pattern"] == weekly_pattern
    assert len(kwargs["occurrences"]) == 5
    series_id = saved[0].series_id
    assert {o.unique_id for o in repository.get_by_series(series_id)} == {"uid-1"}
    assert repository.series[series_id]["unique_id"] == "uid-1"


def test_updating_a_single_reservation_bumps_its_sequence(
    repository, make_occurrence, calendar_service, sync_adapter
):
    saved = repository.save(make_occurrence(unique_id="uid"))

    result = sync_adapter.sync_saved([saved])

    assert len(calendar_service.called("update_appointment")) == 1
    assert repository.get(saved.id).sequence == 1
    assert not result.has_warnings


def test_conference_members_share_one_update(
    repository, make_occurrence, calendar_service, sync_adapter
):
    members = [
        repository.save(make_occurrence(room_id=room_id, conference_id=1, unique_id="uid"))
        for room_id in (1, 2)
    ]

    sync_adapter.sync_saved(members)

    assert len(calendar_service.called("update_appointment")) == 1


def test_calendar_failure_becomes_a_warning(repository, make_occurrence, sync_adapter):
    sync_adapter.calendar_service.errors["update_appointment"] = CalendarError("Mail server down")
    saved = repository.save(make_occurrence(unique_id="uid"))

    result = sync_adapter.sync_saved([saved])

    assert result.warnings == ["Mail server down"]
    assert repository.get(saved.id).is_active


def test_partial_series_update_is_sent_per_occurrence(
    calendar_service, sync_adapter, create_series, weekly_pattern
):
    saved = create_series(weekly_pattern)

    sync_adapter.sync_saved(saved[2:], pattern=weekly_pattern)

    assert len(calendar_service.called("update_appointment_occurrence")) == 3
    assert calendar_service.called("update_appointment_series") == []


def test_failed_occurrence_update_does_not_stop_the_others(
    calendar_service, sync_adapter, create_series, weekly_pattern
):
    saved = create_series(weekly_pattern)
    calendar_service.errors["update_appointment_occurrence"] = [CalendarError("Mail server down")]

    result = sync_adapter.sync_saved(saved[2:], pattern=weekly_pattern)

    calls = calendar_service.called("update_appointment_occurrence")
    assert [occurrence.occurrence_index for _, occurrence, _ in calls] == [3, 4, 5]
    assert result.warnings == ["Mail server down"]


def test_missing_series_during_occurrence_updates_is_recreated_once(
    repository, calendar_service, sync_adapter, create_series, weekly_pattern
):
    saved = create_series(weekly_pattern)
    series_id = saved[0].series_id
    calendar_service.errors["update_appointment_occurrence"] = [SeriesNotFoundError()]

    result = sync_adapter.sync_saved(saved[2:], pattern=weekly_pattern)

    assert len(calendar_service.called("update_appointment_occurrence")) == 1
    assert len(calendar_service.called("create_appointment")) == 2
    assert result.warnings == [SERIES_RECREATED_WARNING.format(id=saved[0].id)]
    assert repository.get_by_series(series_id) == []


def test_full_series_update(calendar_service, sync_adapter, create_series, weekly_pattern):
    saved = create_series(weekly_pattern)

    sync_adapter.sync_saved(saved, pattern=weekly_pattern, full_series=True)

    ((_, _, kwargs),) = calendar_service.called("update_appointment_series")
    assert len(kwargs["occurrences"]) == 5


def test_missing_series_is_recreated_from_survivors(
    repository, calendar_service, sync_adapter, create_series, six_mondays
):
    saved = create_series(six_mondays)
    series_id = saved[0].series_id
    for occurrence in saved[:2]:
        repository.cancel(occurrence)
    calendar_service.errors["update_appointment_series"] = SeriesNotFoundError()

    result = sync_adapter.sync_saved(
        repository.get_by_series(series_id), pattern=six_mondays, full_series=True
    )

    assert result.warnings == [SERIES_RECREATED_WARNING.format(id=saved[2].id)]
    assert repository.get_by_series(series_id) == []
    new_series_id = max(repository.series)
    recreated = repository.get_by_series(new_series_id)
    assert [o.occurrence_index for o in recreated] == [1, 2, 3, 4]
    assert [o.time_period.start_date for o in recreated] == [
        _d(2024, 1, 15),
        _d(2024, 1, 22),
        _d(2024, 1, 29),
        _d(2024, 2, 5),
    ]
    assert [o.original_date for o in recreated] == [o.time_period.start_date for o in recreated]
    assert {o.unique_id for o in recreated} == {"uid-1"}
    assert repository.series[new_series_id]["unique_id"] == "uid-1"

    ((_, occurrence, kwargs),) = calendar_service.called("create_appointment")
    assert occurrence.occurrence_index == 1
    assert kwargs["pattern"].start_date == _d(2024, 1, 15)
    assert kwargs["pattern"].number_of_occurrences == 4
    assert calendar_service.called("cancel_appointment_occurrence") == []


def test_recreated_series_replays_gaps(
    repository, calendar_service, sync_adapter, create_series, six_mondays
):
    saved = create_series(six_mondays)
    series_id = saved[0].series_id
    for occurrence in (saved[0], saved[1], saved[3]):
        repository.cancel(occurrence)
    calendar_service.errors["update_appointment_series"] = SeriesNotFoundError()

    sync_adapter.sync_saved(
        repository.get_by_series(series_id), pattern=six_mondays, full_series=True
    )

    recreated = repository.get_by_series(max(repository.series))
    assert [o.occurrence_index for o in recreated] == [1, 3, 4]
    ((_, missing, _),) = calendar_service.called("cancel_appointment_occurrence")
    assert missing.occurrence_index == 2
    assert missing.original_date == _d(2024, 1, 22)


def test_lone_survivor_becomes_a_single_meeting(
    repository, calendar_service, sync_adapter, create_series, weekly_pattern
):
    saved = create_series(weekly_pattern.with_occurrence_count(3))
    for occurrence in saved[:2]:
        repository.cancel(occurrence)
    calendar_service.errors["update_appointment_occurrence"] = SeriesNotFoundError()
    survivor = repository.get(saved[2].id)

    result = sync_adapter.sync_saved([survivor])

    assert result.warnings == [SINGLE_MEETING_RECREATED_WARNING.format(id=survivor.id)]
    detached = repository.get(survivor.id)
    assert detached.series_id is None
    assert detached.occurrence_index == 0
    assert detached.unique_id == "uid-1"
    ((_, occurrence, kwargs),) = calendar_service.called("create_appointment")
    assert occurrence.id == survivor.id
    assert kwargs["pattern"] is None


def test_cancelled_occurrences(
    repository, calendar_service, sync_adapter, create_series, weekly_pattern
):
    saved = create_series(weekly_pattern)
    cancelled = [repository.cancel(occurrence) for occurrence in saved[3:]]

    sync_adapter.sync_cancelled(cancelled, message="Holiday")

    calls = calendar_service.called("cancel_appointment_occurrence")
    assert [occurrence.occurrence_index for _, occurrence, _ in calls] == [4, 5]
    assert {kwargs["message"] for _, _, kwargs in calls} == {"Holiday"}


def test_cancelled_series(
    repository, calendar_service, sync_adapter, create_series, weekly_pattern
):
    cancelled = [repository.cancel(occurrence) for occurrence in create_series(weekly_pattern)]

    sync_adapter.sync_cancelled(cancelled, whole_series=True)

    assert len(calendar_service.called("cancel_appointment")) == 1
    assert calendar_service.called("cancel_appointment_occurrence") == []
