import datetime

import pytest
from model_bakery import baker

from reservations.constants import RecurrenceType, RecurrenceWeekday
from reservations.recurrence import RecurrencePattern
from reservations.services.calendar_sync_adapter import CalendarSyncAdapter
from reservations.services.conference_call_coordinator import ConferenceCallCoordinator
from reservations.services.conflict_evaluator import ConflictEvaluator
from reservations.services.dataclasses import (
    ReservationOccurrence,
    RoomAllocationData,
    TimePeriod,
)
from reservations.services.date_list_generator import DateListGenerator
from reservations.services.occurrence_reconciler import OccurrenceReconciler
from reservations.tests.fakes import FakeCalendarService, InMemoryReservationRepository


BUILDING_ID = 10
OTHER_BUILDING_ID = 20


@pytest.fixture
def di_container():
    """Fixture to create a DI container."""
    from di_core.containers import container

    return container


@pytest.fixture
def building(db):
    return baker.make("reservations.Building", code="HQ", name="Headquarters", timezone="UTC")


@pytest.fixture
def room(building):
    return baker.make("reservations.Room", building=building, code="101", name="Room 101")


@pytest.fixture
def other_room(building):
    return baker.make("reservations.Room", building=building, code="102", name="Room 102")


@pytest.fixture
def repository():
    return InMemoryReservationRepository(
        rooms={1: BUILDING_ID, 2: BUILDING_ID, 3: OTHER_BUILDING_ID}
    )


@pytest.fixture
def date_list_generator():
    return DateListGenerator()


@pytest.fixture
def conflict_evaluator():
    return ConflictEvaluator()


@pytest.fixture
def reconciler(repository, date_list_generator, conflict_evaluator):
    return OccurrenceReconciler(repository, date_list_generator, conflict_evaluator)


@pytest.fixture
def coordinator(repository, reconciler, conflict_evaluator):
    return ConferenceCallCoordinator(repository, reconciler, conflict_evaluator)


@pytest.fixture
def calendar_service():
    return FakeCalendarService()


@pytest.fixture
def sync_adapter(calendar_service, repository, date_list_generator):
    return CalendarSyncAdapter(calendar_service, repository, date_list_generator)


@pytest.fixture
def make_occurrence():
    def _make_occurrence(
        start_date=datetime.date(2024, 1, 1),
        start_time=datetime.time(9, 0),
        end_time=datetime.time(10, 0),
        room_id: int | None = 1,
        timezone="UTC",
        **kwargs,
    ) -> ReservationOccurrence:
        time_period = TimePeriod(
            start_date=start_date,
            start_time=start_time,
            end_date=start_date,
            end_time=end_time,
            timezone=timezone,
        )
        allocations = (
            [RoomAllocationData(room_id=room_id, building_id=BUILDING_ID, time_period=time_period)]
            if room_id is not None
            else []
        )
        kwargs.setdefault("name", "Weekly sync")
        kwargs.setdefault("attendees", ["alice@example.com"])
        kwargs.setdefault("requested_by", "bob@example.com")
        kwargs.setdefault("building_id", BUILDING_ID)
        return ReservationOccurrence(
            time_period=time_period, room_allocations=allocations, **kwargs
        )

    return _make_occurrence


@pytest.fixture
def weekly_pattern():
    return RecurrencePattern(
        recurrence_type=RecurrenceType.WEEKLY,
        start_date=datetime.date(2024, 1, 1),
        number_of_occurrences=5,
        days_of_week=(RecurrenceWeekday.MONDAY,),
    )
