import dataclasses
import datetime
import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Annotated

from dependency_injector.wiring import Provide, inject
from django.db import transaction

from reservations.constants import ReservationStatus
from reservations.exceptions import (
    InvalidConferenceCallError,
    ReservationNotFoundError,
    ReservationServiceNotInjectedError,
)
from reservations.recurrence import RecurrencePattern
from reservations.services.batch_scope import NotificationBatchScope
from reservations.services.calendar_sync_adapter import CalendarSyncAdapter
from reservations.services.conference_call_coordinator import ConferenceCallCoordinator
from reservations.services.dataclasses import (
    OperationResult,
    ReservationOccurrence,
    RoomAllocationData,
)
from reservations.services.occurrence_reconciler import OccurrenceReconciler
from reservations.services.protocols.reservation_repository import ReservationRepository
from reservations.services.protocols.timezone_lookup import TimeZoneLookup


logger = logging.getLogger(__name__)


class ReservationEditor:
    """
    Entry point for creating, editing and cancelling reservations.

    Every operation runs in one transaction and sends its notifications through
    a single batch, delivered after commit. Calendar failures end up in
    ``OperationResult.warnings``; callers must check them.
    """

    def __init__(
        self,
        repository: ReservationRepository,
        reconciler: OccurrenceReconciler,
        calendar_sync_adapter: CalendarSyncAdapter,
        timezone_lookup: TimeZoneLookup,
        conference_call_coordinator: ConferenceCallCoordinator | None = None,
        conference_calls_enabled: bool = True,
        batch_factory: Callable[[], NotificationBatchScope] = NotificationBatchScope,
    ):
        self.repository = repository
        self.reconciler = reconciler
        self.calendar_sync_adapter = calendar_sync_adapter
        self.timezone_lookup = timezone_lookup
        self.conference_call_coordinator = (
            conference_call_coordinator if conference_calls_enabled else None
        )
        self.batch_factory = batch_factory

    def _prepare(
        self,
        occurrence: ReservationOccurrence,
        locations: Sequence[RoomAllocationData] = (),
    ) -> ReservationOccurrence:
        """Resolve buildings and make sure the time period has a timezone."""
        for allocation in [*occurrence.room_allocations, *locations]:
            if allocation.building_id is None:
                allocation.building_id = self.repository.get_building_id(allocation.room_id)

        first_allocation = next(iter([*occurrence.room_allocations, *locations]), None)
        if occurrence.building_id is None and first_allocation is not None:
            occurrence.building_id = first_allocation.building_id
        if not occurrence.time_period.timezone:
            occurrence.time_period = dataclasses.replace(
                occurrence.time_period,
                timezone=self.timezone_lookup.get(occurrence.building_id),
            )
        return occurrence

    def _require_coordinator(self) -> ConferenceCallCoordinator:
        if self.conference_call_coordinator is None:
            raise InvalidConferenceCallError("Conference calls are not enabled.")
        return self.conference_call_coordinator

    def _get(self, reservation_id: int) -> ReservationOccurrence:
        occurrence = self.repository.get(reservation_id)
        if occurrence is None:
            raise ReservationNotFoundError(f"Reservation {reservation_id} was not found.")
        return occurrence

    def _is_full_series(
        self, series_id: int | None, saved: Sequence[ReservationOccurrence]
    ) -> bool:
        if series_id is None or not saved:
            return False
        active_indexes = [
            occurrence.occurrence_index
            for occurrence in self.repository.get_by_series(series_id)
            if occurrence.is_active
        ]
        return bool(active_indexes) and min(active_indexes) >= min(
            occurrence.occurrence_index for occurrence in saved
        )

    @transaction.atomic()
    def save_reservation(
        self, occurrence: ReservationOccurrence, *, result: OperationResult | None = None
    ) -> OperationResult:
        """
        Create or update a single reservation. The room must be free.
        """
        result = result if result is not None else OperationResult()
        occurrence = self._prepare(occurrence)
        is_new = occurrence.id is None
        occurrence.status = ReservationStatus.CONFIRMED
        occurrence.backup_building_id = None

        self.reconciler.check_availability(occurrence, {occurrence.id} if occurrence.id else ())
        saved = self.repository.save(occurrence)
        result.add_saved([saved])

        with self.batch_factory() as batch:
            self.calendar_sync_adapter.using_batch(batch).sync_saved(
                [saved], is_new=is_new, result=result
            )
        return result

    @transaction.atomic()
    def save_recurring_reservation(
        self,
        master: ReservationOccurrence,
        pattern: RecurrencePattern,
        *,
        today: datetime.date | None = None,
    ) -> OperationResult:
        """
        Create a series, or edit an existing one from the occurrence ``master``
        stands for onward.
        """
        result = OperationResult()
        master = self._prepare(master)
        is_new = master.series_id is None

        with self.batch_factory() as batch:
            self.reconciler.reconcile(master, pattern, today=today, result=result)
            adapter = self.calendar_sync_adapter.using_batch(batch)
            adapter.sync_saved(
                result.saved,
                pattern=pattern,
                is_new=is_new,
                full_series=is_new or self._is_full_series(master.series_id, result.saved),
                today=today,
                result=result,
            )
            if result.cancelled:
                adapter.sync_cancelled(result.cancelled, result=result)
        return result

    @transaction.atomic()
    def save_conference_call(
        self,
        template: ReservationOccurrence,
        locations: Sequence[RoomAllocationData],
        pattern: RecurrencePattern | None = None,
        *,
        today: datetime.date | None = None,
    ) -> OperationResult:
        coordinator = self._require_coordinator()
        result = OperationResult()
        template = self._prepare(template, locations)

        with self.batch_factory() as batch:
            coordinator.save_group(template, locations, pattern, today=today, result=result)
            self.calendar_sync_adapter.using_batch(batch).sync_saved(
                result.saved, pattern=pattern, is_new=True, full_series=True, result=result
            )
        return result

    @transaction.atomic()
    def edit_conference_call(
        self,
        conference_id: int,
        template: ReservationOccurrence,
        locations: Sequence[RoomAllocationData],
        pattern: RecurrencePattern | None = None,
        *,
        today: datetime.date | None = None,
    ) -> OperationResult:
        coordinator = self._require_coordinator()
        result = OperationResult()
        template = self._prepare(template, locations)

        with self.batch_factory() as batch:
            coordinator.edit_group(
                conference_id, template, locations, pattern, today=today, result=result
            )
            adapter = self.calendar_sync_adapter.using_batch(batch)
            first_saved = next(iter(result.saved), None)
            adapter.sync_saved(
                result.saved,
                pattern=pattern,
                full_series=pattern is not None
                and first_saved is not None
                and self._is_full_series(first_saved.series_id, result.saved),
                today=today,
                result=result,
            )
            # a room leaving the call only changes the meeting location for the others
            surviving = {
                (occurrence.conference_id, occurrence.occurrence_index)
                for occurrence in result.saved
                if occurrence.is_active
            }
            removed = [
                occurrence
                for occurrence in result.cancelled
                if (occurrence.conference_id, occurrence.occurrence_index) not in surviving
            ]
            if removed:
                adapter.sync_cancelled(removed, result=result)
        return result

    @transaction.atomic()
    def edit_conference_location(
        self, reservation_id: int, allocation: RoomAllocationData
    ) -> OperationResult:
        coordinator = self._require_coordinator()
        result = OperationResult()

        with self.batch_factory() as batch:
            coordinator.edit_location(reservation_id, allocation, result=result)
            self.calendar_sync_adapter.using_batch(batch).sync_saved(result.saved, result=result)
        return result

    def _cancel(
        self, occurrences: Iterable[ReservationOccurrence], result: OperationResult
    ) -> tuple[list[ReservationOccurrence], list[ReservationOccurrence]]:
        """
        Cancel ``occurrences``. Returns the cancelled ones whose appointment must
        be cancelled and the conference members whose meeting only lost a room.
        """
        to_notify, to_update = [], []
        for occurrence in occurrences:
            if not occurrence.is_active:
                logger.debug("Reservation %s is already %s", occurrence.id, occurrence.status)
                continue
            cancelled = self.repository.cancel(occurrence)
            result.add_cancelled([cancelled])

            if cancelled.conference_id is None:
                to_notify.append(cancelled)
                continue
            siblings = [
                sibling
                for sibling in self.repository.get_conference_call_members(
                    cancelled.conference_id, occurrence_index=cancelled.occurrence_index
                )
                if sibling.is_active
            ]
            if siblings:
                to_update.append(siblings[0])
            else:
                to_notify.append(cancelled)
        return to_notify, to_update

    @transaction.atomic()
    def cancel_reservation(self, reservation_id: int, *, message: str = "") -> OperationResult:
        return self._cancel_occurrences([self._get(reservation_id)], message=message)

    @transaction.atomic()
    def cancel_occurrences(
        self, reservation_ids: Iterable[int], *, message: str = ""
    ) -> OperationResult:
        """
        Cancel several reservations; their notifications are sent as one job.
        """
        return self._cancel_occurrences(
            [self._get(reservation_id) for reservation_id in reservation_ids], message=message
        )

    def _cancel_occurrences(
        self, occurrences: Sequence[ReservationOccurrence], *, message: str = ""
    ) -> OperationResult:
        result = OperationResult()
        with self.batch_factory() as batch:
            to_notify, to_update = self._cancel(occurrences, result)
            adapter = self.calendar_sync_adapter.using_batch(batch)
            if to_notify:
                adapter.sync_cancelled(to_notify, message=message, result=result)
            if to_update:
                adapter.sync_saved(to_update, result=result)
        return result

    @transaction.atomic()
    def cancel_series(
        self, series_id: int, *, from_index: int = 1, message: str = ""
    ) -> OperationResult:
        """
        Cancel the occurrences of a series from ``from_index`` onward. When
        earlier occurrences remain, the series pattern is cut to end before
        ``from_index`` and the remaining appointment is updated.
        """
        result = OperationResult()
        occurrences = self.repository.get_by_series(series_id)
        remaining = [o for o in occurrences if o.occurrence_index < from_index]
        to_cancel = [o for o in occurrences if o.occurrence_index >= from_index]

        with self.batch_factory() as batch:
            cancelled = [self.repository.cancel(occurrence) for occurrence in to_cancel]
            result.add_cancelled(cancelled)
            adapter = self.calendar_sync_adapter.using_batch(batch)

            if not remaining:
                if cancelled:
                    adapter.sync_cancelled(
                        cancelled, message=message, whole_series=True, result=result
                    )
                return result

            pattern = self.repository.get_series_pattern(series_id)
            if pattern is not None and cancelled:
                pattern = pattern.with_occurrence_count(from_index - 1)
                self.repository.update_series(series_id, pattern=pattern)
                adapter.sync_saved(remaining, pattern=pattern, full_series=True, result=result)
        return result


@inject
def get_reservation_editor(
    reservation_editor: Annotated[
        "ReservationEditor | None", Provide["reservation_editor"]
    ] = None,
) -> ReservationEditor:
    if reservation_editor is None:
        raise ReservationServiceNotInjectedError(
            "The reservation editor is not available, is the DI container wired?"
        )
    return reservation_editor
