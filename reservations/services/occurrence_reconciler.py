import bisect
import dataclasses
import datetime
import logging
from collections.abc import Iterable, Sequence

from reservations.constants import ReservableType, ReservationStatus
from reservations.exceptions import (
    CreationTimeoutError,
    PatternEmptyError,
    ReservableUnavailableError,
    RoomReferenceError,
)
from reservations.recurrence import RecurrencePattern
from reservations.services.conflict_evaluator import ConflictEvaluator
from reservations.services.dataclasses import (
    OperationResult,
    ReconciliationPlan,
    ReservationOccurrence,
    RoomAllocationData,
)
from reservations.services.date_list_generator import DateListGenerator
from reservations.services.protocols.reservation_repository import ReservationRepository


logger = logging.getLogger(__name__)


class OccurrenceReconciler:
    """
    Brings the stored occurrences of one recurring reservation in line with its
    recurrence pattern.

    ``plan`` computes the create/update/cancel sets without touching storage;
    ``reconcile`` loads the series, plans and applies the result atomically.
    Occurrences before the edited one are never touched, cancelled occurrences
    are never resurrected and unavailable rooms turn single occurrences into
    room conflicts instead of failing the whole series.
    """

    def __init__(
        self,
        repository: ReservationRepository,
        date_list_generator: DateListGenerator,
        conflict_evaluator: ConflictEvaluator,
    ):
        self.repository = repository
        self.date_list_generator = date_list_generator
        self.conflict_evaluator = conflict_evaluator

    @staticmethod
    def resolve_anchor(
        dates: Sequence[datetime.date],
        edited_date: datetime.date,
        *,
        today: datetime.date | None = None,
        skipped_indexes: Iterable[int] = (),
    ) -> int:
        """
        Walk the generated dates until reaching the edited date, skipping
        occurrences in the past and occurrences that were cancelled.
        Returns the 1-based index of the first occurrence to save.
        """
        skipped = set(skipped_indexes)
        index = bisect.bisect_left(dates, edited_date) + 1
        while index <= len(dates) and (
            index in skipped or (today is not None and dates[index - 1] < today)
        ):
            index += 1
        return index

    def plan(
        self,
        master: ReservationOccurrence,
        pattern: RecurrencePattern,
        existing: Sequence[ReservationOccurrence],
        *,
        today: datetime.date | None = None,
    ) -> ReconciliationPlan:
        dates = self.date_list_generator.generate(pattern)

        active_indexes = {
            occurrence.occurrence_index for occurrence in existing if occurrence.is_active
        }
        skipped_indexes = {
            occurrence.occurrence_index for occurrence in existing if not occurrence.is_active
        } - active_indexes

        edited_date = master.original_date or master.time_period.start_date
        anchor_index = self.resolve_anchor(
            dates, edited_date, today=today, skipped_indexes=skipped_indexes
        )
        if anchor_index > len(dates):
            raise PatternEmptyError()

        desired = {
            index: date
            for index, date in enumerate(dates, start=1)
            if index >= anchor_index and index not in skipped_indexes
        }
        current: dict[int, ReservationOccurrence] = {}
        for occurrence in existing:
            if occurrence.is_active and occurrence.occurrence_index >= anchor_index:
                current.setdefault(occurrence.occurrence_index, occurrence)

        plan = ReconciliationPlan(anchor_index=anchor_index, dates=dates)
        exclude_ids = {occurrence.id for occurrence in current.values() if occurrence.id}
        if master.id:
            exclude_ids.add(master.id)

        first_index = min(desired)
        first_existing = current.get(first_index)
        allow_first_conflict = self.conflict_evaluator.allows_conflict_on_first_occurrence(
            existing_first_status=first_existing.status if first_existing else None,
            in_conference_call=master.conference_id is not None,
        )

        for index, date in sorted(desired.items()):
            existing_occurrence = current.get(index)
            candidate = self._build_candidate(master, index, date, existing_occurrence)
            if existing_occurrence is not None and self._is_unchanged(
                existing_occurrence, candidate
            ):
                plan.unchanged.append(existing_occurrence)
                continue

            try:
                self.check_availability(candidate, exclude_ids)
            except ReservableUnavailableError as e:
                if index == first_index and not allow_first_conflict:
                    raise
                logger.warning(
                    "Occurrence %s of series %s saved as room conflict: %s",
                    index,
                    master.series_id,
                    e,
                )
                self.mark_conflict(candidate)
                plan.warnings.append(str(e))

            if existing_occurrence is None:
                plan.to_create.append(candidate)
            else:
                plan.to_update.append(candidate)

        for index, occurrence in sorted(current.items()):
            if index not in desired:
                plan.to_cancel.append(
                    dataclasses.replace(occurrence, status=ReservationStatus.CANCELLED)
                )

        return plan

    def check_creation_timeout(self, master: ReservationOccurrence, anchor_index: int) -> None:
        """
        A reservation that is new to the caller but whose first occurrence already
        exists for the same unique id and the same room means another request
        already created it. Other rooms are ignored so the locations of a
        conference call don't trigger it.
        """
        if not master.unique_id or master.id:
            return
        room_id = master.room_id
        matches = self.repository.get_by_unique_id(master.unique_id, occurrence_index=anchor_index)
        if any(match.room_id is not None and match.room_id == room_id for match in matches):
            raise CreationTimeoutError()

    def reconcile(
        self,
        master: ReservationOccurrence,
        pattern: RecurrencePattern,
        *,
        today: datetime.date | None = None,
        result: OperationResult | None = None,
    ) -> OperationResult:
        result = result if result is not None else OperationResult()
        existing = (
            self.repository.get_by_series(master.series_id, include_inactive=True)
            if master.series_id
            else []
        )

        plan = self.plan(master, pattern, existing, today=today)
        self.check_creation_timeout(master, plan.anchor_index)
        if plan.is_empty:
            logger.debug("Series %s already matches its recurrence pattern", master.series_id)
            return result

        self.conflict_evaluator.check_number_of_conflicts(*self.count_conflicts(plan, existing))

        if master.series_id:
            self.repository.update_series(master.series_id, pattern=pattern)
        else:
            series_id = self.repository.create_series(pattern)
            master.series_id = series_id
            for occurrence in plan.to_create:
                occurrence.series_id = series_id

        plan = self.repository.apply_plan(plan)

        result.add_saved(plan.saved)
        result.add_cancelled(plan.to_cancel)
        for warning in plan.warnings:
            result.add_warning(warning)
        return result

    @staticmethod
    def count_conflicts(
        plan: ReconciliationPlan, existing: Sequence[ReservationOccurrence]
    ) -> tuple[int, int]:
        """
        Conflicting and available occurrences of the series once ``plan`` is
        applied, including the occurrences the plan leaves as they are.
        """
        replaced = {o.occurrence_index for o in [*plan.saved, *plan.to_cancel]}
        kept = [o for o in existing if o.is_active and o.occurrence_index not in replaced]
        number_of_conflicts = plan.number_of_conflicts + sum(
            1 for occurrence in kept if occurrence.status == ReservationStatus.CONFLICT
        )
        return number_of_conflicts, len(plan.saved) + len(kept) - number_of_conflicts

    def _build_candidate(
        self,
        master: ReservationOccurrence,
        index: int,
        date: datetime.date,
        existing: ReservationOccurrence | None,
    ) -> ReservationOccurrence:
        target_date = date
        if existing is not None and existing.is_date_modified and existing.original_date == date:
            # keep the occurrence where it was moved to, the pattern didn't change for it
            target_date = existing.time_period.start_date
        time_period = master.time_period.on_date(target_date)

        existing_allocation_ids = {
            allocation.room_id: allocation.id
            for allocation in (existing.room_allocations if existing else [])
        }
        allocations = [
            RoomAllocationData(
                room_id=allocation.room_id,
                building_id=allocation.building_id,
                comments=allocation.comments,
                time_period=time_period,
                id=existing_allocation_ids.get(allocation.room_id),
            )
            for allocation in master.room_allocations
        ]

        changes = {
            "name": master.name,
            "comments": master.comments,
            "attendees": list(master.attendees),
            "requested_by": master.requested_by,
            "reservable_type": master.reservable_type,
            "building_id": master.building_id,
            "time_period": time_period,
            "original_date": date,
            "occurrence_index": index,
            "room_allocations": allocations,
            "status": ReservationStatus.CONFIRMED,
            "backup_building_id": None,
        }
        if existing is None:
            return dataclasses.replace(
                master,
                id=None,
                conference_id=master.conference_id,
                location_summary=master.location_summary,
                **changes,
            )
        return dataclasses.replace(
            existing,
            conference_id=master.conference_id or existing.conference_id,
            location_summary=master.location_summary or existing.location_summary,
            **changes,
        )

    @staticmethod
    def _is_unchanged(existing: ReservationOccurrence, candidate: ReservationOccurrence) -> bool:
        same_details = (
            existing.time_period == candidate.time_period
            and existing.original_date == candidate.original_date
            and existing.name == candidate.name
            and existing.comments == candidate.comments
            and list(existing.attendees) == list(candidate.attendees)
            and existing.requested_by == candidate.requested_by
            and existing.reservable_type == candidate.reservable_type
            and existing.location_summary == candidate.location_summary
        )
        if not same_details:
            return False

        if existing.status == ReservationStatus.CONFLICT:
            requested = candidate.room_allocation
            return not existing.room_allocations and (
                requested is None or existing.backup_building_id == requested.building_id
            )
        return [(a.room_id, a.comments) for a in existing.room_allocations] == [
            (a.room_id, a.comments) for a in candidate.room_allocations
        ]

    def check_availability(
        self, candidate: ReservationOccurrence, exclude_ids: Iterable[int]
    ) -> None:
        match candidate.reservable_type:
            case ReservableType.ROOM:
                allocation = candidate.room_allocation
                if allocation is None:
                    raise RoomReferenceError()
                period = candidate.time_period
                booked = self.repository.get_booked_periods(
                    allocation.room_id,
                    period.start_datetime,
                    period.end_datetime,
                    exclude_ids=exclude_ids,
                )
                self.conflict_evaluator.ensure_available(allocation.room_id, period, booked)
            case ReservableType.RESOURCE:
                return
            case _:
                raise ValueError(f"Unsupported reservable type {candidate.reservable_type}")

    @staticmethod
    def mark_conflict(candidate: ReservationOccurrence) -> None:
        allocation = candidate.room_allocation
        candidate.backup_building_id = (
            allocation.building_id if allocation is not None else candidate.building_id
        )
        candidate.room_allocations = []
        candidate.status = ReservationStatus.CONFLICT
