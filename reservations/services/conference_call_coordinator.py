import dataclasses
import datetime
import logging
from collections import defaultdict
from collections.abc import Sequence

from reservations.constants import ROOM_CONFLICT_IN_CONFERENCE_CALL, ReservationStatus
from reservations.exceptions import InvalidConferenceCallError, ReservableUnavailableError
from reservations.recurrence import RecurrencePattern
from reservations.services.conflict_evaluator import ConflictEvaluator
from reservations.services.dataclasses import (
    ConferenceCallGroup,
    OperationResult,
    ReservationOccurrence,
    RoomAllocationData,
)
from reservations.services.occurrence_reconciler import OccurrenceReconciler
from reservations.services.protocols.reservation_repository import ReservationRepository


logger = logging.getLogger(__name__)


class ConferenceCallCoordinator:
    """
    Keeps the rooms of a conference call in sync. Each location is a reservation
    (or a series of reservations) of its own; all of them share the conference id
    and, per occurrence index, the same time period, name and comments.
    """

    def __init__(
        self,
        repository: ReservationRepository,
        reconciler: OccurrenceReconciler,
        conflict_evaluator: ConflictEvaluator,
    ):
        self.repository = repository
        self.reconciler = reconciler
        self.conflict_evaluator = conflict_evaluator

    @staticmethod
    def location_summary(locations: Sequence[RoomAllocationData]) -> str:
        return "; ".join(
            location.comments.strip() or f"Room {location.room_id}" for location in locations
        )

    @staticmethod
    def _validate_locations(locations: Sequence[RoomAllocationData]) -> None:
        room_ids = [location.room_id for location in locations]
        if len(set(room_ids)) < 2:
            raise InvalidConferenceCallError()
        if len(set(room_ids)) != len(room_ids):
            raise InvalidConferenceCallError("A room can only be booked once per conference call.")

    def _member_for(
        self,
        template: ReservationOccurrence,
        location: RoomAllocationData,
        conference_id: int,
        summary: str,
        **changes,
    ) -> ReservationOccurrence:
        allocation = dataclasses.replace(
            location,
            building_id=location.building_id or self.repository.get_building_id(location.room_id),
            time_period=template.time_period,
        )
        return dataclasses.replace(
            template,
            conference_id=conference_id,
            location_summary=summary,
            room_allocations=[allocation],
            building_id=allocation.building_id,
            attendees=list(template.attendees),
            **changes,
        )

    def _save_single(
        self,
        occurrence: ReservationOccurrence,
        exclude_ids: set[int],
        result: OperationResult,
    ) -> ReservationOccurrence:
        occurrence.status = ReservationStatus.CONFIRMED
        occurrence.backup_building_id = None
        try:
            self.reconciler.check_availability(occurrence, exclude_ids)
        except ReservableUnavailableError as e:
            logger.warning(
                "Conference call %s location saved as room conflict: %s",
                occurrence.conference_id,
                e,
            )
            self.reconciler.mark_conflict(occurrence)
            result.add_warning(str(e))
        saved = self.repository.save(occurrence)
        result.add_saved([saved])
        return saved

    def save_group(
        self,
        template: ReservationOccurrence,
        locations: Sequence[RoomAllocationData],
        pattern: RecurrencePattern | None = None,
        *,
        today: datetime.date | None = None,
        result: OperationResult | None = None,
    ) -> OperationResult:
        """
        Book every location under a new conference call. Recurring groups get one
        series per location, generated from the same pattern so occurrence
        indexes line up across rooms.
        """
        self._validate_locations(locations)
        result = result if result is not None else OperationResult()

        conference_id = template.conference_id or self.repository.create_conference_call(
            template.name
        )
        summary = self.location_summary(locations)

        if pattern is None:
            group_ids: set[int] = set()
            for location in locations:
                member = self._member_for(
                    template, location, conference_id, summary, id=None, series_id=None
                )
                saved = self._save_single(member, group_ids, result)
                group_ids.add(saved.id)
        else:
            for location in locations:
                master = self._member_for(
                    template, location, conference_id, summary, id=None, series_id=None
                )
                self.reconciler.reconcile(master, pattern, today=today, result=result)

        self.groups(conference_id, result=result)
        return result

    def edit_group(
        self,
        conference_id: int,
        template: ReservationOccurrence,
        locations: Sequence[RoomAllocationData],
        pattern: RecurrencePattern | None = None,
        *,
        today: datetime.date | None = None,
        result: OperationResult | None = None,
    ) -> OperationResult:
        """
        Resubmit every location of a conference call. Rooms that are no longer
        requested are cancelled one by one from the edited occurrence onward;
        the remaining rooms are reconciled against the template.
        """
        self._validate_locations(locations)
        result = result if result is not None else OperationResult()

        # without a pattern only the edited occurrence index is resubmitted
        occurrence_index = None if pattern is not None else template.occurrence_index
        members = [
            member
            for member in self.repository.get_conference_call_members(
                conference_id, occurrence_index=occurrence_index
            )
            if member.is_active
        ]
        series_rooms = {
            member.series_id: member.room_id
            for member in members
            if member.series_id is not None and member.room_id is not None
        }
        edited_date = template.original_date or template.time_period.start_date
        requested_rooms = {location.room_id for location in locations}
        summary = self.location_summary(locations)

        members_by_room: dict[int | None, list[ReservationOccurrence]] = defaultdict(list)
        for member in members:
            member_date = member.original_date or member.time_period.start_date
            if pattern is not None and member_date < edited_date:
                continue
            room_id = member.room_id or series_rooms.get(member.series_id)
            if room_id in requested_rooms or (room_id is None and pattern is None):
                members_by_room[room_id].append(member)
                continue
            logger.info(
                "Cancelling reservation %s, its room was removed from conference call %s",
                member.id,
                conference_id,
            )
            result.add_cancelled([self.repository.cancel(member)])

        if pattern is None:
            group_ids = {member.id for member in members if member.id is not None}
            # conflict members of this index have no room left, reuse them for unmatched locations
            unmatched = members_by_room.pop(None, [])
            for location in locations:
                room_members = members_by_room.get(location.room_id) or unmatched[:1]
                existing = room_members[0] if room_members else None
                if existing is not None and existing in unmatched:
                    unmatched.remove(existing)
                member = self._member_for(
                    template,
                    location,
                    conference_id,
                    summary,
                    id=existing.id if existing else None,
                    series_id=existing.series_id if existing else None,
                    occurrence_index=template.occurrence_index,
                    original_date=existing.original_date if existing else template.original_date,
                    unique_id=existing.unique_id if existing else template.unique_id,
                    sequence=existing.sequence if existing else template.sequence,
                )
                saved = self._save_single(member, group_ids, result)
                group_ids.add(saved.id)
            for leftover in unmatched:
                result.add_cancelled([self.repository.cancel(leftover)])
        else:
            for location in locations:
                room_members = members_by_room.get(location.room_id, [])
                series_id = next(
                    (member.series_id for member in room_members if member.series_id), None
                )
                edited = next(
                    (
                        member
                        for member in room_members
                        if (member.original_date or member.time_period.start_date) == edited_date
                    ),
                    None,
                )
                master = self._member_for(
                    template,
                    location,
                    conference_id,
                    summary,
                    id=edited.id if edited else None,
                    series_id=series_id,
                    original_date=edited_date,
                )
                self.reconciler.reconcile(master, pattern, today=today, result=result)

        self.groups(conference_id, result=result)
        return result

    def edit_location(
        self,
        reservation_id: int,
        allocation: RoomAllocationData,
        *,
        result: OperationResult | None = None,
    ) -> OperationResult:
        """
        Change the room of one member of a conference call and fan the new
        location summary out to its siblings. Times are not resubmitted.
        """
        result = result if result is not None else OperationResult()
        member = self.repository.get(reservation_id)
        if member is None or member.conference_id is None:
            raise InvalidConferenceCallError(
                f"Reservation {reservation_id} is not part of a conference call."
            )
        if allocation.time_period is not None and allocation.time_period != member.time_period:
            raise InvalidConferenceCallError(
                "The time of a conference call location can only be changed for the whole group."
            )

        siblings = [
            sibling
            for sibling in self.repository.get_conference_call_members(
                member.conference_id, occurrence_index=member.occurrence_index
            )
            if sibling.is_active and sibling.id != member.id
        ]
        if any(sibling.room_id == allocation.room_id for sibling in siblings):
            raise InvalidConferenceCallError(
                f"The room {allocation.room_id} is already part of this conference call."
            )

        current_allocation = member.room_allocation
        new_allocation = dataclasses.replace(
            allocation,
            building_id=allocation.building_id
            or self.repository.get_building_id(allocation.room_id),
            time_period=member.time_period,
            id=(
                current_allocation.id
                if current_allocation and current_allocation.room_id == allocation.room_id
                else None
            ),
        )
        edited = dataclasses.replace(
            member,
            room_allocations=[new_allocation],
            building_id=new_allocation.building_id,
            sequence=member.sequence,
        )

        group_allocations = [new_allocation] + [
            sibling.room_allocation for sibling in siblings if sibling.room_allocation
        ]
        summary = self.location_summary(group_allocations)
        edited.location_summary = summary
        self._save_single(edited, {sibling.id for sibling in siblings}, result)

        for sibling in siblings:
            updated = dataclasses.replace(
                sibling,
                location_summary=summary,
                name=edited.name,
                comments=edited.comments,
                attendees=list(edited.attendees),
            )
            if updated != sibling:
                result.add_saved([self.repository.save(updated)])

        self.groups(member.conference_id, result=result)
        return result

    def groups(
        self, conference_id: int, *, result: OperationResult | None = None
    ) -> list[ConferenceCallGroup]:
        """
        Group the members of a conference call per occurrence index. Indexes
        where any room lost its allocation are flagged on ``result``.
        """
        members_by_index: dict[int, list[ReservationOccurrence]] = defaultdict(list)
        for member in self.repository.get_conference_call_members(conference_id):
            members_by_index[member.occurrence_index].append(member)

        groups = []
        for index in sorted(members_by_index):
            group = ConferenceCallGroup(
                conference_id=conference_id,
                occurrence_index=index,
                members=members_by_index[index],
            )
            if not group.active_members:
                continue
            groups.append(group)
            if group.has_room_conflict and result is not None:
                if index not in result.conference_conflicts:
                    result.conference_conflicts.append(index)
                conflict_date = group.time_period.start_date.isoformat()
                result.add_warning(
                    f"{ROOM_CONFLICT_IN_CONFERENCE_CALL}: a room of conference call "
                    f"{conference_id} is not available on {conflict_date}."
                )
        return groups
