from dependency_injector import containers, providers

from reservations.services.calendar_payload_builder import CalendarPayloadBuilder
from reservations.services.calendar_sync_adapter import CalendarSyncAdapter
from reservations.services.conference_call_coordinator import ConferenceCallCoordinator
from reservations.services.conflict_evaluator import ConflictEvaluator
from reservations.services.date_list_generator import DateListGenerator
from reservations.services.ics_calendar_service import IcsCalendarService
from reservations.services.notification_dispatcher import EmailNotificationDispatcher
from reservations.services.occurrence_reconciler import OccurrenceReconciler
from reservations.services.recurrence_rule_translator import RecurrenceRuleTranslator
from reservations.services.reservation_editor import ReservationEditor
from reservations.services.reservation_repository import DjangoReservationRepository
from reservations.services.timezone_lookup import BuildingTimeZoneLookup


class AppContainer(containers.DeclarativeContainer):
    config = providers.Configuration()

    reservation_repository = providers.Factory(
        DjangoReservationRepository,
    )

    date_list_generator = providers.Factory(
        DateListGenerator,
        max_occurrences=config.RESERVATIONS_MAX_OCCURRENCES,
    )

    conflict_evaluator = providers.Factory(
        ConflictEvaluator,
        conflicts_mode=config.RESERVATIONS_ROOM_CONFLICTS_MODE,
    )

    occurrence_reconciler = providers.Factory(
        OccurrenceReconciler,
        repository=reservation_repository,
        date_list_generator=date_list_generator,
        conflict_evaluator=conflict_evaluator,
    )

    conference_call_coordinator = providers.Factory(
        ConferenceCallCoordinator,
        repository=reservation_repository,
        reconciler=occurrence_reconciler,
        conflict_evaluator=conflict_evaluator,
    )

    recurrence_rule_translator = providers.Factory(
        RecurrenceRuleTranslator,
        date_list_generator=date_list_generator,
    )

    calendar_payload_builder = providers.Factory(
        CalendarPayloadBuilder,
        translator=recurrence_rule_translator,
        date_list_generator=date_list_generator,
        organizer_email=config.RESERVATIONS_ORGANIZER_EMAIL,
    )

    notification_dispatcher = providers.Factory(
        EmailNotificationDispatcher,
        from_email=config.DEFAULT_FROM_EMAIL,
        bcc=config.DEFAULT_BCC_EMAILS,
    )

    calendar_service = providers.Factory(
        IcsCalendarService,
        payload_builder=calendar_payload_builder,
        notification_dispatcher=notification_dispatcher,
    )

    calendar_sync_adapter = providers.Factory(
        CalendarSyncAdapter,
        calendar_service=calendar_service,
        repository=reservation_repository,
        date_list_generator=date_list_generator,
    )

    timezone_lookup = providers.Singleton(
        BuildingTimeZoneLookup,
        default_timezone=config.TIME_ZONE,
    )

    reservation_editor = providers.Factory(
        ReservationEditor,
        repository=reservation_repository,
        reconciler=occurrence_reconciler,
        calendar_sync_adapter=calendar_sync_adapter,
        timezone_lookup=timezone_lookup,
        conference_call_coordinator=conference_call_coordinator,
        conference_calls_enabled=config.RESERVATIONS_CONFERENCE_CALLS_ENABLED,
    )


container: AppContainer | None = None  # set during app startup
