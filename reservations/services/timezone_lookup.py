import logging
import threading
import zoneinfo
from collections.abc import Callable

from django.conf import settings

from reservations.models import Building


logger = logging.getLogger(__name__)


def load_building_timezone(building_id: int) -> str | None:
    return Building.objects.filter(id=building_id).values_list("timezone", flat=True).first()


class BuildingTimeZoneLookup:
    """
    Building id -> IANA timezone, cached for the lifetime of the process.
    Each building is loaded at most once, fallbacks included; reads of cached keys take no lock.
    """

    def __init__(
        self,
        default_timezone: str | None = None,
        loader: Callable[[int], str | None] | None = None,
    ):
        self.default_timezone = default_timezone or settings.TIME_ZONE
        self._loader = loader or load_building_timezone
        self._cache: dict[int, str] = {}
        self._lock = threading.Lock()

    def get(self, building_id: int | None) -> str:
        if building_id is None:
            return self.default_timezone

        timezone = self._cache.get(building_id)
        if timezone is not None:
            return timezone

        with self._lock:
            timezone = self._cache.get(building_id)
            if timezone is not None:
                return timezone

            timezone = self._loader(building_id)
            if not timezone:
                logger.warning(
                    "Building %s has no timezone, using %s", building_id, self.default_timezone
                )
                timezone = self.default_timezone
            else:
                try:
                    zoneinfo.ZoneInfo(timezone)
                except (zoneinfo.ZoneInfoNotFoundError, ValueError):
                    logger.warning(
                        "Building %s has an unknown timezone %s, using %s",
                        building_id,
                        timezone,
                        self.default_timezone,
                    )
                    timezone = self.default_timezone

            self._cache[building_id] = timezone
            return timezone

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
