from typing import Protocol


class TimeZoneLookup(Protocol):
    def get(self, building_id: int | None) -> str:
        """
        Return the IANA timezone identifier of a building.
        """
        ...
