import threading
import time
from unittest.mock import Mock

import pytest
from model_bakery import baker

from reservations.services.timezone_lookup import BuildingTimeZoneLookup


def test_timezone_is_loaded_once():
    loader = Mock(return_value="America/New_York")
    lookup = BuildingTimeZoneLookup(default_timezone="UTC", loader=loader)

    assert lookup.get(1) == "America/New_York"
    assert lookup.get(1) == "America/New_York"
    loader.assert_called_once_with(1)


def test_missing_building_falls_back_to_default():
    loader = Mock(return_value=None)
    lookup = BuildingTimeZoneLookup(default_timezone="Europe/Lisbon", loader=loader)

    assert lookup.get(1) == "Europe/Lisbon"
    assert lookup.get(None) == "Europe/Lisbon"
    lookup.get(1)
    loader.assert_called_once_with(1)


def test_unknown_timezone_falls_back_to_default(caplog):
    lookup = BuildingTimeZoneLookup(default_timezone="UTC", loader=Mock(return_value="Mars/Base"))

    assert lookup.get(1) == "UTC"
    assert lookup.get(1) == "UTC"
    assert caplog.text.count("unknown timezone") == 1


def test_clear_reloads():
    loader = Mock(side_effect=["Europe/Berlin", "Europe/Paris"])
    lookup = BuildingTimeZoneLookup(default_timezone="UTC", loader=loader)

    assert lookup.get(1) == "Europe/Berlin"
    lookup.clear()
    assert lookup.get(1) == "Europe/Paris"


def test_concurrent_lookups_load_once():
    def slow_loader(building_id):
        time.sleep(0.01)
        return "Asia/Tokyo"

    loader = Mock(side_effect=slow_loader)
    lookup = BuildingTimeZoneLookup(default_timezone="UTC", loader=loader)
    results = []
    threads = [threading.Thread(target=lambda: results.append(lookup.get(7))) for _ in range(10)]

    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results == ["Asia/Tokyo"] * 10
    loader.assert_called_once_with(7)


@pytest.mark.django_db
def test_default_loader_reads_the_building(settings):
    building = baker.make("reservations.Building", code="NYC", timezone="America/New_York")
    settings.TIME_ZONE = "UTC"

    lookup = BuildingTimeZoneLookup()

    assert lookup.get(building.id) == "America/New_York"
    assert lookup.get(building.id + 1) == "UTC"
