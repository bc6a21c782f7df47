"""
Query surface: countries, cities, districts and prayer times read through the cache.
"""
from datetime import date, timedelta
from typing import Any, List, Optional, Union

from muezzin.core.cache import SnapshotCache
from muezzin.core.entities import City, Country, District, EntityType, PrayerTimeDay
from muezzin.core.errors import ErrorKind, Errors, Result
from muezzin.store.gateway import StoreGateway


def parse_id(value: Any, name: str) -> Result[int]:
    """Accept a positive int or a decimal string."""
    if isinstance(value, bool):
        value = None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        return Result.failure(Errors.single(ErrorKind.INVALID_INPUT, f"{name} must be a positive integer, got {value!r}", "parse_id"))
    return Result.ok(value)


def parse_day(value: Union[date, str, None], name: str) -> Result[Optional[date]]:
    if value is None or isinstance(value, date):
        return Result.ok(value)
    try:
        return Result.ok(date.fromisoformat(str(value).strip()))
    except ValueError:
        return Result.failure(Errors.single(ErrorKind.INVALID_INPUT, f"{name} must be an ISO date (yyyy-mm-dd), got {value!r}", "parse_day"))


class PrayerTimesService:
    """Read-only queries; an empty result is notFound."""

    def __init__(self, store: StoreGateway, cache: Optional[SnapshotCache] = None):
        self.store = store
        self.cache = cache if cache is not None else SnapshotCache()

    def _load(self, entity_type: str, scope_id: Optional[int], what: str) -> Result[list]:
        result = self.cache.get(entity_type, scope_id, lambda: self.store.load_all(entity_type, scope_id=scope_id))
        if result.is_ok and not result.value:
            return Result.failure(Errors.single(ErrorKind.NOT_FOUND, f"No {what} found", f"PrayerTimesService.{entity_type}({scope_id})"))
        return result

    def get_countries(self) -> Result[List[Country]]:
        return self._load(EntityType.COUNTRY, None, "countries")

    def get_cities(self, country_id: Any) -> Result[List[City]]:
        parsed = parse_id(country_id, "country_id")
        if parsed.is_failure:
            return parsed
        return self._load(EntityType.CITY, parsed.value, f"cities for country {parsed.value}")

    def get_districts(self, city_id: Any) -> Result[List[District]]:
        parsed = parse_id(city_id, "city_id")
        if parsed.is_failure:
            return parsed
        return self._load(EntityType.DISTRICT, parsed.value, f"districts for city {parsed.value}")

    def get_prayer_times(self, district_id: Any, start: Any = None, end: Any = None) -> Result[List[PrayerTimeDay]]:
        """Prayer times of a district with start <= date <= end (both optional)."""
        parsed_id = parse_id(district_id, "district_id")
        parsed_start = parse_day(start, "start")
        parsed_end = parse_day(end, "end")
        errors = parsed_id.errors + parsed_start.errors + parsed_end.errors
        if errors:
            return Result.failure(errors)
        district_id, start, end = parsed_id.value, parsed_start.value, parsed_end.value
        if start is not None and end is not None and start > end:
            return Result.failure(Errors.single(
                ErrorKind.INVALID_INPUT,
                f"start {start.isoformat()} is after end {end.isoformat()}",
                "PrayerTimesService.get_prayer_times",
            ))

        result = self.cache.get(
            EntityType.PRAYER_TIME,
            district_id,
            lambda: self.store.load_all(EntityType.PRAYER_TIME, scope_id=district_id),
        )
        if result.is_failure:
            return result
        days = [
            d for d in result.value
            if (start is None or d.date >= start) and (end is None or d.date < end + timedelta(days=1))
        ]
        if not days:
            return Result.failure(Errors.single(
                ErrorKind.NOT_FOUND,
                f"No prayer times found for district {district_id}",
                "PrayerTimesService.get_prayer_times",
            ))
        return Result.ok(days)
