"""
Provider backed by the Diyanet prayer time service (default endpoints point to
its public ezanvakti mirror, which serves JSON; Diyanet's own pages serve HTML).
"""
from typing import Any, Dict, List, Mapping, Optional

import requests

from muezzin.core.entities import City, Country, District, PrayerTimeDay
from muezzin.core.errors import Result
from muezzin.provider.base import MonthWindow, ProviderClient
from muezzin.provider.parsers import parse_cities, parse_countries, parse_districts, parse_prayer_times
from muezzin.provider.reference import CountryNames, get_country_names

DEFAULT_ENDPOINTS = {
    "countries": {"url": "https://ezanvakti.emushaf.net/ulkeler", "format": "json"},
    "cities": {"url": "https://ezanvakti.emushaf.net/sehirler/{country_id}", "format": "json"},
    "districts": {"url": "https://ezanvakti.emushaf.net/ilceler/{city_id}", "format": "json"},
    "prayer_times": {"url": "https://ezanvakti.emushaf.net/vakitler/{district_id}", "format": "json"},
}


class DiyanetProvider(ProviderClient):
    """Diyanet country/city/district lists and monthly prayer time tables."""

    def __init__(
        self,
        config: Dict[str, Any],
        session: Optional[requests.Session] = None,
        reference: Optional[Mapping[int, CountryNames]] = None,
    ):
        merged = dict(DEFAULT_ENDPOINTS)
        merged.update(config or {})
        super().__init__(merged, session)
        self.reference = reference if reference is not None else get_country_names()

    def fetch_countries(self) -> Result[List[Country]]:
        return self._fetch_and_parse(
            "countries",
            "DiyanetProvider.fetch_countries",
            lambda page: parse_countries(page.content, page.fmt, self.reference),
        )

    def fetch_cities(self, country_id: int) -> Result[List[City]]:
        return self._fetch_and_parse(
            "cities",
            f"DiyanetProvider.fetch_cities({country_id})",
            lambda page: parse_cities(page.content, page.fmt, country_id),
            country_id=country_id,
        )

    def fetch_districts(self, city_id: int) -> Result[List[District]]:
        return self._fetch_and_parse(
            "districts",
            f"DiyanetProvider.fetch_districts({city_id})",
            lambda page: parse_districts(page.content, page.fmt, city_id),
            city_id=city_id,
        )

    def fetch_prayer_times(self, district_id: int, month_window: MonthWindow) -> Result[List[PrayerTimeDay]]:
        """Fetch the district's table and keep the days inside month_window."""
        result = self._fetch_and_parse(
            "prayer_times",
            f"DiyanetProvider.fetch_prayer_times({district_id})",
            lambda page: parse_prayer_times(page.content, page.fmt, district_id),
            district_id=district_id,
            months=month_window.months,
            start=month_window.start.isoformat(),
        )
        if result.is_failure:
            return result
        days = [d for d in result.value if month_window.contains(d.date)]
        if len(days) != len(result.value):
            self.logger.debug(f"Dropped {len(result.value) - len(days)} days outside {month_window} for district {district_id}")
        return Result.ok(days)
