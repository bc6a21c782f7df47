"""
Entity records: Country, City, District and PrayerTimeDay.

All four are immutable NamedTuples tagged with entity_type and exposing the same
key / parent_id / to_json capability; equality is field equality.
"""
from datetime import date, time
from typing import Any, Dict, NamedTuple, Optional, Tuple, Union


class EntityType:
    """Entity type tags, parent before child."""
    COUNTRY = "country"
    CITY = "city"
    DISTRICT = "district"
    PRAYER_TIME = "prayerTime"

    ORDER = (COUNTRY, CITY, DISTRICT, PRAYER_TIME)

    @classmethod
    def parent_of(cls, entity_type: str) -> Optional[str]:
        index = cls.ORDER.index(entity_type)
        return cls.ORDER[index - 1] if index > 0 else None

    @classmethod
    def child_of(cls, entity_type: str) -> Optional[str]:
        index = cls.ORDER.index(entity_type)
        return cls.ORDER[index + 1] if index + 1 < len(cls.ORDER) else None


class Country(NamedTuple):
    """A country, keyed by the provider's country id."""
    id: int
    name: str
    tr_name: str
    native_name: str

    entity_type = EntityType.COUNTRY

    @property
    def key(self) -> int:
        return self.id

    @property
    def parent_id(self) -> None:
        return None

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "trName": self.tr_name, "nativeName": self.native_name}


class City(NamedTuple):
    """A city (state/province) of a country."""
    id: int
    country_id: int
    name: str
    tr_name: str

    entity_type = EntityType.CITY

    @property
    def key(self) -> int:
        return self.id

    @property
    def parent_id(self) -> int:
        return self.country_id

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "countryId": self.country_id, "name": self.name, "trName": self.tr_name}


class District(NamedTuple):
    """A district of a city; prayer times are published per district."""
    id: int
    city_id: int
    name: str
    tr_name: str

    entity_type = EntityType.DISTRICT

    @property
    def key(self) -> int:
        return self.id

    @property
    def parent_id(self) -> int:
        return self.city_id

    def to_json(self) -> Dict[str, Any]:
        return {"id": self.id, "cityId": self.city_id, "name": self.name, "trName": self.tr_name}


class PrayerTimeDay(NamedTuple):
    """Prayer times of one district for one day. At most one per (district_id, date)."""
    district_id: int
    date: date
    fajr: time
    sunrise: time
    dhuhr: time
    asr: time
    maghrib: time
    isha: time

    entity_type = EntityType.PRAYER_TIME

    @property
    def key(self) -> Tuple[int, date]:
        return (self.district_id, self.date)

    @property
    def parent_id(self) -> int:
        return self.district_id

    def to_json(self) -> Dict[str, Any]:
        return {
            "districtId": self.district_id,
            "date": self.date.isoformat(),
            "fajr": self.fajr.strftime("%H:%M"),
            "sunrise": self.sunrise.strftime("%H:%M"),
            "dhuhr": self.dhuhr.strftime("%H:%M"),
            "asr": self.asr.strftime("%H:%M"),
            "maghrib": self.maghrib.strftime("%H:%M"),
            "isha": self.isha.strftime("%H:%M"),
        }


Entity = Union[Country, City, District, PrayerTimeDay]
