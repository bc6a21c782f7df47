"""
Parsers turning provider payloads (HTML or JSON) into entity lists.

Every parser either returns a complete list or raises ParsingError carrying the
offending fragment; callers convert that into a parsingFailed error.
"""
import json
import logging
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from dateutil import parser as dateutil_parser

from muezzin.core.entities import City, Country, District, PrayerTimeDay
from muezzin.provider.reference import CountryNames
from muezzin.provider.text import sanitize_html

logger = logging.getLogger(__name__)

FRAGMENT_LIMIT = 200

# Accepted JSON keys, first match wins
COUNTRY_KEYS = {
    "id": ("UlkeID", "Value", "id"),
    "tr_name": ("UlkeAdi", "Text", "trName", "name"),
    "name": ("UlkeAdiEn", "name"),
}
CITY_KEYS = {
    "id": ("SehirID", "Value", "id"),
    "tr_name": ("SehirAdi", "Text", "trName", "name"),
    "name": ("SehirAdiEn", "name"),
}
DISTRICT_KEYS = {
    "id": ("IlceID", "Value", "id"),
    "tr_name": ("IlceAdi", "Text", "trName", "name"),
    "name": ("IlceAdiEn", "name"),
}
PRAYER_TIME_KEYS = {
    "date": ("MiladiTarihKisa", "date", "Date"),
    "fajr": ("Imsak", "fajr", "Fajr"),
    "sunrise": ("Gunes", "sunrise", "Sunrise"),
    "dhuhr": ("Ogle", "dhuhr", "Dhuhr"),
    "asr": ("Ikindi", "asr", "Asr"),
    "maghrib": ("Aksam", "maghrib", "Maghrib"),
    "isha": ("Yatsi", "isha", "Isha"),
}

DATE_FORMATS = ("%d.%m.%Y", "%Y-%m-%d", "%d/%m/%Y")
TIME_FORMATS = ("%H:%M", "%H:%M:%S")


class ParsingError(Exception):
    """Payload does not match the expected shape."""

    def __init__(self, message: str, fragment: Any = None):
        self.fragment = _fragment(fragment) if fragment is not None else ""
        super().__init__(f"{message}: {self.fragment}" if self.fragment else message)


def _fragment(value: Any) -> str:
    text = value if isinstance(value, str) else repr(value)
    text = " ".join(text.split())
    return text if len(text) <= FRAGMENT_LIMIT else text[:FRAGMENT_LIMIT] + "..."


def _pick(item: Mapping[str, Any], keys: Sequence[str], required: bool = True) -> Any:
    for key in keys:
        if key in item and item[key] not in (None, ""):
            return item[key]
    if required:
        raise ParsingError(f"Missing one of {list(keys)}", item)
    return None


def _parse_id(value: Any, fragment: Any) -> int:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise ParsingError(f"Invalid id {value!r}", fragment)
    if parsed <= 0:
        raise ParsingError(f"Invalid id {value!r}", fragment)
    return parsed


def parse_date(value: Any, fragment: Any = None) -> date:
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return dateutil_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError):
        raise ParsingError(f"Invalid date {text!r}", fragment if fragment is not None else value)


def parse_time(value: Any, fragment: Any = None) -> time:
    text = str(value).strip()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ParsingError(f"Invalid time {text!r}", fragment if fragment is not None else value)


def load_json_list(content: str) -> List[Any]:
    try:
        data = json.loads(content)
    except ValueError as e:
        raise ParsingError(f"Invalid JSON ({e})", content)
    if not isinstance(data, list):
        raise ParsingError("Expected a JSON list", content)
    return data


def _options(content: str, select_name: Optional[str] = None) -> List[Tuple[str, str]]:
    """Return (value, text) pairs of the <option>s of the first matching <select>."""
    soup = BeautifulSoup(content, "html.parser")
    select = None
    if select_name:
        select = soup.find("select", attrs={"name": select_name}) or soup.find("select", id=select_name)
    if select is None:
        select = soup.find("select")
    if select is None:
        raise ParsingError("No <select> element found", content)
    pairs = []
    for option in select.find_all("option"):
        value = (option.get("value") or "").strip()
        text = option.get_text(strip=True)
        # Placeholder options such as "Seçiniz" carry no value
        if not value or value in ("0", "-1"):
            continue
        pairs.append((value, text))
    return pairs


def _region_items(content: str, fmt: str, keys: Dict[str, Sequence[str]], select_name: Optional[str]) -> List[Dict[str, Any]]:
    """Normalize a region list into dicts with id, tr_name and optional name."""
    if fmt == "html":
        return [{"id": _parse_id(v, t), "tr_name": t, "name": None, "_raw": f"{v}={t}"} for v, t in _options(content, select_name)]
    items = []
    for item in load_json_list(content):
        if not isinstance(item, dict):
            raise ParsingError("Expected a JSON object", item)
        items.append({
            "id": _parse_id(_pick(item, keys["id"]), item),
            "tr_name": str(_pick(item, keys["tr_name"])),
            "name": _pick(item, keys["name"], required=False),
            "_raw": item,
        })
    return items


def _display_names(item: Dict[str, Any]) -> Tuple[str, str]:
    tr_name = sanitize_html(item["tr_name"])
    if not tr_name:
        raise ParsingError("Empty name", item["_raw"])
    name = sanitize_html(str(item["name"]), turkish=False) if item["name"] else tr_name
    return name, tr_name


def _unique(entities: Iterable[Any]) -> List[Any]:
    seen = {}
    for entity in entities:
        previous = seen.get(entity.key)
        if previous is not None and previous != entity:
            raise ParsingError(f"Conflicting rows for {entity.key!r}", [previous, entity])
        seen[entity.key] = entity
    return list(seen.values())


def parse_countries(content: str, fmt: str, reference: Mapping[int, CountryNames]) -> List[Country]:
    """Parse the country list; English and native names come from the reference table."""
    countries = []
    for item in _region_items(content, fmt, COUNTRY_KEYS, "Country"):
        name, tr_name = _display_names(item)
        known = reference.get(item["id"])
        if known:
            countries.append(Country(item["id"], known.name, known.tr_name, known.native_name))
        else:
            logger.debug(f"No reference names for country {item['id']}, using provider name {tr_name}")
            countries.append(Country(item["id"], name, tr_name, tr_name))
    return _unique(countries)


def parse_cities(content: str, fmt: str, country_id: int) -> List[City]:
    cities = []
    for item in _region_items(content, fmt, CITY_KEYS, "State"):
        name, tr_name = _display_names(item)
        cities.append(City(item["id"], country_id, name, tr_name))
    return _unique(cities)


def parse_districts(content: str, fmt: str, city_id: int) -> List[District]:
    districts = []
    for item in _region_items(content, fmt, DISTRICT_KEYS, "City"):
        name, tr_name = _display_names(item)
        districts.append(District(item["id"], city_id, name, tr_name))
    return _unique(districts)


def _prayer_day(district_id: int, values: Sequence[Any], fragment: Any) -> PrayerTimeDay:
    day = parse_date(values[0], fragment)
    times = [parse_time(v, fragment) for v in values[1:7]]
    return PrayerTimeDay(district_id, day, *times)


def parse_prayer_times(content: str, fmt: str, district_id: int) -> List[PrayerTimeDay]:
    """Parse a prayer time table: one row per day, seven columns date..isha."""
    days = []
    if fmt == "html":
        soup = BeautifulSoup(content, "html.parser")
        table = soup.find("table")
        if table is None:
            raise ParsingError("No <table> element found", content)
        for row in table.find_all("tr"):
            cells = [td.get_text(strip=True) for td in row.find_all("td")]
            if not cells:
                continue
            if len(cells) < 7:
                raise ParsingError(f"Expected 7 cells, got {len(cells)}", row.get_text(" ", strip=True))
            days.append(_prayer_day(district_id, cells[:7], row.get_text(" ", strip=True)))
    else:
        for item in load_json_list(content):
            if not isinstance(item, dict):
                raise ParsingError("Expected a JSON object", item)
            values = [_pick(item, PRAYER_TIME_KEYS[field]) for field in
                      ("date", "fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha")]
            days.append(_prayer_day(district_id, values, item))

    if fmt == "html" and not days:
        raise ParsingError("Prayer time table has no rows", content)
    seen = set()
    for day in days:
        if day.date in seen:
            raise ParsingError(f"Duplicate date {day.date.isoformat()}", day)
        seen.add(day.date)
    return sorted(days, key=lambda d: d.date)
