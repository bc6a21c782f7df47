"""
Base class for prayer time providers: one HTTP round trip per call, with timeout
and format routing. Subclasses implement the four fetch operations.
"""
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Callable, Dict, List, NamedTuple, Optional

import requests
from dateutil.relativedelta import relativedelta

from muezzin.core.entities import City, Country, District, PrayerTimeDay
from muezzin.core.errors import ErrorKind, Errors, Result
from muezzin.provider.parsers import ParsingError

DEFAULT_TIMEOUT = 10
DEFAULT_USER_AGENT = "muezzin/1.0"
FORMATS = ("html", "json", "auto")


class MonthWindow(NamedTuple):
    """Days from start (inclusive) up to start + months (exclusive)."""
    start: date
    months: int = 1

    @property
    def end(self) -> date:
        return self.start + relativedelta(months=self.months)

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end


class Page(NamedTuple):
    content: str
    fmt: str


class ProviderClient(ABC):
    """Fetches and parses provider payloads; all provider format knowledge lives below this class."""

    def __init__(self, config: Dict[str, Any], session: Optional[requests.Session] = None):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self.timeout = float(config.get("timeout", DEFAULT_TIMEOUT))
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", config.get("user_agent", DEFAULT_USER_AGENT))

    @abstractmethod
    def fetch_countries(self) -> Result[List[Country]]:
        pass

    @abstractmethod
    def fetch_cities(self, country_id: int) -> Result[List[City]]:
        pass

    @abstractmethod
    def fetch_districts(self, city_id: int) -> Result[List[District]]:
        pass

    @abstractmethod
    def fetch_prayer_times(self, district_id: int, month_window: MonthWindow) -> Result[List[PrayerTimeDay]]:
        pass

    def _endpoint(self, name: str) -> Dict[str, Any]:
        endpoint = self.config.get(name) or {}
        if isinstance(endpoint, str):
            endpoint = {"url": endpoint}
        return endpoint

    def _fetch_page(self, endpoint_name: str, context: str, **params: Any) -> Result[Page]:
        """GET the endpoint's URL template filled with params. Never raises."""
        endpoint = self._endpoint(endpoint_name)
        template = endpoint.get("url")
        if not template:
            return Result.failure(Errors.single(ErrorKind.REQUEST_FAILED, f"No URL configured for {endpoint_name}", context))
        try:
            url = template.format(**params)
        except (KeyError, IndexError) as e:
            return Result.failure(Errors.single(ErrorKind.REQUEST_FAILED, f"Bad URL template {template!r}: {e}", context))

        try:
            self.logger.info(f"Fetching {url}")
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout:
            self.logger.error(f"Timed out after {self.timeout}s fetching {url}")
            return Result.failure(Errors.single(ErrorKind.REQUEST_FAILED, f"Timed out after {self.timeout}s fetching {url}", context))
        except requests.exceptions.HTTPError as e:
            self.logger.error(f"Non-success status fetching {url}: {e}")
            return Result.failure(Errors.single(ErrorKind.REQUEST_FAILED, f"{url} returned {e.response.status_code if e.response is not None else 'error'}", context))
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Network error fetching {url}: {e}")
            return Result.failure(Errors.from_exception(ErrorKind.REQUEST_FAILED, e, context))

        fmt = endpoint.get("format", "auto")
        if fmt == "auto":
            content_type = (response.headers.get("Content-Type") or "").lower()
            fmt = "json" if "json" in content_type else "html"
        elif fmt not in FORMATS:
            return Result.failure(Errors.single(ErrorKind.REQUEST_FAILED, f"Unknown format {fmt!r} for {endpoint_name}", context))
        return Result.ok(Page(response.text, fmt))

    def _fetch_and_parse(self, endpoint_name: str, context: str, parse: Callable[[Page], list], **params: Any) -> Result[list]:
        """Fetch then parse; a ParsingError becomes parsingFailed, never a partial list."""
        page = self._fetch_page(endpoint_name, context, **params)
        if page.is_failure:
            return page
        try:
            return Result.ok(parse(page.value))
        except ParsingError as e:
            self.logger.error(f"Failed to parse {endpoint_name} payload: {e}")
            return Result.failure(Errors.single(ErrorKind.PARSING_FAILED, str(e), context))
        except Exception as e:
            self.logger.exception(f"Unexpected error parsing {endpoint_name} payload: {e}")
            return Result.failure(Errors.from_exception(ErrorKind.PARSING_FAILED, e, context))
