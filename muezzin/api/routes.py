"""
Query routes over PrayerTimesService. Mounted at /api/.
Failures are rendered as {"errors": [...]} with a status derived from the error kinds.
"""
from typing import List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from muezzin.core.errors import ErrorKind, Errors, Result

# First matching kind wins
_STATUS_BY_KIND = (
    (ErrorKind.INVALID_INPUT, 400),
    (ErrorKind.NOT_FOUND, 404),
    (ErrorKind.TIMEOUT, 503),
    (ErrorKind.REQUEST_FAILED, 503),
)


def status_for(errors: Errors) -> int:
    for kind, status in _STATUS_BY_KIND:
        if errors.has_kind(kind):
            return status
    return 500


def error_response(errors: Errors) -> JSONResponse:
    return JSONResponse(status_code=status_for(errors), content={"errors": errors.to_json()})


class CountryResponse(BaseModel):
    id: int
    name: str
    trName: str
    nativeName: str


class CityResponse(BaseModel):
    id: int
    countryId: int
    name: str
    trName: str


class DistrictResponse(BaseModel):
    id: int
    cityId: int
    name: str
    trName: str


class PrayerTimeResponse(BaseModel):
    districtId: int
    date: str
    fajr: str
    sunrise: str
    dhuhr: str
    asr: str
    maghrib: str
    isha: str


class CountriesResponse(BaseModel):
    countries: List[CountryResponse]


class CitiesResponse(BaseModel):
    cities: List[CityResponse]


class DistrictsResponse(BaseModel):
    districts: List[DistrictResponse]


class PrayerTimesResponse(BaseModel):
    prayerTimes: List[PrayerTimeResponse]


def _render(result: Result, key: str):
    if result.is_failure:
        return error_response(result.errors)
    return {key: [e.to_json() for e in result.value]}


def get_router(muezzin_app) -> APIRouter:
    router = APIRouter(tags=["Prayer Times"])
    service = muezzin_app.service

    @router.get("/countries", response_model=CountriesResponse)
    def get_countries():
        return _render(service.get_countries(), "countries")

    @router.get("/countries/{country_id}/cities", response_model=CitiesResponse)
    def get_cities(country_id: str):
        return _render(service.get_cities(country_id), "cities")

    @router.get("/cities/{city_id}/districts", response_model=DistrictsResponse)
    def get_districts(city_id: str):
        return _render(service.get_districts(city_id), "districts")

    @router.get("/districts/{district_id}/prayertimes", response_model=PrayerTimesResponse)
    def get_prayer_times(district_id: str, start: Optional[str] = None, end: Optional[str] = None):
        """Prayer times with start <= date <= end; both bounds are optional ISO dates."""
        return _render(service.get_prayer_times(district_id, start, end), "prayerTimes")

    return router
