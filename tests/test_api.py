from datetime import date
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from muezzin.api.routes import status_for
from muezzin.api.server import create_app
from muezzin.core.entities import EntityType
from muezzin.core.errors import ErrorKind, Errors
from muezzin.core.task_manager import TaskManager
from muezzin.service import PrayerTimesService
from tests.fakes import ISTANBUL, KADIKOY, TURKEY, prayer_day
from tests.test_task_manager import CountingTask


@pytest.fixture
def app_state(store, cache):
    store.upsert_batch(EntityType.COUNTRY, [TURKEY])
    store.upsert_batch(EntityType.CITY, [ISTANBUL])
    store.upsert_batch(EntityType.DISTRICT, [KADIKOY])
    store.upsert_batch(EntityType.PRAYER_TIME, [prayer_day(KADIKOY.id, date(2024, 3, d)) for d in (1, 2, 3)])
    task_manager = TaskManager()
    task_manager.register_task(CountingTask(name="sync", initial_delay=60, interval=60))
    yield SimpleNamespace(service=PrayerTimesService(store, cache), cache=cache, task_manager=task_manager)
    task_manager.stop()


@pytest.fixture
def client(app_state):
    return TestClient(create_app(app_state))


def test_get_countries(client):
    r = client.get("/api/countries")
    assert r.status_code == 200
    assert r.json() == {"countries": [{"id": 2, "name": "Turkey", "trName": "Türkiye", "nativeName": "Türkiye"}]}


def test_get_cities_and_districts(client):
    assert client.get("/api/countries/2/cities").json()["cities"][0]["trName"] == "İstanbul"
    assert client.get("/api/cities/539/districts").json()["districts"][0]["id"] == KADIKOY.id


def test_get_prayer_times_with_range(client):
    r = client.get(f"/api/districts/{KADIKOY.id}/prayertimes", params={"start": "2024-03-02", "end": "2024-03-02"})
    assert r.status_code == 200
    (day,) = r.json()["prayerTimes"]
    assert day["date"] == "2024-03-02"
    assert day["fajr"] == "05:30"


def test_error_statuses(client):
    r = client.get("/api/countries/abc/cities")
    assert r.status_code == 400
    assert r.json()["errors"][0]["kind"] == "invalidInput"

    r = client.get("/api/countries/3/cities")
    assert r.status_code == 404
    assert r.json()["errors"][0]["kind"] == "notFound"


def test_tasks(client, app_state):
    r = client.get("/api/tasks")
    assert r.status_code == 200
    (task,) = r.json()["tasks"]
    assert task["name"] == "sync"
    assert task["state"] == "idle"

    assert client.post("/api/tasks/sync/run").status_code == 202
    assert client.post("/api/tasks/missing/run").status_code == 404


def test_cache_stats(client):
    client.get("/api/countries")
    assert client.get("/api/cache").json()["entries"] == 1


def test_status_for_kinds():
    assert status_for(Errors.single(ErrorKind.TIMEOUT)) == 503
    assert status_for(Errors.single(ErrorKind.REQUEST_FAILED)) == 503
    assert status_for(Errors.single(ErrorKind.DATABASE)) == 500
    assert status_for(Errors.single(ErrorKind.PARSING_FAILED)) == 500
    assert status_for(Errors.single(ErrorKind.NOT_FOUND) + Errors.single(ErrorKind.INVALID_INPUT)) == 400
