"""
Store gateway: full snapshot reads and batch upserts/deletes of entities.

Every batch runs in one transaction. If the affected row count differs from the
requested count the transaction is rolled back and a database error is returned.
"""
import logging
from collections import defaultdict
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from sqlalchemy import delete, exc as sa_exc, select
from sqlalchemy.dialects import postgresql, sqlite

from muezzin.core.db import session_scope
from muezzin.core.entities import City, Country, District, Entity, EntityType, PrayerTimeDay
from muezzin.core.errors import ErrorKind, Errors, Result
from muezzin.core.models import CityRecord, CountryRecord, DistrictRecord, PrayerTimeRecord

DEFAULT_BATCH_SIZE = 100


class RowCountMismatch(Exception):
    """Affected rows differ from the rows requested in a batch."""


class _Table(NamedTuple):
    record: Any
    key_columns: Tuple[str, ...]
    parent_column: Optional[str]
    to_entity: Callable[[Any], Entity]
    to_row: Callable[[Any], Dict[str, Any]]


_TABLES = {
    EntityType.COUNTRY: _Table(
        CountryRecord, ("id",), None,
        lambda r: Country(r.id, r.name, r.trName, r.nativeName),
        lambda c: {"id": c.id, "name": c.name, "trName": c.tr_name, "nativeName": c.native_name},
    ),
    EntityType.CITY: _Table(
        CityRecord, ("id",), "countryId",
        lambda r: City(r.id, r.countryId, r.name, r.trName),
        lambda c: {"id": c.id, "countryId": c.country_id, "name": c.name, "trName": c.tr_name},
    ),
    EntityType.DISTRICT: _Table(
        DistrictRecord, ("id",), "cityId",
        lambda r: District(r.id, r.cityId, r.name, r.trName),
        lambda d: {"id": d.id, "cityId": d.city_id, "name": d.name, "trName": d.tr_name},
    ),
    EntityType.PRAYER_TIME: _Table(
        PrayerTimeRecord, ("districtId", "date"), "districtId",
        lambda r: PrayerTimeDay(r.districtId, r.date, r.fajr, r.sunrise, r.dhuhr, r.asr, r.maghrib, r.isha),
        lambda p: {
            "districtId": p.district_id,
            "date": p.date,
            "fajr": p.fajr,
            "sunrise": p.sunrise,
            "dhuhr": p.dhuhr,
            "asr": p.asr,
            "maghrib": p.maghrib,
            "isha": p.isha,
        },
    ),
}

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _chunks(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _is_timeout(e: Exception) -> bool:
    if isinstance(e, sa_exc.TimeoutError):
        return True
    if isinstance(e, sa_exc.OperationalError):
        message = str(e).lower()
        return "locked" in message or "timeout" in message or "timed out" in message
    return False


class StoreGateway:
    """Reads entity snapshots from and writes entity batches to the relational store."""

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE):
        self.batch_size = max(1, int(batch_size))
        self.logger = logging.getLogger(self.__class__.__name__)

    def _failure(self, e: Exception, context: str) -> Result:
        if isinstance(e, RowCountMismatch):
            self.logger.error(f"{context}: {e}")
            return Result.failure(Errors.single(ErrorKind.DATABASE, str(e), context))
        if _is_timeout(e):
            self.logger.error(f"{context}: timed out: {e}")
            return Result.failure(Errors.from_exception(ErrorKind.TIMEOUT, e, context))
        self.logger.exception(f"{context} failed: {e}")
        return Result.failure(Errors.from_exception(ErrorKind.DATABASE, e, context))

    def load_all(
        self,
        entity_type: str,
        scope_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Result[List[Entity]]:
        """Return all rows of entity_type ordered by key, optionally limited to one parent scope.

        start/end (start inclusive, end exclusive) only apply to prayer times.
        """
        mapping = _TABLES[entity_type]
        table = mapping.record.__table__
        context = f"StoreGateway.load_all({entity_type}, {scope_id})"
        self.logger.debug(f"Loading {entity_type} rows (scope {scope_id})")
        try:
            stmt = select(table)
            if scope_id is not None:
                stmt = stmt.where(table.c[mapping.parent_column] == scope_id)
            if entity_type == EntityType.PRAYER_TIME:
                if start is not None:
                    stmt = stmt.where(table.c.date >= start)
                if end is not None:
                    stmt = stmt.where(table.c.date < end)
            stmt = stmt.order_by(*[table.c[k] for k in mapping.key_columns])
            with session_scope() as session:
                rows = session.execute(stmt).all()
            return Result.ok([mapping.to_entity(r) for r in rows])
        except Exception as e:
            return self._failure(e, context)

    def exists(self, entity_type: str, key: Any) -> Result[bool]:
        mapping = _TABLES[entity_type]
        table = mapping.record.__table__
        context = f"StoreGateway.exists({entity_type}, {key})"
        try:
            stmt = select(table.c[mapping.key_columns[0]])
            keys = key if len(mapping.key_columns) > 1 else (key,)
            for column, value in zip(mapping.key_columns, keys):
                stmt = stmt.where(table.c[column] == value)
            with session_scope() as session:
                found = session.execute(stmt.limit(1)).first() is not None
            return Result.ok(found)
        except Exception as e:
            return self._failure(e, context)

    def upsert_batch(self, entity_type: str, items: Iterable[Entity]) -> Result[int]:
        """Insert or fully replace items in one transaction. Returns affected row count."""
        items = list(items)
        context = f"StoreGateway.upsert_batch({entity_type})"
        if not items:
            self.logger.debug(f"Not saving empty batch of {entity_type}")
            return Result.ok(0)

        mapping = _TABLES[entity_type]
        table = mapping.record.__table__
        rows = [mapping.to_row(item) for item in items]
        self.logger.debug(f"Saving {len(rows)} {entity_type} rows")
        try:
            with session_scope() as session:
                dialect = session.get_bind().dialect.name
                insert = _UPSERT_DIALECTS.get(dialect)
                if insert is None:
                    raise RuntimeError(f"Upsert is not supported on {dialect}")
                affected = 0
                for chunk in _chunks(rows, self.batch_size):
                    stmt = insert(table).values(list(chunk))
                    stmt = stmt.on_conflict_do_update(
                        index_elements=list(mapping.key_columns),
                        set_={c: stmt.excluded[c] for c in chunk[0] if c not in mapping.key_columns},
                    )
                    affected += session.execute(stmt).rowcount
                if affected != len(rows):
                    raise RowCountMismatch(
                        f"Failed to save {len(rows)} {entity_type} rows, affected row count was {affected}"
                    )
            return Result.ok(affected)
        except Exception as e:
            return self._failure(e, context)

    def delete_batch(self, entity_type: str, keys: Iterable[Any]) -> Result[int]:
        """Delete rows by key in one transaction. Returns affected row count."""
        keys = list(dict.fromkeys(keys))
        context = f"StoreGateway.delete_batch({entity_type})"
        if not keys:
            return Result.ok(0)

        mapping = _TABLES[entity_type]
        table = mapping.record.__table__
        self.logger.debug(f"Deleting {len(keys)} {entity_type} rows")
        try:
            with session_scope() as session:
                affected = 0
                if entity_type == EntityType.PRAYER_TIME:
                    by_district = defaultdict(list)
                    for district_id, day in keys:
                        by_district[district_id].append(day)
                    for district_id, days in by_district.items():
                        for chunk in _chunks(days, self.batch_size):
                            stmt = delete(table).where(table.c.districtId == district_id, table.c.date.in_(list(chunk)))
                            affected += session.execute(stmt).rowcount
                else:
                    for chunk in _chunks(keys, self.batch_size):
                        affected += session.execute(delete(table).where(table.c.id.in_(list(chunk)))).rowcount
                if affected != len(keys):
                    raise RowCountMismatch(
                        f"Failed to delete {len(keys)} {entity_type} rows, affected row count was {affected}"
                    )
            return Result.ok(affected)
        except Exception as e:
            return self._failure(e, context)

    def delete_prayer_times_before(self, cutoff: date) -> Result[int]:
        """Delete prayer time rows dated strictly before cutoff."""
        table = PrayerTimeRecord.__table__
        context = f"StoreGateway.delete_prayer_times_before({cutoff.isoformat()})"
        try:
            with session_scope() as session:
                deleted = session.execute(delete(table).where(table.c.date < cutoff)).rowcount
            self.logger.info(f"Deleted {deleted} prayer time rows dated before {cutoff.isoformat()}")
            return Result.ok(deleted)
        except Exception as e:
            return self._failure(e, context)
