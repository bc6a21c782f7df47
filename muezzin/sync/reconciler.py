"""
Reconciler: makes the stored snapshot of every entity type equal to the freshly
fetched one by applying the minimal set of inserts, updates and deletes.

Entity types are fetched and upserted parent before child; deletes run after
all upserts, child before parent, with children of a deleted parent deleted
first. Every failure is merged into the cycle's Errors and never stops the
remaining batches.
"""
import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from muezzin.core.entities import EntityType
from muezzin.core.errors import ErrorKind, Errors, Result
from muezzin.provider.base import MonthWindow, ProviderClient
from muezzin.store.gateway import StoreGateway
from muezzin.sync.diff import Diff, compute_diff, merge_diffs


class Operation:
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class BatchOutcome(NamedTuple):
    entity_type: str
    operation: str
    requested: int
    applied: int


class SyncReport(NamedTuple):
    """Outcome of one reconciliation cycle."""
    errors: Errors
    operations: List[BatchOutcome]

    @property
    def is_ok(self) -> bool:
        return self.errors.is_empty

    def applied(self, entity_type: Optional[str] = None, operation: Optional[str] = None) -> int:
        return sum(
            o.applied for o in self.operations
            if (entity_type is None or o.entity_type == entity_type)
            and (operation is None or o.operation == operation)
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "errors": self.errors.to_json(),
            "operations": [o._asdict() for o in self.operations],
        }


class Reconciler:
    """
    One instance per process; run_cycle() is called by SyncTask.

    countries/cities/districts are the parent ids whose children are synced:
    countries -> cities, cities -> districts, districts -> prayer times.
    None means every id of that type present after this cycle's upserts.
    """

    def __init__(
        self,
        provider: ProviderClient,
        store: StoreGateway,
        cache=None,
        countries: Optional[Iterable[int]] = None,
        cities: Optional[Iterable[int]] = None,
        districts: Optional[Iterable[int]] = None,
        month_window: int = 1,
        today: Callable[[], date] = date.today,
    ):
        self.provider = provider
        self.store = store
        self.cache = cache
        self.scopes = {
            EntityType.CITY: list(dict.fromkeys(countries)) if countries is not None else None,
            EntityType.DISTRICT: list(dict.fromkeys(cities)) if cities is not None else None,
            EntityType.PRAYER_TIME: list(dict.fromkeys(districts)) if districts is not None else None,
        }
        self.month_window = max(1, int(month_window))
        self.today = today
        self.logger = logging.getLogger(self.__class__.__name__)

    def run_cycle(self) -> SyncReport:
        """Fetch, diff and apply every entity type. Never raises."""
        self.logger.info("Starting sync cycle")
        errors = Errors.empty()
        operations: List[BatchOutcome] = []
        pending_deletes: Dict[str, List[Any]] = {}
        window = MonthWindow(self.today(), self.month_window)

        try:
            for entity_type in EntityType.ORDER:
                diff, level_errors = self._diff_level(entity_type, window, pending_deletes)
                errors += level_errors
                errors += self._apply_upserts(entity_type, diff, operations)
                if diff.deletes:
                    pending_deletes[entity_type] = diff.deletes
            errors += self._apply_deletes(pending_deletes, operations)
        except Exception as e:
            self.logger.exception(f"Sync cycle failed unexpectedly: {e}")
            errors += Errors.from_exception(ErrorKind.DATABASE, e, "Reconciler.run_cycle")

        self._invalidate_cache(operations)
        report = SyncReport(errors, operations)
        if errors:
            self.logger.error(f"Sync cycle finished with {len(errors)} error(s): {errors.to_json()}")
        else:
            self.logger.info(f"Sync cycle finished, {report.applied()} row(s) changed")
        return report

    def _fetch(self, entity_type: str, scope_id: Optional[int], window: MonthWindow) -> Result[list]:
        if entity_type == EntityType.COUNTRY:
            return self.provider.fetch_countries()
        if entity_type == EntityType.CITY:
            return self.provider.fetch_cities(scope_id)
        if entity_type == EntityType.DISTRICT:
            return self.provider.fetch_districts(scope_id)
        return self.provider.fetch_prayer_times(scope_id, window)

    def _load_current(self, entity_type: str, scope_id: Optional[int], window: MonthWindow) -> Result[list]:
        if entity_type == EntityType.PRAYER_TIME:
            # Rows outside the window are left to the sweep job
            return self.store.load_all(entity_type, scope_id=scope_id, start=window.start, end=window.end)
        return self.store.load_all(entity_type, scope_id=scope_id)

    def _scope_ids(self, entity_type: str, pending_deletes: Dict[str, List[Any]]) -> Tuple[List[Optional[int]], Errors]:
        """Parent ids whose children of entity_type are synced in this cycle."""
        parent_type = EntityType.parent_of(entity_type)
        if parent_type is None:
            return [None], Errors.empty()
        configured = self.scopes[entity_type]
        if configured is not None:
            return configured, Errors.empty()
        result = self.store.load_all(parent_type)
        if result.is_failure:
            return [], result.errors
        deleted = set(pending_deletes.get(parent_type, ()))
        return [e.key for e in result.value if e.key not in deleted], Errors.empty()

    def _diff_level(self, entity_type: str, window: MonthWindow, pending_deletes: Dict[str, List[Any]]) -> Tuple[Diff, Errors]:
        scope_ids, errors = self._scope_ids(entity_type, pending_deletes)
        parent_type = EntityType.parent_of(entity_type)
        scope_diffs = []

        for scope_id in scope_ids:
            fetched = self._fetch(entity_type, scope_id, window)
            if fetched.is_failure:
                self.logger.warning(f"Skipping {entity_type} for scope {scope_id}, fetch failed")
                errors += fetched.errors
                continue

            if parent_type is not None:
                parent = self.store.exists(parent_type, scope_id)
                if parent.is_failure:
                    errors += parent.errors
                    continue
                if not parent.value:
                    self.logger.error(f"Skipping {len(fetched.value)} {entity_type} rows of missing {parent_type} {scope_id}")
                    errors += Errors.single(
                        ErrorKind.INVALID_INPUT,
                        f"{parent_type} {scope_id} does not exist, {len(fetched.value)} orphaned {entity_type} row(s) not saved",
                        f"Reconciler.run_cycle({entity_type})",
                    )
                    continue

            current = self._load_current(entity_type, scope_id, window)
            if current.is_failure:
                errors += current.errors
                continue

            scope_diff = compute_diff(fetched.value, current.value, complete=True)
            if not fetched.value and current.value:
                self.logger.warning(f"Provider returned no {entity_type} rows for scope {scope_id}, keeping {len(current.value)} stored rows")
            scope_diffs.append(scope_diff)
        return merge_diffs(scope_diffs), errors

    def _run_batch(self, entity_type: str, operation: str, items: list, operations: List[BatchOutcome]) -> Errors:
        if not items:
            return Errors.empty()
        if operation == Operation.DELETE:
            result = self.store.delete_batch(entity_type, items)
        else:
            result = self.store.upsert_batch(entity_type, items)
        applied = 0 if result.is_failure else result.value
        operations.append(BatchOutcome(entity_type, operation, len(items), applied))
        if result.is_ok:
            self.logger.info(f"{operation} {applied} {entity_type} row(s)")
        return result.errors

    def _apply_upserts(self, entity_type: str, diff: Diff, operations: List[BatchOutcome]) -> Errors:
        errors = self._run_batch(entity_type, Operation.INSERT, diff.inserts, operations)
        errors += self._run_batch(entity_type, Operation.UPDATE, diff.updates, operations)
        return errors

    def _apply_deletes(self, pending_deletes: Dict[str, List[Any]], operations: List[BatchOutcome]) -> Errors:
        """Cascade deletes top-down, then delete bottom-up. A parent whose children
        could not be loaded or deleted stays."""
        errors = Errors.empty()
        to_delete = {t: dict.fromkeys(pending_deletes.get(t, ())) for t in EntityType.ORDER}
        children: Dict[Tuple[str, Any], List[Any]] = {}
        kept: Set[Tuple[str, Any]] = set()

        for entity_type in EntityType.ORDER:
            child_type = EntityType.child_of(entity_type)
            if child_type is None:
                break
            for key in list(to_delete[entity_type]):
                loaded = self.store.load_all(child_type, scope_id=key)
                if loaded.is_failure:
                    errors += loaded.errors
                    kept.add((entity_type, key))
                    continue
                child_keys = [c.key for c in loaded.value]
                children[(entity_type, key)] = child_keys
                for child_key in child_keys:
                    to_delete[child_type][child_key] = None

        for entity_type in reversed(EntityType.ORDER):
            child_type = EntityType.child_of(entity_type)
            keys = []
            for key in to_delete[entity_type]:
                blocked = (entity_type, key) in kept or any(
                    (child_type, child_key) in kept for child_key in children.get((entity_type, key), ())
                )
                if blocked:
                    self.logger.warning(f"Not deleting {entity_type} {key}, its children are still stored")
                    kept.add((entity_type, key))
                else:
                    keys.append(key)
            batch_errors = self._run_batch(entity_type, Operation.DELETE, keys, operations)
            if batch_errors:
                kept.update((entity_type, key) for key in keys)
                errors += batch_errors
        return errors

    def _invalidate_cache(self, operations: List[BatchOutcome]) -> None:
        if self.cache is None:
            return
        for entity_type in dict.fromkeys(o.entity_type for o in operations if o.applied):
            self.cache.invalidate(entity_type)
