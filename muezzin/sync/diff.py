"""
Diff of a fetched snapshot against the current snapshot of one entity type.
"""
from typing import Any, Dict, Iterable, List, NamedTuple

from muezzin.core.entities import Entity


class Diff(NamedTuple):
    inserts: List[Entity]
    updates: List[Entity]
    deletes: List[Any]  # keys

    @property
    def is_empty(self) -> bool:
        return not (self.inserts or self.updates or self.deletes)


def compute_diff(fetched: Iterable[Entity], current: Iterable[Entity], complete: bool = True) -> Diff:
    """
    Keys only in fetched are inserts, keys in both with different fields are
    updates (full record), keys only in current are deletes.

    Deletes are only produced when the fetch was complete and non-empty; an
    empty fetch never means everything was removed.
    """
    fetched_by_key = {e.key: e for e in fetched}
    current_by_key = {e.key: e for e in current}

    inserts = []
    updates = []
    for key in sorted(fetched_by_key):
        entity = fetched_by_key[key]
        existing = current_by_key.get(key)
        if existing is None:
            inserts.append(entity)
        elif existing != entity:
            updates.append(entity)

    deletes = []
    if complete and fetched_by_key:
        deletes = sorted(key for key in current_by_key if key not in fetched_by_key)
    return Diff(inserts, updates, deletes)


def merge_diffs(diffs: Iterable[Diff]) -> Diff:
    """
    Combine per-scope diffs of one entity type.

    A key deleted from one scope and inserted into another moved to a new
    parent: it becomes an update and is not deleted. A key written by any
    scope is never deleted.
    """
    inserts: Dict[Any, Entity] = {}
    updates: Dict[Any, Entity] = {}
    deletes: Dict[Any, None] = {}
    for diff in diffs:
        for entity in diff.inserts:
            inserts[entity.key] = entity
        for entity in diff.updates:
            updates[entity.key] = entity
        deletes.update(dict.fromkeys(diff.deletes))

    for key in [k for k in inserts if k in deletes]:
        updates[key] = inserts.pop(key)
    for key in [k for k in inserts if k in updates]:
        del inserts[key]
    written = set(inserts) | set(updates)
    return Diff(
        [inserts[k] for k in sorted(inserts)],
        [updates[k] for k in sorted(updates)],
        sorted(k for k in deletes if k not in written),
    )
