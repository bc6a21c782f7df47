from muezzin.core.entities import City
from muezzin.sync.diff import compute_diff, merge_diffs


def _city(id: int, name: str = "City") -> City:
    return City(id, 2, name, name)


def test_insert_update_delete_and_noop():
    current = [_city(1), _city(2, "Old"), _city(3)]
    fetched = [_city(1), _city(2, "New"), _city(4)]
    diff = compute_diff(fetched, current)
    assert diff.inserts == [_city(4)]
    assert diff.updates == [_city(2, "New")]
    assert diff.deletes == [3]


def test_unchanged_snapshot_is_empty():
    snapshot = [_city(1), _city(2)]
    assert compute_diff(snapshot, list(snapshot)).is_empty


def test_no_deletes_from_empty_or_incomplete_fetch():
    current = [_city(1), _city(2)]
    assert compute_diff([], current).deletes == []
    assert compute_diff([_city(1)], current, complete=False).deletes == []
    assert compute_diff([_city(1)], current, complete=True).deletes == [2]


def test_applying_diff_yields_fetched_snapshot():
    current = {c.key: c for c in [_city(1), _city(2, "Old"), _city(5), _city(7)]}
    fetched = [_city(2, "New"), _city(3), _city(5), _city(9)]
    diff = compute_diff(fetched, current.values())

    applied = dict(current)
    for key in diff.deletes:
        del applied[key]
    for entity in diff.inserts + diff.updates:
        applied[entity.key] = entity
    assert applied == {c.key: c for c in fetched}
    assert len(diff.updates) == len({e.key for e in diff.updates})


def test_diff_results_are_sorted_by_key():
    diff = compute_diff([_city(9), _city(3), _city(5)], [_city(8), _city(1)])
    assert [c.id for c in diff.inserts] == [3, 5, 9]
    assert diff.deletes == [1, 8]


def test_merge_turns_moved_rows_into_updates():
    moved = City(10, 2, "Moved", "Moved")
    from_old_parent = compute_diff([City(11, 1, "Stays", "Stays")], [City(10, 1, "Moved", "Moved"), City(11, 1, "Stays", "Stays")])
    into_new_parent = compute_diff([moved], [])
    assert from_old_parent.deletes == [10]
    assert into_new_parent.inserts == [moved]

    merged = merge_diffs([from_old_parent, into_new_parent])
    assert merged.inserts == []
    assert merged.updates == [moved]
    assert merged.deletes == []


def test_merge_keeps_unrelated_changes_and_dedupes_keys():
    merged = merge_diffs([
        compute_diff([_city(1), _city(2, "New")], [_city(2, "Old"), _city(3)]),
        compute_diff([_city(1)], []),
    ])
    assert merged.inserts == [_city(1)]
    assert merged.updates == [_city(2, "New")]
    assert merged.deletes == [3]
    assert merge_diffs([]).is_empty
