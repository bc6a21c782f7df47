import threading
import time

from muezzin.core.errors import ErrorKind, Errors, Result


class Loader:
    def __init__(self, value=None, fail=False, delay=0.0):
        self.value = value if value is not None else ["row"]
        self.fail = fail
        self.delay = delay
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            return Result.failure(Errors.single(ErrorKind.DATABASE, "locked"))
        return Result.ok(self.value)


def test_read_through(cache):
    loader = Loader()
    assert cache.get("city", 2, loader).value == ["row"]
    assert cache.get("city", 2, loader).value == ["row"]
    assert loader.calls == 1
    assert cache.stats()["hits"] == 1
    assert cache.stats()["misses"] == 1


def test_scopes_are_separate_keys(cache):
    loader = Loader()
    cache.get("city", 2, loader)
    cache.get("city", 3, loader)
    assert loader.calls == 2


def test_failed_loads_are_not_cached(cache):
    failing = Loader(fail=True)
    assert cache.get("country", None, failing).is_failure
    loader = Loader()
    assert cache.get("country", None, loader).is_ok
    assert loader.calls == 1


def test_entries_expire_after_timeout(cache, clock):
    loader = Loader()
    cache.get("country", None, loader)
    clock.now[0] += 59
    cache.get("country", None, loader)
    assert loader.calls == 1
    clock.now[0] += 2
    cache.get("country", None, loader)
    assert loader.calls == 2


def test_invalidate_by_entity_type(cache):
    loader = Loader()
    cache.get("city", 2, loader)
    cache.get("city", 3, loader)
    cache.get("country", None, loader)
    assert cache.invalidate("city") == 2
    assert cache.stats()["entries"] == 1


def test_sweep_drops_only_stale_entries(cache, clock):
    cache.get("city", 2, Loader())
    clock.now[0] += 30
    cache.get("city", 3, Loader())
    clock.now[0] += 31
    assert cache.sweep() == 1
    assert cache.stats()["entries"] == 1
    cache.clear()
    assert cache.stats()["entries"] == 0


def test_concurrent_misses_load_once(cache):
    loader = Loader(delay=0.1)
    results = []
    threads = [threading.Thread(target=lambda: results.append(cache.get("district", 539, loader))) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)
    assert loader.calls == 1
    assert all(r.value == ["row"] for r in results)


def test_loader_exception_becomes_database_error(cache):
    def broken():
        raise RuntimeError("connection reset")

    result = cache.get("city", 2, broken)
    assert result.errors.kinds == [ErrorKind.DATABASE]


def test_load_invalidated_midway_is_not_cached(cache):
    snapshots = iter([["old"], ["new"]])

    def committed_during_load():
        value = next(snapshots)
        if value == ["old"]:
            cache.invalidate("country")
        return Result.ok(value)

    assert cache.get("country", None, committed_during_load).value == ["old"]
    assert cache.get("country", None, committed_during_load).value == ["new"]
    assert cache.get("country", None, committed_during_load).value == ["new"]
    assert cache.stats()["misses"] == 2


def test_clear_during_load_is_not_cached(cache):
    loader = Loader()

    def cleared_during_load():
        cache.clear()
        return loader()

    cache.get("district", 539, cleared_during_load)
    assert cache.stats()["entries"] == 0
    cache.get("district", 539, loader)
    cache.get("district", 539, loader)
    assert loader.calls == 2
