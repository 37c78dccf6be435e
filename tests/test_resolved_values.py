import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from kindling.errors import CircularDependencyError, ResolutionFailed
from kindling.registry import ComponentRegistry
from kindling.resolved_values import ResolvedValues

THREADS = 16


@pytest.fixture
def values() -> ResolvedValues:
    return ResolvedValues()


def test_fetch_or_store_computes_once(values):
    computed = []

    assert values.fetch_or_store("a", lambda: computed.append(1) or "first") == "first"
    assert values.fetch_or_store("a", lambda: computed.append(2) or "second") == "first"
    assert computed == [1]
    assert "a" in values
    assert values["a"] == "first"


def test_none_is_a_resolved_value(values):
    values.fetch_or_store("nothing", lambda: None)

    assert "nothing" in values
    assert values["nothing"] is None
    assert values.names() == ["nothing"]


def test_failed_computation_stores_nothing(values):
    with pytest.raises(ValueError):
        values.fetch_or_store("a", _raise(ValueError("nope")))

    assert "a" not in values
    assert values.fetch_or_store("a", lambda: "retried") == "retried"


def test_clear_forgets_values(values):
    values.fetch_or_store("a", lambda: 1)

    values.clear()

    assert "a" not in values
    with pytest.raises(KeyError):
        values["a"]


def test_reentrant_store_wins_over_outer_result(values):
    def compute():
        assert values.fetch_or_store("a", lambda: "inner", reentrant=True) == "inner"
        return "outer"

    assert values.fetch_or_store("a", compute) == "inner"


def test_non_reentrant_recursion_raises(values):
    def compute():
        return values.fetch_or_store("b", lambda: values.fetch_or_store("a", lambda: 1))

    with pytest.raises(CircularDependencyError, match="a -> b -> a"):
        values.fetch_or_store("a", compute)

    assert values.names() == []


def test_concurrent_callers_share_one_computation(values):
    barrier = threading.Barrier(THREADS)
    computed = []

    def compute():
        computed.append(threading.get_ident())
        time.sleep(0.1)
        return object()

    def fetch():
        barrier.wait()
        return values.fetch_or_store("slow", compute)

    with ThreadPoolExecutor(max_workers=THREADS) as executor:
        results = list(executor.map(lambda _: fetch(), range(THREADS)))

    assert len(computed) == 1
    assert all(result is results[0] for result in results)


def test_waiters_get_a_fresh_error_chained_to_the_failure_they_joined(values):
    started = threading.Event()
    release = threading.Event()
    error = ConnectionError("unavailable")
    outcome = {}

    def compute():
        started.set()
        release.wait(timeout=5)
        raise error

    def wait_for_value():
        try:
            values.fetch_or_store("db", _raise(RuntimeError("waiter computed")))
        except Exception as e:
            outcome["error"] = e

    with ThreadPoolExecutor(max_workers=2) as executor:
        owner = executor.submit(values.fetch_or_store, "db", compute)
        assert started.wait(timeout=5)
        waiter = executor.submit(wait_for_value)
        time.sleep(0.2)
        release.set()

        with pytest.raises(ConnectionError) as e:
            owner.result()
        waiter.result()

    assert e.value is error
    assert isinstance(outcome["error"], ResolutionFailed)
    assert outcome["error"].name == "db"
    assert outcome["error"].__cause__ is error
    assert "ConnectionError('unavailable')" in str(outcome["error"])
    assert "db" not in values


def test_mark_resolved_waits_for_a_resolution_in_flight():
    registry = ComponentRegistry()
    started = threading.Event()
    release = threading.Event()
    calls = []

    def slow(cfg):
        calls.append("resolve")
        started.set()
        release.wait(timeout=5)
        return "computed"

    registry.register("slow", lambda c: c.resolve(slow))

    with ThreadPoolExecutor(max_workers=2) as executor:
        resolving = executor.submit(registry.resolve, "slow")
        assert started.wait(timeout=5)
        marking = executor.submit(registry.mark_resolved, "slow", "marked")
        time.sleep(0.2)
        assert not marking.done()
        release.set()

        assert resolving.result() == "computed"
        assert marking.result() == "computed"

    assert registry["slow"] == "computed"
    assert calls == ["resolve"]


def test_independent_names_resolve_in_parallel(values):
    both_running = threading.Barrier(2, timeout=5)

    def compute(name):
        both_running.wait()
        return name

    with ThreadPoolExecutor(max_workers=2) as executor:
        a = executor.submit(values.fetch_or_store, "a", lambda: compute("a"))
        b = executor.submit(values.fetch_or_store, "b", lambda: compute("b"))

        assert (a.result(), b.result()) == ("a", "b")


def test_concurrent_registry_resolution_runs_hooks_once():
    registry = ComponentRegistry(configuration={"pool_size": 4})
    calls = {"config": 0, "pool": 0}
    lock = threading.Lock()
    barrier = threading.Barrier(THREADS)

    def count(name, value):
        def hook(cfg):
            with lock:
                calls[name] += 1
            time.sleep(0.05)
            return value(cfg)

        return hook

    registry.register("config", lambda c: c.resolve(count("config", lambda cfg: cfg)))
    registry.register(
        "pool",
        lambda c: c.requires("config").resolve(
            count("pool", lambda cfg: [object()] * registry["config"]["pool_size"])
        ),
    )

    def resolve():
        barrier.wait()
        registry.resolve("pool")
        return registry["pool"]

    with ThreadPoolExecutor(max_workers=THREADS) as executor:
        pools = list(executor.map(lambda _: resolve(), range(THREADS)))

    assert calls == {"config": 1, "pool": 1}
    assert all(pool is pools[0] for pool in pools)
    assert len(pools[0]) == 4


def _raise(error):
    def raiser():
        raise error

    return raiser
