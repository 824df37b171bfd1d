"""Integration tests for thread-safe access to shared components."""

import threading
from concurrent.futures import ThreadPoolExecutor

from cliforge.state.context import Context, ContextManager
from cliforge.state.defaults import DefaultsProvider, DefaultsResolver
from cliforge.state.history import HistoryEntry, HistoryLog
from cliforge.state.manager import StateManager
from cliforge.state.recent import RecentTracker

WORKERS = 8
PER_WORKER = 50


def _run_all(fn, count: int = WORKERS) -> None:
    """Start count workers together and re-raise the first failure."""
    barrier = threading.Barrier(count)

    def worker(i):
        barrier.wait()
        fn(i)

    with ThreadPoolExecutor(max_workers=count) as pool:
        for future in [pool.submit(worker, i) for i in range(count)]:
            future.result()


def test_concurrent_recent_adds_keep_list_consistent():
    """Concurrent adds never duplicate values or exceed capacity."""
    tracker = RecentTracker(max_per_list=20)

    def add_values(i):
        for n in range(PER_WORKER):
            tracker.add("ids", f"v{(i * 7 + n) % 30}")

    _run_all(add_values)

    values = tracker.get("ids")
    assert len(values) == 20
    assert len(set(values)) == len(values)
    total_uses = sum(item.use_count for item in tracker.get_with_metadata("ids"))
    assert total_uses <= WORKERS * PER_WORKER


def test_concurrent_history_adds_get_unique_ids(history):
    def add_entries(i):
        for n in range(PER_WORKER):
            history.add(HistoryEntry(command=f"worker{i} cmd{n}"))

    _run_all(add_entries)

    entries = history.get_all()
    assert len(entries) == WORKERS * PER_WORKER
    assert [e.id for e in entries] == list(range(1, WORKERS * PER_WORKER + 1))


def test_concurrent_history_respects_capacity(history_path):
    log = HistoryLog("testcli", max_entries=25, path=history_path)

    def add_entries(i):
        for n in range(PER_WORKER):
            log.add(HistoryEntry(command=f"worker{i} cmd{n}"))

    _run_all(add_entries)

    assert [e.id for e in log.get_all()] == list(range(1, 26))


def test_concurrent_context_switches_and_reads(manager):
    names = [f"ctx{i}" for i in range(WORKERS)]
    for name in names:
        manager.create_context(name, Context(name=name, fields={"owner": name}))

    def switch_and_read(i):
        for _ in range(PER_WORKER):
            manager.switch_context(names[i])
            current = manager.get_current_context()
            assert current.get("owner") == current.name

    _run_all(switch_and_read)

    assert manager.current_context_name in names
    total = sum(manager.get_context(name).use_count for name in names)
    assert total == WORKERS * PER_WORKER


def test_concurrent_context_updates_keep_every_field(manager):
    contexts = ContextManager(manager)
    contexts.create("shared")

    def update_fields(i):
        for n in range(PER_WORKER):
            contexts.update("shared", {f"w{i}-k{n}": str(n)})

    _run_all(update_fields)

    assert len(manager.get_context("shared").fields) == WORKERS * PER_WORKER


def test_resolution_during_concurrent_mutation(manager):
    resolver = DefaultsResolver(DefaultsProvider(manager, builtin_defaults={"region": "r-builtin"}))
    allowed = {"r-builtin"} | {f"r{i}" for i in range(WORKERS)}

    def mutate_or_read(i):
        for n in range(PER_WORKER):
            if i % 2:
                manager.add_recent_value("region", f"r{(i + n) % WORKERS}")
            else:
                assert resolver.resolve("region") in allowed

    _run_all(mutate_or_read)


def test_concurrent_saves_leave_a_valid_file(manager, state_path):
    def mutate_and_save(i):
        for n in range(10):
            manager.add_recent_value("ids", f"w{i}-{n}")
            manager.save()

    _run_all(mutate_and_save)

    reloaded = StateManager("testcli", path=state_path)
    assert reloaded.get_recent_values("ids") == manager.get_recent_values("ids")
