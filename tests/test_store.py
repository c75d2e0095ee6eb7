from datetime import timedelta

from waitline.datasource.models import FacilityStatus, ProviderKind, WaitTimeRecord
from waitline.services.refresh_guard import RefreshGuard
from waitline.services.store import ResultStore


def make_record(facility_id: str, when, patients: int = 2) -> WaitTimeRecord:
    return WaitTimeRecord(
        facility_id=facility_id,
        wait_minutes=10,
        patients_in_line=patients,
        status=FacilityStatus.OPEN,
        last_updated=when,
        source=ProviderKind.STRUCTURED_QUEUE_API,
    )


def test_merge_replaces_records(clock) -> None:
    store = ResultStore(clock=clock)
    store.merge([make_record("a", clock.now), make_record("b", clock.now)])
    store.put(make_record("a", clock.now, patients=5))

    assert len(store) == 2
    assert store.get("a").patients_in_line == 5
    assert store.last_update_time == clock.now


def test_get_fresh_hides_stale_records(clock) -> None:
    store = ResultStore(stale_after=timedelta(minutes=5), clock=clock)
    store.put(make_record("a", clock.now))

    clock.advance(300)
    assert store.get_fresh("a") is not None
    clock.advance(1)
    assert store.get_fresh("a") is None
    assert store.get("a") is not None
    assert store.is_stale(store.get("a")) is True


def test_snapshot_is_a_copy(clock) -> None:
    store = ResultStore(clock=clock)
    store.put(make_record("a", clock.now))

    snapshot = store.snapshot()
    store.put(make_record("b", clock.now))

    assert set(snapshot) == {"a"}
    assert set(store.snapshot()) == {"a", "b"}


def test_update_uses_current_record_atomically(clock) -> None:
    store = ResultStore(clock=clock)
    store.put(make_record("a", clock.now, patients=0))

    updated = store.update("a", lambda current: current.model_copy(update={"patients_in_line": 4}))
    assert updated.patients_in_line == 4
    assert store.get("a").patients_in_line == 4

    assert store.update("a", lambda current: None) is None
    assert store.get("a").patients_in_line == 4


def test_stats(clock) -> None:
    store = ResultStore(stale_after=timedelta(minutes=5), clock=clock)
    store.put(make_record("old", clock.now))
    clock.advance(600)
    store.put(make_record("new", clock.now))
    store.get("missing")

    stats = store.get_stats()
    assert stats.size == 2
    assert stats.stale == 1
    assert stats.misses == 1
    assert stats.to_dict()["last_update"] == clock.now.isoformat()


def test_refresh_guard_refuses_reentry() -> None:
    guard = RefreshGuard()

    assert guard.try_begin("a") is True
    assert guard.try_begin("a") is False
    assert guard.in_flight() == frozenset({"a"})

    guard.end("a")
    assert guard.in_flight() == frozenset()
    assert guard.try_begin("a") is True
    assert guard.get_stats().to_dict() == {"started": 2, "refused": 1, "in_flight": 1}
