from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from safespace.services.rate_limit import (
    AdmissionGate,
    build_admission_gates,
    client_identity,
    create_window_store,
)


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_gate_denies_request_past_limit():
    clock = FakeClock()
    gate = AdmissionGate(3, 60, clock=clock)

    results = [gate.check("203.0.113.7") for _ in range(4)]

    assert [r.success for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert all(r.reset == 1_060_000 for r in results)
    assert all(r.limit == 3 for r in results)


def test_gate_opens_new_window_after_reset():
    clock = FakeClock()
    gate = AdmissionGate(1, 60, clock=clock)

    assert gate.check("a").success
    assert not gate.check("a").success

    clock.now += 61
    result = gate.check("a")
    assert result.success
    assert result.remaining == 0
    assert result.reset == 1_121_000


def test_gate_tracks_identities_independently():
    gate = AdmissionGate(1, 60, clock=FakeClock())
    assert gate.check("a").success
    assert gate.check("b").success
    assert not gate.check("a").success


def test_retry_after_rounds_up_to_whole_seconds():
    clock = FakeClock()
    gate = AdmissionGate(1, 60, clock=clock)
    gate.check("a")
    denied = gate.check("a")

    clock.now += 10.5
    assert denied.retry_after(gate.now_ms()) == 50
    assert denied.retry_after(denied.reset + 5_000) == 0


def test_result_headers():
    result = AdmissionGate(5, 60, clock=FakeClock()).check("a")
    assert result.headers() == {
        "X-RateLimit-Limit": "5",
        "X-RateLimit-Remaining": "4",
        "X-RateLimit-Reset": "1060000",
    }


def test_window_store_is_bounded():
    store = create_window_store(max_identities=2, ttl_seconds=60)
    gate = AdmissionGate(5, 60, store=store, clock=FakeClock())

    for identity in ("a", "b", "c"):
        gate.check(identity)

    assert len(store) == 2
    assert "a" not in store


def test_gate_admits_exactly_limit_under_concurrency():
    gate = AdmissionGate(10, 60, clock=FakeClock())

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: gate.check("shared"), range(50)))

    assert sum(r.success for r in results) == 10


def test_client_identity_prefers_forwarded_for():
    assert client_identity({"x-forwarded-for": "203.0.113.5, 10.0.0.1", "x-real-ip": "10.0.0.9"}) == "203.0.113.5"
    assert client_identity({"x-real-ip": "10.0.0.9"}) == "10.0.0.9"
    assert client_identity({}) == "unknown"


def test_build_admission_gates_uses_per_endpoint_limits():
    gates = build_admission_gates()
    assert {name: gate.max_requests for name, gate in gates.items()} == {
        "analyze": 10,
        "preview": 15,
        "proxy": 10,
        "screenshot": 5,
    }
    assert gates["analyze"]._store is not gates["proxy"]._store
