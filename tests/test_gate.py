import logging
import threading

import pytest

from mvdist.api import probability
from mvdist.api.probability import critical_value, rectangle_probability
from mvdist.core import gate as gate_module
from mvdist.core.gate import InvocationGate, default_gate

from conftest import ExplodingBackend, RecordingBackend

N_THREADS = 16


def _assert_disjoint(intervals):
    ordered = sorted(intervals)
    for (_, left), (entered, _) in zip(ordered, ordered[1:]):
        assert left <= entered


def _run_concurrently(n_threads, target):
    barrier = threading.Barrier(n_threads)
    errors = []

    def worker(i):
        barrier.wait()
        try:
            target(i)
        except Exception as exc:  # surfaced below; a thread cannot fail the test
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert not errors


def test_guarded_calls_never_overlap(fresh_gate, slow_recorder, box_2d):
    def call(_):
        for _ in range(3):
            rectangle_probability(**box_2d, backend=slow_recorder)

    _run_concurrently(N_THREADS, call)

    assert len(slow_recorder.intervals) == 3 * N_THREADS
    _assert_disjoint(slow_recorder.intervals)
    assert not fresh_gate.locked()


def test_default_backend_serialized_across_threads(monkeypatch, fresh_gate, box_2d):
    shared = RecordingBackend(delay=0.01)
    monkeypatch.setattr(probability, "_default_backend", shared)

    _run_concurrently(8, lambda _: rectangle_probability(**box_2d))

    assert len(shared.intervals) == 8
    _assert_disjoint(shared.intervals)


def test_callers_cannot_supply_their_own_gate(recorder, box_2d):
    with pytest.raises(TypeError):
        rectangle_probability(**box_2d, backend=recorder, gate=InvocationGate())
    assert recorder.calls == []


def test_both_operations_share_the_default_gate(fresh_gate, box_2d):
    backend = RecordingBackend(value=1.5, delay=0.002)
    crit_args = {k: v for k, v in box_2d.items() if k != "shift"}
    crit_args["lower"] = [-1.0, -1.0, -1.0]

    def call(i):
        if i % 2:
            rectangle_probability(**box_2d, backend=backend)
        else:
            critical_value(**crit_args, alpha=0.05, backend=backend)

    _run_concurrently(N_THREADS, call)

    assert {op for op, _ in backend.calls} == {"mvdist", "mvcrit"}
    _assert_disjoint(backend.intervals)


def test_gate_released_after_exception(caplog):
    gate = InvocationGate()

    def boom():
        raise RuntimeError("routine failed")

    with caplog.at_level(logging.WARNING, logger="mvdist.core.gate"):
        with pytest.raises(RuntimeError, match="routine failed"):
            gate.with_exclusive_access(boom)

    assert gate.abnormal_exits == 1
    assert not gate.locked()
    assert "RuntimeError" in caplog.text
    assert gate.with_exclusive_access(lambda: "next") == "next"
    assert gate.abnormal_exits == 1


def test_gate_released_after_keyboard_interrupt(fresh_gate, box_2d):
    with pytest.raises(KeyboardInterrupt):
        rectangle_probability(**box_2d, backend=ExplodingBackend(KeyboardInterrupt()))
    assert not fresh_gate.locked()
    assert fresh_gate.abnormal_exits == 1

    res = rectangle_probability(**box_2d, backend=RecordingBackend(value=0.75))
    assert res.value == 0.75


def test_gate_is_held_during_the_call():
    gate = InvocationGate()
    assert gate.with_exclusive_access(gate.locked) is True


def test_default_gate_is_a_singleton(monkeypatch):
    monkeypatch.setattr(gate_module, "_default_gate", None)
    seen = []

    _run_concurrently(8, lambda _: seen.append(default_gate()))

    assert len({id(g) for g in seen}) == 1
    assert default_gate() is seen[0]
