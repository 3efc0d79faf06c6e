"""Shared stand-in backends for exercising the envelope without numerics."""

from __future__ import annotations
import threading
import time
from typing import Any, Dict, List, Tuple

import numpy as np
import pytest


class RecordingBackend:
    """Stand-in routine that records its arguments and call interval.

    Every call answers ``(error, value, evaluations, status_code)`` as
    configured. ``delay`` keeps the call open long enough for other threads to
    pile up on the gate.
    """

    def __init__(self, value: float = 0.5, error: float = 1e-6, evaluations: int = 100,
                 status_code: int = 0, delay: float = 0.0):
        self.value = value
        self.error = error
        self.evaluations = evaluations
        self.status_code = status_code
        self.delay = delay
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.intervals: List[Tuple[float, float]] = []
        self._record = threading.Lock()

    def _answer(self, operation: str, args: Dict[str, Any]):
        entered = time.perf_counter()
        if self.delay:
            time.sleep(self.delay)
        left = time.perf_counter()
        with self._record:
            self.calls.append((operation, args))
            self.intervals.append((entered, left))
        return self.error, self.value, self.evaluations, self.status_code

    def mvdist(self, n, covariance, nu, m, lower, constraints, upper, infin,
               delta, maxpts, abseps, releps):
        return self._answer("mvdist", dict(
            n=n, covariance=np.array(covariance), nu=nu, m=m, lower=np.array(lower),
            constraints=np.array(constraints), upper=np.array(upper), infin=np.array(infin),
            delta=np.array(delta), maxpts=maxpts, abseps=abseps, releps=releps,
        ))

    def mvcrit(self, n, covariance, nu, m, lower, constraints, upper, infin,
               alpha, maxpts, abseps):
        return self._answer("mvcrit", dict(
            n=n, covariance=np.array(covariance), nu=nu, m=m, lower=np.array(lower),
            constraints=np.array(constraints), upper=np.array(upper), infin=np.array(infin),
            alpha=alpha, maxpts=maxpts, abseps=abseps,
        ))


class ExplodingBackend:
    """Stand-in routine that raises the given exception on every call."""

    def __init__(self, exc: BaseException):
        self.exc = exc

    def mvdist(self, *args):
        raise self.exc

    def mvcrit(self, *args):
        raise self.exc


@pytest.fixture
def recorder():
    return RecordingBackend()


@pytest.fixture
def slow_recorder():
    return RecordingBackend(delay=0.002)


@pytest.fixture
def box_2d():
    """Keyword arguments for a small 2-D rectangle problem."""
    return dict(
        covariance=[[1.0, 0.3], [0.3, 2.0]],
        degrees_of_freedom=0,
        lower=[-1.0, -2.0, 0.0],
        upper=[1.0, 2.0, 5.0],
        bound_kinds=["both_sided", "upper_only", "lower_only"],
        constraints=[[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]],
        shift=[0.0, 0.1, 0.2],
    )


@pytest.fixture
def fresh_gate(monkeypatch):
    """Install a new process-wide gate for the duration of one test."""
    from mvdist.core import gate as gate_module
    from mvdist.core.gate import InvocationGate

    installed = InvocationGate()
    monkeypatch.setattr(gate_module, "_default_gate", installed)
    return installed
