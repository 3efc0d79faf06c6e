"""
mvdist.core.gate
================

Process-wide serialization of calls into the integration routine.

The routine keeps internal mutable state (random generators, scratch buffers)
and must never run on two threads at once. `InvocationGate` wraps a single
lock and exposes it only through `with_exclusive_access`, which runs one
boundary call while holding the lock and releases it on every exit path.

Notes
-----
- The gate is **not reentrant**. Calling `rectangle_probability` or
  `critical_value` from inside the guarded call on the same thread deadlocks.
  This is a contract restriction of the package.
- No fairness or ordering is promised beyond mutual exclusion.
- A guarded call that raises (including ``KeyboardInterrupt``) does not poison
  the gate: the guarded state lives in the routine, not in the lock, so the
  lock is released, the abnormal exit is counted and logged, and the next
  caller proceeds normally. No caller ever runs the routine without holding
  the lock.

Examples
--------
>>> from mvdist.core.gate import InvocationGate
>>> gate = InvocationGate()
>>> gate.with_exclusive_access(lambda: 41 + 1)
42
>>> gate.locked()
False
"""

from __future__ import annotations
import logging
import threading
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InvocationGate:
    """Mutual exclusion around one non-reentrant external routine."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._abnormal_exits = 0

    @property
    def abnormal_exits(self) -> int:
        """Number of guarded calls that exited by raising."""
        return self._abnormal_exits

    def locked(self) -> bool:
        return self._lock.locked()

    def with_exclusive_access(self, call: Callable[[], T]) -> T:
        """Run `call` while holding the gate and return its result.

        Exceptions raised by `call` propagate unchanged after the gate has
        been released.
        """
        with self._lock:
            try:
                return call()
            except BaseException as exc:
                # Still under the lock, so the counter needs no extra guard.
                self._abnormal_exits += 1
                logger.warning(
                    "guarded call exited abnormally (%s); releasing gate",
                    type(exc).__name__,
                )
                raise


_default_gate: Optional[InvocationGate] = None
_default_gate_init = threading.Lock()


def default_gate() -> InvocationGate:
    """Return the process-wide gate, creating it on first use."""
    global _default_gate
    if _default_gate is None:
        with _default_gate_init:
            if _default_gate is None:
                _default_gate = InvocationGate()
    return _default_gate
