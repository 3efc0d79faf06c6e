"""
mvdist.api - Public Facade
==========================

The two operations most callers need, with defaults for everything else:

- `rectangle_probability()`: mass of a normal or Student-t distribution inside
  a region given by bounds on linear combinations
- `critical_value()`: the bound scale giving probability ``1 - alpha``

Both are safe to call from many threads at once. Calls into the integration
routine are serialized by a single process-wide gate, so they never overlap,
but there is no speed-up from calling concurrently.

Examples
--------
>>> from mvdist.api import rectangle_probability
>>> from mvdist.core.names import BoundKind
>>> res = rectangle_probability(
...     [[1.0, 0.5], [0.5, 1.0]], 0, [0.0, 0.0], [0.0, 0.0],
...     [BoundKind.UPPER_ONLY] * 2, [[1.0, 0.0], [0.0, 1.0]], [0.0, 0.0],
...     max_evaluations=200_000, absolute_tolerance=1e-4)
>>> abs(res.value - 1 / 3) < 1e-3
True
"""

from mvdist.api.probability import critical_value, default_backend, rectangle_probability

__all__ = ["critical_value", "default_backend", "rectangle_probability"]
