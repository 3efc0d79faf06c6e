"""
mvdist.backends
===============

Implementations of the integration routine behind `MVBackend`.

- `base`: the calling contract (flat column-major buffers, integer bound codes)
- `genz`: the default randomized lattice-rule integrator

Any object with matching ``mvdist`` and ``mvcrit`` methods can be passed to the
public operations as ``backend=``.
"""

from mvdist.backends.base import MVBackend
from mvdist.backends.genz import GenzBackend

__all__ = ["GenzBackend", "MVBackend"]
