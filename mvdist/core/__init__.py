"""
mvdist.core
===========

The safety envelope around the integration routine:

- `names`: bound kinds, their integer codes, convergence status
- `layout`: shape checks and row-major to column-major marshaling
- `gate`: process-wide serialization of boundary calls
- `result`: status-code interpretation into `MVResult` or exceptions
- `errors`: the exception hierarchy
- `config`: default integration limits
"""
