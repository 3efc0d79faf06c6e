import pytest
from hypothesis import given
from hypothesis import strategies as st

from mvdist.core.names import BOUND_CODES, BoundKind, MVStatus


@given(st.sampled_from(list(BoundKind)))
def test_code_round_trip(kind):
    assert BoundKind.from_code(kind.code) is kind


def test_code_table_matches_boundary_vocabulary():
    assert {k.code for k in BoundKind} == {-1, 0, 1, 2}
    assert BOUND_CODES[BoundKind.UNBOUNDED] == -1
    assert BOUND_CODES[BoundKind.UPPER_ONLY] == 0
    assert BOUND_CODES[BoundKind.LOWER_ONLY] == 1
    assert BOUND_CODES[BoundKind.BOTH_SIDED] == 2


@given(st.integers().filter(lambda c: c not in (-1, 0, 1, 2)))
def test_unknown_code_rejected(code):
    with pytest.raises(ValueError, match="Unknown bound code"):
        BoundKind.from_code(code)


def test_kinds_accept_their_string_values():
    assert BoundKind("lower_only") is BoundKind.LOWER_ONLY
    assert MVStatus("evaluation_limit_reached") is MVStatus.EVALUATION_LIMIT_REACHED
