import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from chunk_aad import ActiveReal, ChunkTape, TapeConfig, use_tape, current_tape
from chunk_aad.core.expression import UnaryExpression


@pytest.fixture
def tape():
    return ChunkTape(active=True)


def _inputs(tape, *values):
    return [ActiveReal(v, tape).register_input() for v in values]


def _jacobians(tape):
    coefficients, indices = tape.jacobians.chunks[0].fields
    n = tape.jacobians.get_chunk_used_data(0)
    return coefficients[:n].tolist(), indices[:n].tolist()


def _statements(tape):
    counts, lhs = tape.statements.chunks[0].fields
    n = tape.statements.get_chunk_used_data(0)
    return counts[:n].tolist(), lhs[:n].tolist()


def test_register_input_issues_indices(tape):
    x, y = _inputs(tape, 2.0, 3.0)
    assert (x.index, y.index) == (1, 2)
    assert tape.get_used_statements_size() == 0


def test_store_expression(tape):
    x, y = _inputs(tape, 2.0, 3.0)
    z = x * y

    assert z.value == 6.0
    assert z.index == 3
    assert _jacobians(tape) == ([3.0, 2.0], [1, 2])
    assert _statements(tape) == ([2], [3])


def test_store_constant_releases_index(tape):
    x, y = _inputs(tape, 2.0, 3.0)
    z = x * y
    idx = z.index
    z.assign(5.0)

    assert z.value == 5.0
    assert z.index == 0
    assert tape.index_handler.free_indices == [idx]
    assert tape.get_used_statements_size() == 1


def test_store_copy(tape):
    x, = _inputs(tape, 2.0)
    w = ActiveReal(x, tape)

    assert w.value == 2.0
    assert w.index == 2
    assert _jacobians(tape) == ([1.0], [1])
    assert _statements(tape) == ([1], [2])


def test_copy_of_untracked_variable_records_nothing(tape):
    u = ActiveReal(4.0, tape)
    v = ActiveReal(u, tape)
    assert v.value == 4.0
    assert v.index == 0
    assert tape.get_used_jacobians_size() == 0


def test_passive_tape_records_nothing(tape):
    x, y = _inputs(tape, 2.0, 3.0)
    w = x + y
    tape.set_passive()

    z = x * y
    w.assign(x * y)

    assert z.value == 6.0 and z.index == 0
    # a passive assignment leaves the target untracked
    assert w.value == 6.0 and w.index == 0
    assert tape.get_used_statements_size() == 1


def test_recording_context_restores_activity():
    tape = ChunkTape()
    assert not tape.is_active()
    with tape.recording():
        assert tape.is_active()
    assert not tape.is_active()


def test_zero_coefficients_are_dropped(tape):
    x, = _inputs(tape, 2.0)
    z = x * 0.0
    assert z.index == 0
    assert tape.get_used_jacobians_size() == 0


def test_zero_coefficients_kept_when_configured():
    tape = ChunkTape(active=True, skip_zero_jacobians=False)
    x, = _inputs(tape, 2.0)
    z = x * 0.0
    assert z.index == 2
    assert _jacobians(tape) == ([0.0], [1])


def test_invalid_coefficients_are_dropped(tape):
    x, = _inputs(tape, 2.0)
    z = ActiveReal(UnaryExpression("f", x, 1.0, float("nan")), tape)
    assert z.value == 1.0
    assert z.index == 0
    assert tape.get_used_jacobians_size() == 0


def test_invalid_coefficients_kept_when_configured():
    tape = ChunkTape(active=True, ignore_invalid_jacobians=False)
    x, = _inputs(tape, 2.0)
    z = ActiveReal(UnaryExpression("f", x, 1.0, float("inf")), tape)
    assert z.index == 2
    assert _jacobians(tape) == ([float("inf")], [1])


def test_statement_argument_limit(tape):
    x, = _inputs(tape, 1.0)
    s = x.lazy()
    for _ in range(255):
        s = s + x.lazy()
    assert s.max_active_variables == 256
    with pytest.raises(AssertionError):
        ActiveReal(s, tape)


def test_manual_statement(tape):
    x0, x1 = _inputs(tape, 2.0, 3.0)
    y = ActiveReal(0.0, tape)
    with tape.store_manual(y, 2, value=7.0) as stmt:
        stmt.push_jacobi(2.0, x0.index)
        stmt.push_jacobi(5.0, x1.index)
        assert stmt.written() == 2

    assert y.value == 7.0
    assert y.index == 3
    assert _statements(tape) == ([2], [3])

    y.gradient = 1.0
    tape.evaluate()
    assert x0.gradient == 2.0
    assert x1.gradient == 5.0


def test_manual_statement_too_many_entries(tape):
    x, = _inputs(tape, 2.0)
    y = ActiveReal(0.0, tape)
    stmt = tape.store_manual(y, 1)
    stmt.push_jacobi(1.0, x.index)
    with pytest.raises(AssertionError):
        stmt.push_jacobi(1.0, x.index)


def test_manual_statement_rolls_back_on_error(tape):
    x, = _inputs(tape, 2.0)
    z = x * 2.0
    before = tape.get_position()

    y = ActiveReal(0.0, tape)
    with pytest.raises(RuntimeError):
        with tape.store_manual(y, 2) as stmt:
            stmt.push_jacobi(1.0, x.index)
            raise RuntimeError("kernel failed")

    assert tape.get_position() == before
    assert y.index == 0
    assert z.index != 0


def test_manual_statement_without_entries(tape):
    y = ActiveReal(1.0, tape).register_input()
    with tape.store_manual(y, 2, value=3.0):
        pass
    assert y.value == 3.0
    assert y.index == 0
    assert tape.get_used_statements_size() == 0


def test_inplace_add_of_number_updates_primal_only(tape):
    x, = _inputs(tape, 2.0)
    x += 1.0
    x -= 0.5
    assert x.value == 2.5
    assert x.index == 1
    assert tape.get_used_statements_size() == 0


def test_inplace_mul_keeps_index(tape):
    x, = _inputs(tape, 2.0)
    x *= 3.0
    assert x.value == 6.0
    assert x.index == 1
    assert _statements(tape) == ([1], [1])

    x.gradient = 1.0
    tape.evaluate()
    assert x.gradient == 3.0


def test_released_index_is_reused(tape):
    x, y = _inputs(tape, 2.0, 3.0)
    t = x * y
    idx = t.index
    del t
    assert tape.index_handler.free_indices == [idx]

    u = x + y
    assert u.index == idx


def test_full_reset_invalidates_old_indices(tape):
    x, = _inputs(tape, 2.0)
    y = x * x
    tape.reset()

    assert tape.get_used_statements_size() == 0
    assert tape.index_handler.get_maximum_global_index() == 0
    assert x.index == 0 and y.index == 0

    x.register_input()
    assert x.index == 1
    del y
    # releasing a stale variable must not hand out an index it no longer owns
    assert tape.index_handler.free_indices == []


def test_partial_reset_keeps_indices(tape):
    x, = _inputs(tape, 2.0)
    a = x * 2.0
    pos = tape.get_position()
    y = a * x
    tape.reset(pos)

    assert tape.get_used_statements_size() == 1
    assert (x.index, a.index, y.index) == (1, 2, 3)
    assert tape.index_handler.get_maximum_global_index() == 3


def test_gradient_of_unissued_index_warns(tape):
    _inputs(tape, 2.0)
    with pytest.warns(UserWarning):
        tape.set_gradient(10, 1.0)
    assert tape.get_gradient(10) == 1.0


def test_gradient_view(tape):
    x, = _inputs(tape, 2.0)
    view = tape.gradient(x.index)
    view[0] += 4.0
    assert x.gradient == 4.0


def test_get_gradient_of_unknown_index_is_zero(tape):
    assert tape.get_gradient(0) == 0.0
    assert tape.get_gradient(12345) == 0.0


def test_config_overrides():
    tape = ChunkTape(TapeConfig(jacobian_chunk_size=16), statement_chunk_size=8, active=True)
    assert tape.config.jacobian_chunk_size == 16
    assert tape.config.statement_chunk_size == 8
    assert tape.statements.get_chunk_size() == 8

    tape.set_jacobian_chunk_size(32)
    assert tape.config.jacobian_chunk_size == 32
    assert tape.jacobians.get_chunk_size() == 32


def test_resize_preallocates_logs():
    tape = ChunkTape(statement_chunk_size=4, jacobian_chunk_size=4)
    tape.resize(10, 6)
    assert tape.jacobians.get_allocated_chunks() == 3
    assert tape.statements.get_allocated_chunks() == 2


def test_index_dtype():
    tape = ChunkTape(index_dtype="int64", active=True)
    x = ActiveReal(1.0, tape).register_input()
    y = x * 2.0
    assert tape.jacobians.chunks[0].fields[1].dtype == np.int64
    assert y.index == 2


def test_use_tape_swaps_default():
    outer = current_tape()
    with use_tape(active=True) as tape:
        assert current_tape() is tape
        x = ActiveReal(1.0)
        assert x.tape is tape
        assert tape.is_active()
    assert current_tape() is outer


def test_variables_on_different_tapes():
    t1 = ChunkTape(active=True)
    t2 = ChunkTape(active=True)
    x = ActiveReal(1.0, t1).register_input()
    y = ActiveReal(2.0, t2).register_input()
    with pytest.raises(ValueError):
        x * y


def test_non_numeric_values():
    with pytest.raises(TypeError):
        ActiveReal("1.0")
    with pytest.raises(TypeError):
        ActiveReal(1.0) + "a"


def test_repr(tape):
    x, = _inputs(tape, 2.0)
    assert "index=1" in repr(x)
    assert "active" in repr(tape)
    assert_array_equal(tape.adjoints.data, np.zeros(0))
    assert_allclose(float(x), 2.0)


def test_tapes_do_not_share_config():
    config = TapeConfig()
    t1 = ChunkTape(config)
    t2 = ChunkTape(config)
    assert t1.config is not config

    t1.set_jacobian_chunk_size(8)
    assert t1.config.jacobian_chunk_size == 8
    assert t2.config.jacobian_chunk_size == 65536
    assert t2.jacobians.get_chunk_size() == 65536
    assert config.jacobian_chunk_size == 65536


def test_manual_statement_on_passive_tape_keeps_index(tape):
    x, = _inputs(tape, 2.0)
    tape.set_passive()
    with tape.store_manual(x, 1, value=5.0) as stmt:
        stmt.push_jacobi(2.0, x.index)

    assert x.value == 5.0
    assert x.index == 1
    assert tape.get_used_statements_size() == 0
    assert tape.get_used_jacobians_size() == 0
