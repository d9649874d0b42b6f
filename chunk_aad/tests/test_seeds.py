import numpy as np
import pytest

from chunk_aad import ActiveReal, ChunkTape, current_tape, grad, grads, grads_list, value


def test_value():
    tape = ChunkTape()
    assert value(ActiveReal(2.5, tape)) == 2.5
    assert value(3.0) == 3.0


def test_grad_identity():
    assert grad(lambda x: x, 3.0) == 1.0


def test_grad_of_constant_function():
    assert grad(lambda x: 5.0, 3.0) == 0.0


def test_grads_keeps_input_order():
    g = grads(lambda v: v["b"] * 2.0 + v["a"], {"b": 1.0, "a": 1.0})
    assert list(g) == ["b", "a"]
    assert g == {"b": 2.0, "a": 1.0}


def test_grads_list_with_unused_input():
    assert grads_list(lambda xs: xs[0] * 3.0, [1.0, 2.0]) == [3.0, 0.0]


def test_drivers_use_isolated_tapes():
    outer = current_tape()
    used = outer.get_used_statements_size()
    grad(lambda x: x * x, 2.0)
    assert current_tape() is outer
    assert outer.get_used_statements_size() == used


def test_grad_rejects_vector_output():
    with pytest.raises(ValueError):
        grad(lambda x: np.array([1.0, 2.0]), 1.0)


def test_grad_rejects_active_inputs():
    with pytest.raises(TypeError):
        grad(lambda x: x, ActiveReal(1.0, ChunkTape()))
