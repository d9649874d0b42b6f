import numpy as np
import pytest

from chunk_aad import ActiveReal, ChunkTape, TapeConfig, get_tape_stats, print_tape_summary


def test_tape_stats():
    tape = ChunkTape(active=True, statement_chunk_size=2, jacobian_chunk_size=4)
    x = ActiveReal(2.0, tape).register_input()
    y = ActiveReal(3.0, tape).register_input()
    a = x * y
    b = a + x
    tape.push_external_function(lambda tape, data: None)
    c = b * 2.0

    stats = get_tape_stats(tape)
    assert stats['statements']['records'] == 3
    assert stats['statements']['chunks'] == 2
    assert stats['jacobians']['records'] == 5
    assert stats['jacobians']['chunks'] == 2
    assert stats['jacobians']['bytes_used'] == 5 * (8 + 4)
    assert stats['external_functions']['records'] == 1
    assert stats['max_index'] == 5
    assert stats['live_indices'] == 5
    assert stats['free_indices'] == 0
    assert stats['active'] is True


def test_print_tape_summary(capsys):
    tape = ChunkTape()
    stats = print_tape_summary(tape)
    out = capsys.readouterr().out
    assert "TAPE SUMMARY" in out
    assert "passive" in out
    assert stats['statements']['records'] == 0


def test_config_defaults():
    config = TapeConfig()
    assert config.statement_chunk_size == 65536
    assert config.jacobian_chunk_size == 65536
    assert config.external_function_chunk_size == 1000
    assert config.skip_zero_adjoint and config.skip_zero_jacobians
    assert config.ignore_invalid_jacobians
    assert config.index_type == np.dtype(np.int32)
    assert not config.active


@pytest.mark.parametrize("field, bad", [
    ("statement_chunk_size", 0),
    ("jacobian_chunk_size", -4),
    ("external_function_chunk_size", 1.5),
    ("index_dtype", "float64"),
    ("index_dtype", "no-such-type"),
])
def test_config_validation(field, bad):
    with pytest.raises(ValueError):
        TapeConfig(**{field: bad})
