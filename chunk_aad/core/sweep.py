# chunk_aad/core/sweep.py
"""
Reverse sweep over a ChunkTape.

The three logs of a tape are walked backward in lock step:

    external functions  ->  Jacobian entries  ->  statements

Between two external functions the Jacobian log is walked chunk by chunk.
For every Jacobian chunk the statements that were written while that chunk
was current are replayed newest first; each statement consumes exactly its
own entries from the end of the chunk window:

    adj = adjoint[lhs];  adjoint[lhs] = 0
    adjoint[arg_k] += adj * coefficient_k      for its entries, newest first

Resetting the left hand side slot before propagating makes every recorded
assignment hand its adjoint on exactly once, which is what allows indices to
be recycled while older statements still refer to them.
"""
from __future__ import annotations
import logging

from .position import Position

logger = logging.getLogger("chunk_aad.sweep")


class ReverseSweep:
    """Replays a range of a ChunkTape into its adjoint vector."""

    def __init__(self, tape):
        self.tape = tape

    def run(self, start: Position, end: Position):
        """Propagate adjoints from `start` back to `end` (start >= end)."""
        assert start >= end, f"reverse sweep needs start >= end, got {start!r} < {end!r}"
        tape = self.tape
        logger.debug("reverse sweep %r -> %r", start, end)

        cur_inner = start.inner
        for (functions, positions), hi, lo, _, _ in tape.external_functions.iterate_backward(start, end):
            for i in range(hi - 1, lo - 1, -1):
                ext_pos = positions[i]
                # propagate everything recorded after the external function first
                self.evaluate_jacobians(cur_inner, ext_pos)
                logger.debug("calling external function at %r", ext_pos)
                functions[i].evaluate(tape)
                cur_inner = ext_pos

        # remainder; also covers a tape without external functions
        self.evaluate_jacobians(cur_inner, end.inner)

    def evaluate_jacobians(self, start: Position, end: Position):
        """Walk the Jacobian log from `start` back to `end`."""
        tape = self.tape
        # fetched here: an external function may have grown the adjoint vector
        adjoints = tape.adjoints.data
        skip_zero = tape.config.skip_zero_adjoint

        for (coefficients, indices), data_pos, data_end, stmt_start, stmt_end in \
                tape.jacobians.iterate_backward(start, end):
            data_pos = self._evaluate_statements(stmt_start, stmt_end, coefficients, indices,
                                                 data_pos, adjoints, skip_zero)
            assert data_pos == data_end, \
                f"statement/Jacobian logs out of step: cursor {data_pos}, expected {data_end}"

    def _evaluate_statements(self, start, end, coefficients, indices, data_pos, adjoints, skip_zero):
        for (arg_counts, lhs_indices), stmt_pos, stmt_end, _, _ in \
                self.tape.statements.iterate_backward(start, end):
            while stmt_pos > stmt_end:
                stmt_pos -= 1
                lhs = lhs_indices[stmt_pos]
                adj = adjoints[lhs]
                adjoints[lhs] = 0.0
                n_args = int(arg_counts[stmt_pos])
                if skip_zero and adj == 0.0:
                    # entries are still consumed to keep the logs aligned
                    data_pos -= n_args
                    continue
                for _ in range(n_args):
                    data_pos -= 1
                    adjoints[indices[data_pos]] += adj * coefficients[data_pos]
        return data_pos
