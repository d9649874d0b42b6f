# chunk_aad/core/external.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class ExternalFunction:
    """
    A user callback embedded in the reverse sweep.

    Attributes
    ----------
    callback   : callable(tape, data)
        Invoked when the reverse sweep reaches the point where the function
        was pushed, after all later statements have been propagated.
    data       : Any
        Opaque user data. The tape owns it once pushed.
    destructor : callable(data) | None
        Releases `data` when the record is discarded by a tape reset.
    """
    callback: Callable[[Any, Any], None]
    data: Any = None
    destructor: Optional[Callable[[Any], None]] = None

    def evaluate(self, tape):
        self.callback(tape, self.data)

    def delete_data(self):
        if self.destructor is not None:
            self.destructor(self.data)
        self.data = None
