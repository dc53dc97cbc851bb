from __future__ import annotations

from typing import List, Optional, Tuple

from ..trace import MAX_STEPS, run_trace
from .common import (
    TransportationState,
    allocate,
    available_cols,
    available_rows,
    finish,
    is_allocation_complete,
)


def _northwest_cell(state: TransportationState) -> Optional[Tuple[int, int]]:
    rows = available_rows(state)
    cols = available_cols(state)
    for r in range(len(rows)):
        if rows[r]:
            for c in range(len(cols)):
                if cols[c]:
                    return r, c
            return None
    return None


def perform_northwest_corner_step(state: TransportationState) -> TransportationState:
    if state.is_terminal:
        return state
    if is_allocation_complete(state):
        return finish(state, "Northwest Corner Method completed. All supply and demand satisfied.")

    cell = _northwest_cell(state)
    if cell is None:
        return finish(state, "No more allocations possible.")
    return allocate(state, cell[0], cell[1], "")


def solve_northwest_corner(state: TransportationState, max_steps: int = MAX_STEPS) -> List[TransportationState]:
    return run_trace(state, perform_northwest_corner_step, lambda s: s.is_terminal, max_steps)
