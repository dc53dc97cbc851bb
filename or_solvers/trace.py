"""Step loops shared by every solver.

Each algorithm exposes ``step(state) -> state``; ``run_trace`` drives it
until a terminal state or the step cap, keeping every intermediate state so
callers can replay the run.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Sequence, TypeVar

import numpy as np

from .errors import NonConvergenceError

logger = logging.getLogger(__name__)

MAX_STEPS = 100

S = TypeVar("S")


def readonly(values, dtype=float) -> np.ndarray:
    arr = np.array(values, dtype=dtype, copy=True)
    arr.flags.writeable = False
    return arr


def run_trace(state: S, step: Callable[[S], S], is_terminal: Callable[[S], bool],
              max_steps: int = MAX_STEPS) -> List[S]:
    """Return ``[state, step(state), ...]`` with at most ``max_steps`` entries."""
    trace = [state]
    current = state
    while not is_terminal(current) and len(trace) < max_steps:
        current = step(current)
        trace.append(current)
    if not is_terminal(current):
        logger.warning("Step cap reached after %d steps without a terminal state", len(trace) - 1)
    return trace


def ensure_converged(trace: Sequence[S], is_terminal: Callable[[S], bool]) -> S:
    if not is_terminal(trace[-1]):
        raise NonConvergenceError(len(trace) - 1)
    return trace[-1]
