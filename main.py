"""
or_solvers command line

Solves one problem read from a JSON file and prints the result; ``--trace``
prints the explanation of every intermediate step as well.

Usage:
  python main.py --input data.json --method vam --optimize --output-csv result.csv
  python main.py simplex --input lp.json --trace

data.json examples ("problem" may be omitted for transportation data):
{
  "problem": "transportation",
  "costs": [[8,6,10],[9,12,13],[14,9,16]],
  "supply": [25,35,40],
  "demand": [30,25,45],
  "method": "vam"
}
{"problem": "simplex", "text": "max z = 40x1 + 30x2\\nx1 + x2 <= 12\\n2x1 + x2 <= 16"}
{"problem": "simplex",
 "objective": {"coefficients": [40, 30]},
 "constraints": [{"coefficients": [1, 1], "type": "<=", "rhs": 12}],
 "maximize": true}
{"problem": "assignment", "costs": [[9,2,7],[6,4,3],[5,8,1]], "maximize": false}

Exit status: 0 on a finished solve, 1 on bad input, 2 when the step cap is
reached first.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

import numpy as np

from or_solvers import report
from or_solvers.errors import NonConvergenceError, ProblemDefinitionError, SolverError
from or_solvers.hungarian import AssignmentProblem, initialize_hungarian_problem, solve_hungarian_problem
from or_solvers.logger_config import setup_logger
from or_solvers.lp_parser import parse_problem
from or_solvers.simplex import (
    Constraint,
    Objective,
    describe_outcome,
    initialize_problem,
    solution_values,
    solve_all,
)
from or_solvers.trace import MAX_STEPS, ensure_converged
from or_solvers.transportation import (
    INITIAL_METHODS,
    TransportationProblem,
    initialize_modi,
    initialize_transportation_problem,
    method_name,
    resolve_method,
    solve_transportation_problem,
)
from or_solvers.transportation.common import METHOD_ALIASES

logger = logging.getLogger("or_solvers.cli")

PROBLEMS = ("simplex", "transportation", "assignment")
INITIAL_METHOD_CHOICES = sorted(k for k, m in METHOD_ALIASES.items() if m in INITIAL_METHODS)


def _print_trace(trace) -> None:
    for state in trace:
        print(f"- {state.explanation}")


def _is_terminal(state) -> bool:
    return state.is_terminal


# ----------------------------- problem kinds -----------------------------

def detect_problem(data: dict) -> str:
    if "problem" in data:
        kind = str(data["problem"]).lower()
        if kind not in PROBLEMS:
            raise ProblemDefinitionError(f"unknown problem kind {data['problem']!r}; expected one of {', '.join(PROBLEMS)}")
        return kind
    if "text" in data or "objective" in data:
        return "simplex"
    if "supply" in data or "demand" in data:
        return "transportation"
    return "assignment"


def _require(data: dict, *keys: str) -> None:
    missing = [k for k in keys if k not in data]
    if missing:
        raise ProblemDefinitionError(f"input is missing {', '.join(missing)}")


def _array(data: dict, key: str) -> np.ndarray:
    try:
        return np.array(data[key], dtype=float)
    except (TypeError, ValueError) as e:
        raise ProblemDefinitionError(f"{key} must be numeric: {e}") from e


def _labels(data: dict, key: str) -> tuple:
    try:
        return tuple(data.get(key, ()))
    except TypeError as e:
        raise ProblemDefinitionError(f"{key} must be a list: {e}") from e


def _lp_records(data: dict):
    """Objective and constraints from the structured simplex input."""
    _require(data, "objective", "constraints")
    try:
        obj = data["objective"]
        objective = Objective(tuple(obj["coefficients"]), tuple(obj.get("variables", ())))
        constraints = [
            Constraint(tuple(c["coefficients"]), tuple(c.get("variables", ())), c.get("type", "<="), c.get("rhs", 0))
            for c in data["constraints"]
        ]
    except ProblemDefinitionError:
        raise
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ProblemDefinitionError(f"malformed simplex records: {e!r}") from e
    return objective, constraints


def run_simplex(data: dict, args) -> None:
    if "text" in data:
        if not isinstance(data["text"], str):
            raise ProblemDefinitionError("text must be a string")
        parsed = parse_problem(data["text"])
        objective, constraints, is_max = parsed.objective, parsed.constraints, parsed.is_maximization
    else:
        objective, constraints = _lp_records(data)
        is_max = bool(data.get("maximize", False))

    state = initialize_problem(objective, constraints, is_max)
    print(state.explanation)
    print(state.formulation)
    trace = solve_all(state, args.max_steps)
    if args.trace:
        for s in trace:
            print(f"- {s.explanation}")
            print(report.format_tableau(s))
    final = ensure_converged(trace, _is_terminal)
    if not args.trace:
        print(report.format_tableau(final))
    print(describe_outcome(trace))

    if args.output_csv:
        report.write_solution_csv(solution_values(final), final.objective_value, args.output_csv)
        print(f"Wrote solution to {args.output_csv}")


def run_transportation(data: dict, args) -> None:
    _require(data, "costs", "supply", "demand")
    problem = TransportationProblem(
        _array(data, "supply"),
        _array(data, "demand"),
        _array(data, "costs"),
        _labels(data, "supply_labels"),
        _labels(data, "demand_labels"),
    )
    method = resolve_method(args.method or data.get("method") or "vam")
    state = initialize_transportation_problem(problem, method)
    print(f"Initial method: {method_name(method)}")

    trace = solve_transportation_problem(state, args.max_steps)
    if args.trace:
        _print_trace(trace)
    final = ensure_converged(trace, _is_terminal)
    print("Initial allocation:")
    print(report.format_allocation_table(final))

    if args.optimize:
        print("Running MODI (u-v) optimization...")
        trace = solve_transportation_problem(initialize_modi(final), args.max_steps)
        if args.trace:
            _print_trace(trace)
        final = ensure_converged(trace, _is_terminal)
        print("Final allocation:")
        print(report.format_allocation_table(final))

    if args.output_csv:
        report.write_allocation_csv(final, args.output_csv)
        print(f"Wrote allocation to {args.output_csv}")


def run_assignment(data: dict, args) -> None:
    _require(data, "costs")
    problem = AssignmentProblem(
        _array(data, "costs"),
        _labels(data, "row_labels"),
        _labels(data, "col_labels"),
        bool(data.get("maximize", False)),
    )
    trace = solve_hungarian_problem(initialize_hungarian_problem(problem), args.max_steps)
    if args.trace:
        _print_trace(trace)
    final = ensure_converged(trace, _is_terminal)
    print(report.format_assignment(final))

    if args.output_csv:
        report.write_assignment_csv(final, args.output_csv)
        print(f"Wrote assignment to {args.output_csv}")


RUNNERS = {
    "simplex": run_simplex,
    "transportation": run_transportation,
    "assignment": run_assignment,
}


# ---------------------------- CLI ----------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Step-by-step solvers: Big-M Simplex, transportation (NWC, LCM, VAM + MODI), Hungarian"
    )
    parser.add_argument('problem', nargs='?', choices=PROBLEMS,
                        help='problem kind; defaults to the "problem" key of the input')
    parser.add_argument('--input', '-i', default='data.json', help='input JSON path')
    parser.add_argument('--method', '-m', default=None, choices=INITIAL_METHOD_CHOICES,
                        help='transportation initial solution method')
    parser.add_argument('--optimize', '-o', action='store_true', help='refine the transportation solution with MODI')
    parser.add_argument('--trace', action='store_true', help='print the explanation of every step')
    parser.add_argument('--output-csv', default=None, help='write the result table to CSV')
    parser.add_argument('--max-steps', type=int, default=MAX_STEPS, help='step cap per solve')
    parser.add_argument('--verbose', '-v', action='store_true', help='debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(logging.DEBUG if args.verbose else logging.INFO)

    try:
        with open(args.input, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        print(f"Failed to load {args.input}: {e}")
        return 1
    if not isinstance(data, dict):
        print(f"Failed to load {args.input}: top level must be an object")
        return 1

    try:
        kind = args.problem or detect_problem(data)
        RUNNERS[kind](data, args)
    except NonConvergenceError as e:
        logger.error("%s", e)
        print(f"Error: {e}")
        return 2
    except SolverError as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
