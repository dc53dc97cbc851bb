"""Parse linear programs written as plain text.

    max z = 40x1 + 30x2
    x1 + x2 <= 12
    2x1 + x2 <= 16

The first line is the objective, every following line a constraint. Lines
starting with ``//`` are ignored. Variables are collected from every line,
missing ones get a zero coefficient, and all records share the same sorted
variable order.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Tuple

from .errors import ProblemDefinitionError
from .simplex import Constraint, Objective

OBJECTIVE_RE = re.compile(r"^\s*(min|max|minimize|maximize)\s+z\s*=\s*(.+)$", re.IGNORECASE)
CONSTRAINT_RE = re.compile(r"^\s*(.+?)\s*(<=|>=|=<|=>|==|<|>|=)\s*(.+?)\s*$")
TERM_RE = re.compile(r"([-+])\s*(\d*\.?\d*)\s*\*?\s*([a-zA-Z_]\w*)")

_TYPES = {"<=": "<=", "=<": "<=", "<": "<=", ">=": ">=", "=>": ">=", ">": ">=", "=": "=", "==": "="}


@dataclass(frozen=True)
class ParsedProblem:
    objective: Objective
    constraints: Tuple[Constraint, ...]
    is_maximization: bool


def parse_expression(expr: str) -> Dict[str, float]:
    expr = expr.strip()
    if not expr.startswith(("+", "-")):
        expr = "+ " + expr
    terms: Dict[str, float] = {}
    pos = 0
    for match in TERM_RE.finditer(expr):
        if expr[pos:match.start()].strip():
            raise ProblemDefinitionError(f"invalid terms in expression {expr!r}")
        sign, coef, name = match.groups()
        if coef in ("", "."):
            if coef == ".":
                raise ProblemDefinitionError(f"invalid coefficient for variable {name}")
            value = 1.0
        else:
            value = float(coef)
        if sign == "-":
            value = -value
        terms[name] = terms.get(name, 0.0) + value
        pos = match.end()
    if expr[pos:].strip() or not terms:
        raise ProblemDefinitionError(f"invalid terms in expression {expr!r}")
    return terms


def parse_problem(text: str) -> ParsedProblem:
    lines = [line.strip() for line in text.splitlines()]
    numbered = [(n, line) for n, line in enumerate(lines, start=1) if line and not line.startswith("//")]
    if not numbered:
        raise ProblemDefinitionError("problem definition is empty")
    if len(numbered) < 2:
        raise ProblemDefinitionError("need at least an objective function and one constraint")

    first_no, first = numbered[0]
    match = OBJECTIVE_RE.match(first)
    if not match:
        raise ProblemDefinitionError(
            f"line {first_no}: objective must look like 'max z = expression' or 'min z = expression'"
        )
    is_max = match.group(1).lower().startswith("max")
    objective_terms = parse_expression(match.group(2))

    parsed: List[Tuple[Dict[str, float], str, float]] = []
    for line_no, line in numbered[1:]:
        cmatch = CONSTRAINT_RE.match(line)
        if not cmatch:
            raise ProblemDefinitionError(f"line {line_no}: invalid constraint format")
        left, op, right = cmatch.groups()
        try:
            terms = parse_expression(left)
        except ProblemDefinitionError as exc:
            raise ProblemDefinitionError(f"line {line_no}: {exc}") from exc
        try:
            rhs = float(right)
        except ValueError:
            raise ProblemDefinitionError(f"line {line_no}: right side must be a number") from None
        parsed.append((terms, _TYPES[op], rhs))

    names = set(objective_terms)
    for terms, _, _ in parsed:
        names.update(terms)
    order = tuple(sorted(names))

    objective = Objective(tuple(objective_terms.get(v, 0.0) for v in order), order)
    constraints = tuple(
        Constraint(tuple(terms.get(v, 0.0) for v in order), order, ctype, rhs)
        for terms, ctype, rhs in parsed
    )
    return ParsedProblem(objective, constraints, is_max)
