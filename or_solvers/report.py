"""Plain-text and CSV rendering of solver states."""

from __future__ import annotations

import csv
from typing import List, Sequence

import numpy as np

from .numeric import EPS, format_number


def _table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    width = max(6, max(len(str(cell)) for cell in list(headers) + [c for r in rows for c in r]) + 2)
    lines = [" ".join(f"{h:>{width}}" for h in headers), "-" * (len(headers) * (width + 1))]
    for row in rows:
        lines.append(" ".join(f"{str(c):>{width}}" for c in row))
    return "\n".join(lines)


# ----------------------------- simplex -----------------------------

def format_tableau(state) -> str:
    headers = ["Basis", "Cb"] + list(state.variables) + ["RHS"]
    rows: List[List[str]] = []
    for i, name in enumerate(state.basis):
        row = [name, str(state.cb[i])]
        row += [format_number(v) for v in state.tableau[i]]
        row.append(format_number(state.rhs[i]))
        rows.append(row)
    rows.append(["Zj-Cj", ""] + [str(v) for v in state.zj_cj] + [str(state.objective_value)])
    return _table(headers, rows)


# ----------------------------- transportation -----------------------------

def allocation_matrix(state) -> np.ndarray:
    problem = state.problem
    matrix = np.zeros((len(problem.supply), len(problem.demand)), dtype=float)
    for a in state.allocations:
        matrix[a.row, a.col] = a.value
    return matrix


def format_allocation_table(state) -> str:
    problem = state.problem
    matrix = allocation_matrix(state)
    headers = [""] + list(problem.demand_labels) + ["Supply"]
    rows = []
    for i, label in enumerate(problem.supply_labels):
        cells = []
        for j in range(len(problem.demand)):
            cost = format_number(problem.costs[i][j])
            cells.append(f"{format_number(matrix[i, j])}@{cost}" if matrix[i, j] > EPS else f"-@{cost}")
        rows.append([label] + cells + [format_number(problem.supply[i])])
    rows.append(["Demand"] + [format_number(d) for d in problem.demand] + [""])
    return _table(headers, rows) + f"\nTotal cost: {format_number(state.total_cost)}"


def write_allocation_csv(state, filename: str) -> None:
    problem = state.problem
    matrix = allocation_matrix(state)
    with open(filename, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["", *problem.demand_labels, "Supply"])
        for i, label in enumerate(problem.supply_labels):
            w.writerow([label] + [float(matrix[i, j]) for j in range(matrix.shape[1])] + [float(matrix[i, :].sum())])
        w.writerow(["Demand"] + [float(matrix[:, j].sum()) for j in range(matrix.shape[1])])
        w.writerow(["Total cost", float(state.total_cost)])


# ----------------------------- assignment -----------------------------

def format_assignment(state) -> str:
    problem = state.problem
    lines = []
    for row, col in state.assignments:
        cost = state.original_matrix[row][col]
        lines.append(f"{problem.row_labels[row]} -> {problem.col_labels[col]} ({format_number(cost)})")
    label = "Total profit" if problem.is_maximization else "Total cost"
    lines.append(f"{label}: {format_number(state.total_cost)}")
    return "\n".join(lines)


def write_assignment_csv(state, filename: str) -> None:
    problem = state.problem
    with open(filename, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["Row", "Column", "Cost"])
        for row, col in state.assignments:
            w.writerow([problem.row_labels[row], problem.col_labels[col], float(state.original_matrix[row][col])])
        w.writerow(["Total", "", float(state.total_cost)])


# ----------------------------- simplex export -----------------------------

def write_solution_csv(values, objective_value, filename: str) -> None:
    with open(filename, "w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["Variable", "Value"])
        for name, value in values.items():
            w.writerow([name, float(value)])
        w.writerow(["Z", str(objective_value)])
