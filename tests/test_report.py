import csv
import logging

import pytest

from or_solvers import numeric, report, simplex
from or_solvers.logger_config import LOG_FORMAT, setup_logger
from or_solvers.numeric import format_number
from or_solvers.report import format_allocation_table, format_tableau, write_allocation_csv
from or_solvers.simplex import initialize_problem
from or_solvers.transportation import Method, initialize_transportation_problem, solve_transportation_problem


@pytest.mark.parametrize(
    "value, text",
    [(4.0, "4"), (-3, "-3"), (0.5, "1/2"), (7 / 3, "7/3"), (1e-12, "0"), (0.12345678, "0.1235")],
)
def test_format_number(value, text):
    assert format_number(value) == text


def test_solvers_and_reports_share_the_formatter():
    assert simplex.format_number is numeric.format_number
    assert report.format_number is numeric.format_number
    assert not hasattr(simplex, "report")


def test_tableau_rendering(furniture_lp):
    objective, constraints = furniture_lp
    text = format_tableau(initialize_problem(objective, constraints, True))
    lines = text.splitlines()
    assert lines[0].split() == ["Basis", "Cb", "x1", "x2", "s1", "s2", "RHS"]
    assert lines[2].split() == ["s1", "0", "1", "1", "1", "0", "12"]
    assert lines[-1].split() == ["Zj-Cj", "-40", "-30", "0", "0", "0"]


def test_allocation_table_and_csv(transport_problem, tmp_path):
    final = solve_transportation_problem(initialize_transportation_problem(transport_problem, Method.NWC))[-1]
    text = format_allocation_table(final)
    assert "25@8" in text
    assert "-@6" in text
    assert text.endswith("Total cost: 1250")

    path = tmp_path / "alloc.csv"
    write_allocation_csv(final, str(path))
    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert rows[1] == ["S1", "25.0", "0.0", "0.0", "25.0"]
    assert rows[4] == ["Demand", "30.0", "25.0", "45.0"]
    assert rows[5] == ["Total cost", "1250.0"]


def test_setup_logger_replaces_handlers():
    root = setup_logger(logging.DEBUG)
    setup_logger(logging.WARNING)
    assert len(root.handlers) == 1
    assert root.level == logging.WARNING
    assert root.handlers[0].formatter._fmt == LOG_FORMAT
    root.handlers.clear()
