"""
Raw mapped SQL over the employees table.

Manager.raw() maps each result row onto an Employee instance by column
name, so the SELECT list must include the primary key. Parameters are
always passed separately (``%s`` placeholders), never formatted in.

HIGHEST SALARY, TWO SHAPES:
---------------------------
    ORDER BY salary DESC, id ASC LIMIT 1
        exactly one row; on a tie the lowest id wins.

    WHERE salary = (SELECT MAX(salary) FROM employees)
        every row tied for the maximum.
"""
from typing import List

from django.db import DEFAULT_DB_ALIAS, DatabaseError

from store.exceptions import NotFoundError, QueryError

from .models import Employee


TABLE = Employee._meta.db_table
COLUMNS = 'id, name, department, salary'


def _run(sql, params, using):
    try:
        return list(Employee.objects.raw(sql, params, using=using))
    except DatabaseError as exc:
        raise QueryError(f"Employee query failed: {exc}") from exc


def get_employees_by_department(department: str, using: str = DEFAULT_DB_ALIAS) -> List[Employee]:
    """All employees of ``department``. An empty department is an error."""
    employees = _run(
        f"SELECT {COLUMNS} FROM {TABLE} WHERE department = %s ORDER BY id",
        [department],
        using,
    )
    if not employees:
        raise NotFoundError(f"Department {department!r} has no employees")
    return employees


def get_highest_paid_employee(using: str = DEFAULT_DB_ALIAS) -> Employee:
    employees = _run(
        f"SELECT {COLUMNS} FROM {TABLE} ORDER BY salary DESC, id ASC LIMIT 1",
        [],
        using,
    )
    if not employees:
        raise NotFoundError("No employees")
    return employees[0]


def get_all_highest_paid_employees(using: str = DEFAULT_DB_ALIAS) -> List[Employee]:
    """Every employee tied for the top salary; [] when the table is empty."""
    return _run(
        f"SELECT {COLUMNS} FROM {TABLE} "
        f"WHERE salary = (SELECT MAX(salary) FROM {TABLE}) ORDER BY id",
        [],
        using,
    )
