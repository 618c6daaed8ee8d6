"""
Raw SQL report over the employees table.

Usage: python manage.py employee_report [--department NAME] [--seed]
"""

import logging

from django.core.management.base import BaseCommand, CommandError
from django.db import DEFAULT_DB_ALIAS

from company.models import Employee
from company.queries import (
    get_all_highest_paid_employees,
    get_employees_by_department,
    get_highest_paid_employee,
)
from store.backend import check_backend
from store.exceptions import ConnectionError, QueryError
from store.repository import Repository

logger = logging.getLogger(__name__)

SAMPLE_EMPLOYEES = [
    ('Alice', 'Engineering', 18000),
    ('Bob', 'Engineering', 15000),
    ('Carol', 'Sales', 12000),
    ('Dave', 'Engineering', 18000),
    ('Erin', 'Finance', 14000),
]


def format_employee(employee):
    return (
        f'- ID: {employee.pk}, name: {employee.name}, '
        f'department: {employee.department}, salary: {employee.salary}'
    )


class Command(BaseCommand):
    help = 'List a department and the top earners using raw SQL'

    def add_arguments(self, parser):
        parser.add_argument(
            '--department',
            default='Engineering',
            help='Department to list'
        )
        parser.add_argument(
            '--seed',
            action='store_true',
            help='Insert sample employees when the table is empty'
        )
        parser.add_argument(
            '--database',
            default=DEFAULT_DB_ALIAS,
            help='Database alias to run against'
        )

    def handle(self, *args, **options):
        using = options['database']
        try:
            check_backend(using, models=(Employee,))
        except ConnectionError as exc:
            raise CommandError(str(exc)) from exc
        self.stdout.write(self.style.SUCCESS('Database connection OK'))

        if options['seed']:
            self._seed(Repository(using=using))

        department = options['department']
        self.stdout.write(f'Employees in {department}:')
        try:
            for employee in get_employees_by_department(department, using=using):
                self.stdout.write(format_employee(employee))
        except QueryError as exc:
            logger.error('Query failed: %s', exc)

        self.stdout.write('\nHighest paid employee:')
        try:
            self.stdout.write(format_employee(get_highest_paid_employee(using=using)))
        except QueryError as exc:
            logger.error('Query failed: %s', exc)

        self.stdout.write('\nAll employees tied for the highest salary:')
        try:
            for employee in get_all_highest_paid_employees(using=using):
                self.stdout.write(format_employee(employee))
        except QueryError as exc:
            logger.error('Query failed: %s', exc)

    def _seed(self, repo):
        if repo.count(Employee):
            self.stdout.write('Employees table is not empty, skipping seed')
            return
        for name, department, salary in SAMPLE_EMPLOYEES:
            repo.create(Employee(name=name, department=department, salary=salary))
        self.stdout.write(f'Seeded {len(SAMPLE_EMPLOYEES)} employees')
